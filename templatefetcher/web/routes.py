"""templatefetcher.web.routes - health check and template API blueprints."""

from __future__ import annotations

import logging

from flask import Blueprint, Response, current_app, jsonify, request

from templatefetcher.errors import (
    ExtractionFailure,
    TemplateFetchError,
    ValidationError,
)
from templatefetcher.items import ErrorBody

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)
health_bp = Blueprint("health", __name__)

_TEXT_PLAIN = "text/plain; charset=utf-8"


@health_bp.route("/health")
def health():
    """Liveness only; the browser is not touched."""
    return Response("ok", status=200, content_type=_TEXT_PLAIN)


@api_bp.after_request
def add_cors_headers(response):
    """Allow the front end to call the API from any origin."""
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    return response


def _error(status: int, **fields):
    return jsonify(ErrorBody(**fields).to_json()), status


@api_bp.route("/template")
@api_bp.route("/template/<template_id>")
def get_template(template_id: str | None = None):
    """Return the rendered template HTML as plain text."""
    raw_id = template_id if template_id is not None else request.args.get("id", "")
    extractor = current_app.extensions["extractor"]

    try:
        target_url = extractor.target_url(raw_id)
    except ValidationError as exc:
        return _error(400, error=str(exc))

    try:
        result = extractor.fetch(raw_id)
    except ExtractionFailure as exc:
        return _error(
            404,
            error=exc.reason,
            target_url=exc.target_url or target_url,
            iframe_url_tried=exc.tried_frame_url,
            diagnosis=exc.diagnosis,
        )
    except TemplateFetchError as exc:
        logger.warning("template %s failed: %s", raw_id, exc)
        return _error(
            500,
            error="failed to fetch template",
            message=str(exc),
            target_url=exc.target_url or target_url,
        )
    except Exception as exc:
        logger.exception("unexpected error fetching template %s", raw_id)
        return _error(
            500,
            error="failed to fetch template",
            message=str(exc) or type(exc).__name__,
            target_url=target_url,
        )

    return Response(result.html, status=200, content_type=_TEXT_PLAIN)
