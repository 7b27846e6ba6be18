"""templatefetcher.web.app - Flask application factory.

One :class:`~templatefetcher.extractor.TemplateExtractor` is built per app and
kept in ``app.extensions["extractor"]``::

    from templatefetcher.web import create_app

    app = create_app()
    app.run(port=10000, threaded=True)
"""

from __future__ import annotations

import logging

from flask import Flask

from templatefetcher.config import FetcherConfig
from templatefetcher.extractor import TemplateExtractor

logger = logging.getLogger(__name__)


def create_app(
    extractor: TemplateExtractor | None = None,
    config: dict | None = None,
    fetcher_config: FetcherConfig | None = None,
) -> Flask:
    """Create and configure the Flask app.

    The extractor is built once here and shared by every request through
    ``app.extensions``; each request still gets its own browser session.
    """
    app = Flask(__name__)
    app.config.update(config or {})

    if extractor is None:
        extractor = TemplateExtractor(fetcher_config or FetcherConfig.from_env())
    app.extensions["extractor"] = extractor

    from templatefetcher.web.routes import api_bp, health_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(api_bp, url_prefix="/api")

    logger.debug(
        "app created (layout=%s, max_sessions=%d)",
        extractor.config.layout, extractor.config.max_sessions,
    )
    return app
