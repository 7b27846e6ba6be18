"""templatefetcher - pull rendered template HTML out of 135editor preview pages.

Quick usage::

    from templatefetcher import fetch_template_html

    html = fetch_template_html("169311")

Serving the HTTP API::

    from templatefetcher.web import create_app

    app = create_app()
    app.run(port=10000, threaded=True)
"""

from templatefetcher.config import FetcherConfig
from templatefetcher.errors import (
    ExtractionFailure,
    NavigationError,
    SessionError,
    TemplateFetchError,
    ValidationError,
)
from templatefetcher.extractor import TemplateExtractor, fetch_template_html, validate_template_id
from templatefetcher.items import TemplateHtml

__version__ = "0.1.0"
__all__ = [
    "ExtractionFailure",
    "FetcherConfig",
    "NavigationError",
    "SessionError",
    "TemplateExtractor",
    "TemplateFetchError",
    "TemplateHtml",
    "ValidationError",
    "fetch_template_html",
    "validate_template_id",
]
