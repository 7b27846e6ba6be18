"""HTTP surface for the template extractor."""

from templatefetcher.web.app import create_app

__all__ = ["create_app"]
