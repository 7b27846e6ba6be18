"""Pydantic schemas for extraction results and HTTP error bodies."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

# ---------------------------------------------------------------------------
# Successful extraction
# ---------------------------------------------------------------------------

class TemplateHtml(BaseModel):
    """Rendered template markup plus where it came from."""

    template_id: str
    html: str
    target_url: str
    # None when the markup came from the main document
    frame_url: str | None = None
    selector: str = "body"
    elapsed_ms: int = 0

    @field_validator("html", mode="before")
    @classmethod
    def strip_html(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("html")
    @classmethod
    def non_empty_html(cls, v: str) -> str:
        if not v:
            raise ValueError("html must not be empty")
        return v


# ---------------------------------------------------------------------------
# HTTP error bodies (camelCase on the wire)
# ---------------------------------------------------------------------------

class ErrorBody(BaseModel):
    """JSON body returned by the API for every non-200 response."""

    error: str
    message: str | None = None
    target_url: str | None = Field(default=None, serialization_alias="targetUrl")
    iframe_url_tried: str | None = Field(default=None, serialization_alias="iframeUrlTried")
    diagnosis: str | None = None

    def to_json(self) -> dict[str, Any]:
        """Return the wire representation, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
