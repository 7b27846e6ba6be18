"""Runtime configuration: defaults, YAML profiles and environment overrides.

Precedence is environment > profile > built-in defaults::

    from templatefetcher.config import FetcherConfig

    config = FetcherConfig.from_env()          # reads os.environ
    config.candidate_selectors()               # ordered selector tuple
    config.target_url("169311")

A profile is a flat YAML mapping whose keys are :class:`FetcherConfig` field
names::

    layout: wechat
    settle_delay_ms: 4000
    wait_for_network_idle: true
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_BASE_URL = "https://www.135editor.com"

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)

# ---------------------------------------------------------------------------
# Selector layouts
# ---------------------------------------------------------------------------

# Each layout targets one revision of the preview page.  Order is priority:
# the first selector with enough content wins.
LAYOUTS: dict[str, tuple[str, ...]] = {
    "fullpage": (
        "#fullpage.mg-content",
        "#fullpage",
        ".mg-content",
    ),
    "wechat": (
        "#js_content",
        "article",
        ".rich_media_content",
        ".preview",
        ".preview-container",
        ".preview-content",
        ".editor-preview",
        ".content",
        ".page",
        "#page",
    ),
}

DEFAULT_LAYOUT = "fullpage"

# Frames whose URL contains one of these are tried before the others.
DEFAULT_FRAME_KEYWORDS: tuple[str, ...] = ("preview", "editor_styles", "style", "render")

# Environment variable -> FetcherConfig field
_ENV_FIELDS: dict[str, str] = {
    "CHROME_PATH": "chrome_path",
    "TEMPLATEFETCHER_LAYOUT": "layout",
    "TEMPLATEFETCHER_MAX_SESSIONS": "max_sessions",
    "TEMPLATEFETCHER_SETTLE_MS": "settle_delay_ms",
    "TEMPLATEFETCHER_NETWORK_IDLE": "wait_for_network_idle",
    "TEMPLATEFETCHER_MIN_LENGTH": "min_content_length",
    "TEMPLATEFETCHER_BUDGET_S": "request_budget_s",
}


def load_profile(path: str | Path) -> dict[str, Any]:
    """Load a YAML profile and return its settings as a plain dict."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"profile {path} must be a mapping, got {type(data).__name__}")
    return {str(k): v for k, v in data.items()}


class FetcherConfig(BaseModel):
    """Settings for one :class:`~templatefetcher.extractor.TemplateExtractor`."""

    model_config = {"extra": "forbid", "frozen": True}

    base_url: str = DEFAULT_BASE_URL
    layout: str = DEFAULT_LAYOUT
    # Explicit selector list; overrides ``layout`` when set
    selectors: tuple[str, ...] | None = None
    min_content_length: int = Field(default=300, ge=1)
    frame_keywords: tuple[str, ...] = DEFAULT_FRAME_KEYWORDS

    # Timing (milliseconds unless suffixed _s)
    settle_delay_ms: int = Field(default=2500, ge=0)
    context_settle_ms: int = Field(default=800, ge=0)
    script_timeout_ms: int = Field(default=15_000, gt=0)
    navigation_timeout_ms: int = Field(default=60_000, gt=0)
    wait_for_network_idle: bool = False
    network_idle_timeout_ms: int = Field(default=12_000, gt=0)
    request_budget_s: float = Field(default=90.0, gt=0)

    # Browser
    chrome_path: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1400
    viewport_height: int = 900
    accept_language: str = "zh-CN,zh;q=0.9,en;q=0.8"

    # Concurrency
    max_sessions: int = Field(default=4, ge=1)
    session_acquire_timeout_s: float = Field(default=30.0, gt=0)

    @field_validator("layout")
    @classmethod
    def known_layout(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in LAYOUTS:
            raise ValueError(f"unknown layout {v!r}; expected one of {sorted(LAYOUTS)}")
        return v

    @field_validator("selectors")
    @classmethod
    def non_empty_selectors(cls, v: tuple[str, ...] | None) -> tuple[str, ...] | None:
        if v is None:
            return None
        cleaned = tuple(s.strip() for s in v if s and s.strip())
        if not cleaned:
            raise ValueError("selectors must contain at least one non-empty selector")
        return cleaned

    @field_validator("chrome_path", mode="before")
    @classmethod
    def blank_path_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    def candidate_selectors(self) -> tuple[str, ...]:
        """Return the ordered selector list in effect."""
        if self.selectors is not None:
            return self.selectors
        return LAYOUTS[self.layout]

    def target_url(self, template_id: str) -> str:
        """Return the preview URL for an already-validated *template_id*."""
        return f"{self.base_url}/editor_styles/{template_id}?preview=1"

    def with_overrides(self, **overrides: Any) -> FetcherConfig:
        """Return a validated copy with *overrides* applied (``None`` values ignored)."""
        data = self.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return type(self).model_validate(data)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        profile: str | Path | None = None,
    ) -> FetcherConfig:
        """Build a config from a YAML profile and environment variables.

        *profile* wins over ``TEMPLATEFETCHER_PROFILE``.  Empty environment
        values are treated as unset.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        profile_path = profile or env.get("TEMPLATEFETCHER_PROFILE")
        if profile_path:
            values.update(load_profile(profile_path))

        for var, field in _ENV_FIELDS.items():
            raw = env.get(var)
            if raw is not None and raw.strip():
                values[field] = raw.strip()

        return cls.model_validate(values)


class ServerConfig(BaseModel):
    """Listen address for the HTTP service."""

    host: str = "0.0.0.0"
    port: int = Field(default=10000, gt=0, lt=65536)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.strip().upper()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for var, field in (
            ("HOST", "host"),
            ("PORT", "port"),
            ("TEMPLATEFETCHER_LOG_LEVEL", "log_level"),
        ):
            raw = env.get(var)
            if raw is not None and raw.strip():
                values[field] = raw.strip()
        return cls.model_validate(values)
