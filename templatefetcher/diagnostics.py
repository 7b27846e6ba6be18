"""templatefetcher.diagnostics: explain why a rendered page yielded nothing.

Pure function, no network.  Classifies the main document's HTML by fast
regex matching so an :class:`~templatefetcher.errors.ExtractionFailure` can
say *why* the content was missing::

    from templatefetcher.diagnostics import diagnose_page

    diagnosis = diagnose_page(html)
    print(diagnosis.kind, diagnosis.detail)
"""

from __future__ import annotations

import re
from dataclasses import dataclass

LOGIN_REQUIRED = "login_required"
CHALLENGE = "challenge"
EMPTY = "empty"
STRUCTURE_CHANGED = "structure_changed"


@dataclass
class PageDiagnosis:
    """Classification of a page that produced no usable content."""

    kind: str    # login_required | challenge | empty | structure_changed
    detail: str  # human-readable description


# ---------------------------------------------------------------------------
# Compiled patterns (evaluated once at import time)
# ---------------------------------------------------------------------------

_LOGIN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"请先登录|登录后|扫码登录|会员登录", re.IGNORECASE),
    re.compile(r"<input[^>]+type\s*=\s*[\"']password", re.IGNORECASE),
    re.compile(r"/user/login|/login\b|passport", re.IGNORECASE),
    re.compile(r"\bsign[\s-]?in\b|\blog[\s-]?in\b", re.IGNORECASE),
)

_CHALLENGE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"just a moment", re.IGNORECASE),
    re.compile(r"challenges\.cloudflare\.com|cf-challenge", re.IGNORECASE),
    re.compile(r"g-recaptcha|h-captcha|hcaptcha\.com|cf-turnstile", re.IGNORECASE),
    re.compile(r"滑动验证|安全验证|人机验证", re.IGNORECASE),
)

_TAG_RE = re.compile(r"<[^>]+>")
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _visible_text(html: str) -> str:
    text = _SCRIPT_STYLE_RE.sub(" ", html)
    return " ".join(_TAG_RE.sub(" ", text).split())


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def diagnose_page(html: str | None) -> PageDiagnosis:
    """Classify a rendered page that yielded no template content.

    Checks run in priority order: challenge pages first (they often also
    contain login wording), then login walls, then empty shells.  Anything
    else is assumed to be a layout the selectors no longer match.
    """
    html = html or ""

    challenge_hits = sum(1 for p in _CHALLENGE_PATTERNS if p.search(html))
    if challenge_hits:
        return PageDiagnosis(
            kind=CHALLENGE,
            detail=f"bot challenge or captcha detected ({challenge_hits} signal(s))",
        )

    login_hits = sum(1 for p in _LOGIN_PATTERNS if p.search(html))
    if login_hits >= 2:
        return PageDiagnosis(
            kind=LOGIN_REQUIRED,
            detail=f"page asks for a login ({login_hits} signal(s))",
        )

    text = _visible_text(html)
    if len(text) < 20:
        return PageDiagnosis(
            kind=EMPTY,
            detail=f"page rendered almost no visible text ({len(text)} chars)",
        )

    return PageDiagnosis(
        kind=STRUCTURE_CHANGED,
        detail="page has content but no candidate selector matched",
    )
