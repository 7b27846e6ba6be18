"""templatefetcher.extraction: selector-priority content extraction.

The in-page script below is the only place where Python and page JavaScript
meet.  Its contract is JSON-serialisable:

* input:  ``{"selectors": [str, ...], "minLength": int}``
* output: ``{"html": str, "selector": str}``

The script returns the outerHTML of the first selector whose markup is longer
than ``minLength``; if none qualifies it returns ``document.body.outerHTML``
tagged with the pseudo-selector ``"body"``.  A document without a body
yields ``{"html": "", "selector": "body"}``: the script runs through
``wait_for_function``, which only resolves on a truthy value, so it never
returns ``null``.  The host side re-checks the length after stripping and
makes sure the markup parses to at least one element.

Usage::

    match = extract_from_context(page, ("#fullpage.mg-content",), 300)
    if match is None:
        for candidate in rank_frames(page.frames, main_frame=page.main_frame):
            ...
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from bs4 import BeautifulSoup

if TYPE_CHECKING:
    from templatefetcher.throttle import Deadline

logger = logging.getLogger(__name__)

BODY_SELECTOR = "body"

# Default cap for one run of the extraction script
DEFAULT_SCRIPT_TIMEOUT_MS = 15_000

EXTRACT_SCRIPT = """({selectors, minLength}) => {
    for (const sel of selectors) {
        let el = null;
        try {
            el = document.querySelector(sel);
        } catch (e) {
            continue;
        }
        if (el && el.outerHTML && el.outerHTML.length > minLength) {
            return {html: el.outerHTML, selector: sel};
        }
    }
    if (document.body) {
        return {html: document.body.outerHTML, selector: "body"};
    }
    return {html: "", selector: "body"};
}"""


@dataclass
class ContextMatch:
    """Markup found in one rendering context."""

    html: str       # stripped outerHTML
    selector: str   # selector that matched, or "body"
    url: str = ""   # URL of the context it came from


@dataclass
class FrameCandidate:
    """An embedded frame queued for the fallback pass."""

    frame: Any
    url: str
    preferred: bool = False


def is_sufficient(html: str | None, min_length: int) -> bool:
    """Return True when *html* is long enough and holds at least one element."""
    if not html:
        return False
    stripped = html.strip()
    if len(stripped) <= min_length:
        return False
    return BeautifulSoup(stripped, "html.parser").find() is not None


def run_extract_script(
    context: Any,
    selectors: Sequence[str],
    min_length: int,
    *,
    timeout_ms: int = DEFAULT_SCRIPT_TIMEOUT_MS,
) -> Any:
    """Run :data:`EXTRACT_SCRIPT` in *context* and return its JSON result.

    Bounded by *timeout_ms*: a renderer stuck in page JavaScript raises
    Playwright's ``TimeoutError`` instead of blocking.
    """
    payload = {"selectors": list(selectors), "minLength": int(min_length)}
    handle = context.wait_for_function(EXTRACT_SCRIPT, arg=payload, timeout=timeout_ms)
    try:
        return handle.json_value()
    finally:
        handle.dispose()


def extract_from_context(
    context: Any,
    selectors: Sequence[str],
    min_length: int,
    *,
    settle_ms: int = 0,
    timeout_ms: int = DEFAULT_SCRIPT_TIMEOUT_MS,
    deadline: Deadline | None = None,
) -> ContextMatch | None:
    """Run the selector procedure inside *context* (a Playwright page or frame).

    When *deadline* is given, both the settle wait and the script timeout
    are clamped to the time it has left.

    Returns a :class:`ContextMatch` when the context yields sufficient
    content, else ``None``.  Playwright errors (detached frame, crashed
    target, timeout) propagate to the caller.
    """
    if deadline is not None:
        settle_ms = deadline.clamp_ms(settle_ms) if settle_ms > 0 else 0
        timeout_ms = deadline.clamp_ms(timeout_ms)
    if settle_ms > 0:
        context.wait_for_timeout(settle_ms)

    raw = run_extract_script(context, selectors, min_length, timeout_ms=timeout_ms)
    url = _context_url(context)

    if not isinstance(raw, dict) or not isinstance(raw.get("html"), str):
        logger.debug("unexpected extraction payload from %s: %r", url, type(raw).__name__)
        return None

    html = raw["html"]
    selector = str(raw.get("selector") or BODY_SELECTOR)
    if not is_sufficient(html, min_length):
        logger.debug(
            "context %s matched %s but content is too short (%d chars)",
            url or "<main>", selector, len(html.strip()),
        )
        return None
    return ContextMatch(html=html.strip(), selector=selector, url=url)


def frame_is_preferred(url: str, keywords: Iterable[str]) -> bool:
    """Return True when *url* contains any of *keywords* (case-insensitive)."""
    lowered = (url or "").lower()
    return any(k.lower() in lowered for k in keywords if k)


def rank_frames(
    frames: Iterable[Any],
    *,
    main_frame: Any = None,
    keywords: Iterable[str] = (),
) -> list[FrameCandidate]:
    """Order *frames* for the fallback pass.

    Keyword-matching frames come first; relative order is otherwise kept.
    *main_frame* is skipped because the primary pass already covered it.
    """
    keywords = tuple(keywords)
    candidates = [
        FrameCandidate(frame=f, url=_context_url(f), preferred=False)
        for f in frames
        if main_frame is None or f is not main_frame
    ]
    for c in candidates:
        c.preferred = frame_is_preferred(c.url, keywords)
    # sorted() is stable, so ties keep document order
    return sorted(candidates, key=lambda c: not c.preferred)


def _context_url(context: Any) -> str:
    url = getattr(context, "url", "")
    if callable(url):
        url = url()
    return url or ""
