"""templatefetcher.extractor - fetch one rendered template from the preview page.

Basic usage::

    from templatefetcher import fetch_template_html

    html = fetch_template_html("169311")

With explicit configuration and result metadata::

    from templatefetcher.config import FetcherConfig
    from templatefetcher.extractor import TemplateExtractor

    extractor = TemplateExtractor(FetcherConfig(layout="wechat"))
    result = extractor.fetch("169311")
    print(result.selector, result.frame_url, len(result.html))

Every call launches its own browser and closes it before returning, also
when the call raises.
"""

from __future__ import annotations

import functools
import logging
import re
import threading
import time
from collections.abc import Callable
from typing import Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from templatefetcher.browser import launch_session
from templatefetcher.config import FetcherConfig
from templatefetcher.diagnostics import diagnose_page
from templatefetcher.errors import (
    ExtractionFailure,
    NavigationError,
    SessionError,
    ValidationError,
)
from templatefetcher.extraction import ContextMatch, extract_from_context, rank_frames
from templatefetcher.items import TemplateHtml
from templatefetcher.throttle import Deadline, SessionGate

logger = logging.getLogger(__name__)

_TEMPLATE_ID_RE = re.compile(r"\d+", re.ASCII)

# Substrings of Playwright error messages meaning the browser itself is gone
_SESSION_LOST_MARKERS = ("has been closed", "Target crashed", "Browser closed")

SessionFactory = Callable[..., Any]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_template_id(template_id: object) -> str:
    """Return the stripped *template_id* or raise :class:`ValidationError`."""
    tid = "" if template_id is None else str(template_id).strip()
    if not tid:
        raise ValidationError("missing template id, e.g. ?id=169311")
    if not _TEMPLATE_ID_RE.fullmatch(tid):
        raise ValidationError(f"template id must contain digits only, got {tid!r}")
    return tid


def _session_lost(exc: BaseException) -> bool:
    message = str(exc)
    return any(marker in message for marker in _SESSION_LOST_MARKERS)


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------

class TemplateExtractor:
    """Render template preview pages and pull out the template markup.

    Args:
        config:          Settings; defaults to ``FetcherConfig()``.
        session_factory: Callable ``(config, *, target_url, timeout_ms)``
                         returning a context manager with a ``page``
                         attribute.  Defaults to
                         :func:`~templatefetcher.browser.launch_session`.
        gate:            Concurrency cap shared by all calls on this
                         extractor; built from *config* when omitted.
    """

    def __init__(
        self,
        config: FetcherConfig | None = None,
        *,
        session_factory: SessionFactory | None = None,
        gate: SessionGate | None = None,
    ) -> None:
        self.config = config or FetcherConfig()
        self._session_factory = session_factory
        self.gate = gate or SessionGate(
            self.config.max_sessions, self.config.session_acquire_timeout_s,
        )

    def target_url(self, template_id: object) -> str:
        return self.config.target_url(validate_template_id(template_id))

    def fetch(self, template_id: object) -> TemplateHtml:
        """Fetch the rendered markup of *template_id*.

        Raises:
            ValidationError:   *template_id* is not digits-only; no browser
                               is launched.
            SessionError:      the browser could not start or crashed.
            NavigationError:   the page could not be loaded or processed
                               within the request budget.
            ExtractionFailure: the page loaded but held no usable content.
        """
        started = time.monotonic()
        tid = validate_template_id(template_id)
        target_url = self.config.target_url(tid)
        deadline = Deadline(self.config.request_budget_s)
        factory = self._session_factory or launch_session
        logger.info("fetch: template %s -> %s", tid, target_url)

        acquire_timeout = min(self.config.session_acquire_timeout_s, deadline.remaining())
        with self.gate.slot(acquire_timeout, target_url=target_url):
            deadline.check("waiting for a browser session", target_url)
            try:
                with factory(
                    self.config,
                    target_url=target_url,
                    timeout_ms=deadline.clamp_ms(self.config.navigation_timeout_ms),
                ) as session:
                    logger.debug("[%s] session acquired", tid)
                    match, from_frame = self._run(session.page, tid, target_url, deadline)
            finally:
                logger.debug("[%s] session released", tid)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "fetch: template %s ok (%d chars via %s%s, %dms)",
            tid, len(match.html), match.selector,
            f" in frame {match.url}" if from_frame else "", elapsed_ms,
        )
        return TemplateHtml(
            template_id=tid,
            html=match.html,
            target_url=target_url,
            frame_url=match.url if from_frame else None,
            selector=match.selector,
            elapsed_ms=elapsed_ms,
        )

    # ------------------------------------------------------------------
    # Request stages
    # ------------------------------------------------------------------

    def _run(
        self, page: Any, tid: str, target_url: str, deadline: Deadline,
    ) -> tuple[ContextMatch, bool]:
        logger.debug("[%s] navigating", tid)
        self._navigate(page, target_url, deadline)

        logger.debug("[%s] settling for %dms", tid, self.config.settle_delay_ms)
        deadline.check("settling", target_url)
        if self.config.settle_delay_ms:
            page.wait_for_timeout(deadline.clamp_ms(self.config.settle_delay_ms))

        logger.debug("[%s] extracting from main document", tid)
        deadline.check("extracting", target_url)
        match = self._extract_primary(page, target_url, deadline)
        deadline.check("extracting from the main document", target_url)
        if match is not None:
            return match, False

        logger.debug("[%s] main document too short, trying frames", tid)
        match, tried_frame_url = self._extract_frames(page, target_url, deadline)
        if match is not None:
            return match, True

        raise self._failure(page, tid, target_url, tried_frame_url)

    def _navigate(self, page: Any, target_url: str, deadline: Deadline) -> None:
        try:
            response = page.goto(
                target_url,
                wait_until="domcontentloaded",
                timeout=deadline.clamp_ms(self.config.navigation_timeout_ms),
            )
        except PlaywrightTimeoutError as exc:
            raise NavigationError(
                f"timed out loading {target_url}", target_url=target_url,
            ) from exc
        except PlaywrightError as exc:
            if _session_lost(exc):
                raise SessionError(
                    f"browser died while loading {target_url}: {exc}", target_url=target_url,
                ) from exc
            raise NavigationError(
                f"could not load {target_url}: {exc}", target_url=target_url,
            ) from exc

        status = getattr(response, "status", None)
        logger.debug("DOM content loaded for %s (status=%s)", target_url, status)

        if not self.config.wait_for_network_idle:
            return
        deadline.check("waiting for network idle", target_url)
        try:
            page.wait_for_load_state(
                "networkidle",
                timeout=deadline.clamp_ms(self.config.network_idle_timeout_ms),
            )
            logger.debug("network idle reached for %s", target_url)
        except PlaywrightTimeoutError:
            logger.debug("network idle timed out for %s - continuing", target_url)
        except PlaywrightError as exc:
            if _session_lost(exc):
                raise SessionError(
                    f"browser died while loading {target_url}: {exc}", target_url=target_url,
                ) from exc
            logger.debug("network idle wait failed for %s: %s - continuing", target_url, exc)

    def _extract(self, context: Any, target_url: str, deadline: Deadline) -> ContextMatch | None:
        try:
            return extract_from_context(
                context,
                self.config.candidate_selectors(),
                self.config.min_content_length,
                settle_ms=self.config.context_settle_ms,
                timeout_ms=self.config.script_timeout_ms,
                deadline=deadline,
            )
        except PlaywrightTimeoutError as exc:
            # Too little budget left for a full script run: the deadline cut it short
            if deadline.remaining() * 1000 < self.config.script_timeout_ms:
                raise deadline.exceeded("extracting", target_url) from exc
            raise

    def _extract_primary(
        self, page: Any, target_url: str, deadline: Deadline,
    ) -> ContextMatch | None:
        try:
            return self._extract(page, target_url, deadline)
        except PlaywrightTimeoutError as exc:
            raise NavigationError(
                f"page stopped responding during extraction: {exc}", target_url=target_url,
            ) from exc
        except PlaywrightError as exc:
            if _session_lost(exc):
                raise SessionError(
                    f"browser died during extraction: {exc}", target_url=target_url,
                ) from exc
            logger.warning("main document extraction failed for %s: %s", target_url, exc)
            return None

    def _extract_frames(
        self, page: Any, target_url: str, deadline: Deadline,
    ) -> tuple[ContextMatch | None, str | None]:
        candidates = rank_frames(
            page.frames,
            main_frame=getattr(page, "main_frame", None),
            keywords=self.config.frame_keywords,
        )
        # None until a frame has been attempted; a blank frame URL stays ""
        tried: str | None = None
        for candidate in candidates:
            deadline.check("searching frames", target_url)
            tried = candidate.url
            logger.debug(
                "trying frame %s (preferred=%s)", candidate.url or "<blank>", candidate.preferred,
            )
            try:
                match = self._extract(candidate.frame, target_url, deadline)
            except PlaywrightError as exc:
                if _session_lost(exc):
                    raise SessionError(
                        f"browser died during frame extraction: {exc}", target_url=target_url,
                    ) from exc
                logger.debug("frame %s failed: %s", candidate.url or "<blank>", exc)
                match = None
            deadline.check("searching frames", target_url)
            if match is not None:
                return match, candidate.url
        return None, tried

    def _failure(
        self, page: Any, tid: str, target_url: str, tried_frame_url: str | None,
    ) -> ExtractionFailure:
        try:
            html = page.content()
        except PlaywrightError as exc:
            logger.debug("could not read page content for diagnosis: %s", exc)
            html = ""
        diagnosis = diagnose_page(html)
        logger.warning(
            "fetch: template %s yielded no usable HTML (%s); last frame tried: %s",
            tid, diagnosis.kind,
            "none" if tried_frame_url is None else tried_frame_url or "<blank>",
        )
        return ExtractionFailure(
            "no usable template HTML found; the page structure may have changed "
            f"or a login may be required ({diagnosis.detail})",
            target_url=target_url,
            tried_frame_url=tried_frame_url,
            diagnosis=diagnosis.kind,
        )


_shared_lock = threading.Lock()


@functools.lru_cache(maxsize=8)
def _cached_extractor(config: FetcherConfig) -> TemplateExtractor:
    return TemplateExtractor(config)


def _shared_extractor(config: FetcherConfig) -> TemplateExtractor:
    # held across the lookup so concurrent first calls get the same extractor
    with _shared_lock:
        return _cached_extractor(config)


def fetch_template_html(template_id: object, config: FetcherConfig | None = None) -> str:
    """Return the trimmed template markup for *template_id*.

    Convenience wrapper around :meth:`TemplateExtractor.fetch`; raises the
    same errors.  Calls with equal configs share one extractor, and so one
    session cap.
    """
    return _shared_extractor(config or FetcherConfig()).fetch(template_id).html
