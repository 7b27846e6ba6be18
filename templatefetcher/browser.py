"""Scoped headless Chromium sessions.

A :class:`BrowserSession` bundles everything one request needs (the
Playwright driver, a browser process, a context and a page) and tears all
of it down in :meth:`BrowserSession.close`.  Use it as a context manager::

    with launch_session(config, target_url=url) as session:
        session.page.goto(url)

Sessions are never shared between requests.
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any

from playwright.sync_api import sync_playwright

from templatefetcher.errors import SessionError

if TYPE_CHECKING:
    from templatefetcher.config import FetcherConfig

logger = logging.getLogger(__name__)

_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


class BrowserSession:
    """One browser process with a single configured page."""

    def __init__(
        self,
        playwright: Any = None,
        browser: Any = None,
        context: Any = None,
        page: Any = None,
    ) -> None:
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self._closed = False

    @property
    def page(self) -> Any:
        if self._closed:
            raise SessionError("browser session already closed")
        return self._page

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Release the page, context, browser and driver.

        Safe to call more than once; only the first call does anything.
        Errors while closing are logged at debug level and suppressed.
        """
        if self._closed:
            return
        self._closed = True
        for name, closer in (
            ("context", getattr(self._context, "close", None)),
            ("browser", getattr(self._browser, "close", None)),
            ("playwright", getattr(self._playwright, "stop", None)),
        ):
            if closer is None:
                continue
            try:
                closer()
            except Exception as exc:
                logger.debug("ignoring error while closing %s: %s", name, exc)
        self._page = self._context = self._browser = self._playwright = None

    def __enter__(self) -> BrowserSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def launch_session(
    config: FetcherConfig,
    *,
    target_url: str = "",
    timeout_ms: int | None = None,
) -> BrowserSession:
    """Launch Chromium and return a ready-to-use :class:`BrowserSession`.

    Args:
        config:     Browser settings (user agent, viewport, executable path).
        target_url: Only used to give errors some context.
        timeout_ms: Default navigation/operation timeout for the page;
                    falls back to ``config.navigation_timeout_ms``.

    Raises:
        SessionError: if any launch step fails.  Whatever was started
            before the failure is closed again.
    """
    timeout = timeout_ms if timeout_ms is not None else config.navigation_timeout_ms
    session = BrowserSession()
    try:
        session._playwright = sync_playwright().start()

        launch_kwargs: dict[str, Any] = {"headless": True, "args": list(_LAUNCH_ARGS)}
        if config.chrome_path:
            launch_kwargs["executable_path"] = config.chrome_path
        session._browser = session._playwright.chromium.launch(**launch_kwargs)

        session._context = session._browser.new_context(
            user_agent=config.user_agent,
            java_script_enabled=True,
            viewport={"width": config.viewport_width, "height": config.viewport_height},
            extra_http_headers={"Accept-Language": config.accept_language},
        )
        page = session._context.new_page()
        page.set_default_navigation_timeout(timeout)
        page.set_default_timeout(timeout)
        session._page = page
    except Exception as exc:
        with contextlib.suppress(Exception):
            session.close()
        raise SessionError(
            f"could not launch headless browser: {exc}", target_url=target_url,
        ) from exc

    logger.debug(
        "browser launched (executable=%s, timeout=%dms)",
        config.chrome_path or "bundled", timeout,
    )
    return session
