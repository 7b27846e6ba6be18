"""Exception hierarchy for template fetching.

Every error raised on purpose by the library derives from
:class:`TemplateFetchError`, so callers that only care about "it failed" can
catch one type, while the HTTP layer maps each subclass to its own status.
"""

from __future__ import annotations


class TemplateFetchError(RuntimeError):
    """Base class for all template fetching failures.

    Attributes:
        target_url -- the preview URL that was (or would have been) visited
    """

    def __init__(self, message: str, target_url: str = "") -> None:
        super().__init__(message)
        self.target_url = target_url


class ValidationError(TemplateFetchError):
    """The template id is missing or not made of decimal digits only."""


class NavigationError(TemplateFetchError):
    """The target page could not be reached or rendered in time."""


class SessionError(TemplateFetchError):
    """The headless browser could not be launched or crashed mid-session."""


class ExtractionFailure(TemplateFetchError):
    """The page loaded but no context yielded usable template content.

    Attributes:
        reason          -- human-readable explanation
        tried_frame_url -- URL of the last frame attempted, ``None`` if the
                           page had no frames besides the main document
        diagnosis       -- short classification of the page
                           (see :mod:`templatefetcher.diagnostics`)
    """

    def __init__(
        self,
        reason: str,
        target_url: str = "",
        tried_frame_url: str | None = None,
        diagnosis: str | None = None,
    ) -> None:
        super().__init__(reason, target_url=target_url)
        self.reason = reason
        self.tried_frame_url = tried_frame_url
        self.diagnosis = diagnosis
