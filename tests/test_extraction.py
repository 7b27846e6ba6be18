"""Tests for templatefetcher.extraction (selector procedure and frame ranking)."""

from __future__ import annotations

import time

import pytest
from fakes import FakeFrame, FakeHandle
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from templatefetcher.config import DEFAULT_FRAME_KEYWORDS, LAYOUTS
from templatefetcher.extraction import (
    DEFAULT_SCRIPT_TIMEOUT_MS,
    EXTRACT_SCRIPT,
    extract_from_context,
    frame_is_preferred,
    is_sufficient,
    rank_frames,
    run_extract_script,
)
from templatefetcher.throttle import Deadline

FILLER = "模板正文内容 " * 60


def _page(body: str) -> str:
    return f"<html><head><title>t</title></head><body>{body}</body></html>"


# ---------------------------------------------------------------------------
# is_sufficient
# ---------------------------------------------------------------------------

class TestIsSufficient:
    def test_none_and_empty(self):
        assert is_sufficient(None, 10) is False
        assert is_sufficient("", 10) is False

    def test_too_short(self):
        assert is_sufficient("<p>hi</p>", 300) is False

    def test_length_must_exceed_threshold(self):
        html = "<p>" + "x" * 293 + "</p>"
        assert len(html) == 300
        assert is_sufficient(html, 300) is False
        assert is_sufficient(html, 299) is True

    def test_surrounding_whitespace_not_counted(self):
        html = "<p>" + "x" * 10 + "</p>"
        assert is_sufficient("   " * 50 + html + "\n" * 50, 20) is False

    def test_plain_text_is_not_html(self):
        assert is_sufficient("x" * 500, 300) is False

    def test_long_element(self):
        assert is_sufficient(f"<section>{FILLER}</section>", 300) is True


# ---------------------------------------------------------------------------
# extract_from_context
# ---------------------------------------------------------------------------

class TestExtractFromContext:
    def test_higher_priority_selector_wins(self):
        html = _page(
            f'<div class="mg-content">LOW {FILLER}</div>'
            f'<div id="fullpage" class="mg-content">HIGH {FILLER}</div>',
        )
        match = extract_from_context(
            FakeFrame(html), ("#fullpage.mg-content", ".mg-content"), 300,
        )
        assert match is not None
        assert match.selector == "#fullpage.mg-content"
        assert "HIGH" in match.html
        assert "LOW" not in match.html

    def test_short_match_is_skipped_for_next_selector(self):
        html = _page(
            '<div id="fullpage" class="mg-content">tiny</div>'
            f'<div class="other">{FILLER}</div>',
        )
        match = extract_from_context(FakeFrame(html), ("#fullpage", ".other"), 300)
        assert match is not None
        assert match.selector == ".other"

    def test_falls_back_to_body(self):
        html = _page(f"<main><p>{FILLER}</p></main>")
        match = extract_from_context(FakeFrame(html), LAYOUTS["fullpage"], 300)
        assert match is not None
        assert match.selector == "body"
        assert match.html.startswith("<body>")

    def test_short_body_yields_none(self):
        html = _page('<div id="app"></div>')
        assert extract_from_context(FakeFrame(html), LAYOUTS["fullpage"], 300) is None

    def test_no_body_yields_none(self):
        assert extract_from_context(FakeFrame(""), LAYOUTS["fullpage"], 300) is None

    def test_fixture_layouts(self, fullpage_html, wechat_html):
        full = extract_from_context(FakeFrame(fullpage_html), LAYOUTS["fullpage"], 300)
        assert full is not None and full.selector == "#fullpage.mg-content"
        wx = extract_from_context(FakeFrame(wechat_html), LAYOUTS["wechat"], 300)
        assert wx is not None and wx.selector == "#js_content"

    def test_settle_wait_applied(self):
        frame = FakeFrame(_page(FILLER))
        extract_from_context(frame, ("body",), 10, settle_ms=800)
        assert frame.waits == [800]

    def test_no_settle_wait_by_default(self):
        frame = FakeFrame(_page(FILLER))
        extract_from_context(frame, ("body",), 10)
        assert frame.waits == []

    def test_serializable_payload(self):
        seen = {}

        class Recorder:
            url = "https://example.com/frame"

            def wait_for_function(self, expression, arg=None, timeout=None):
                seen["script"] = expression
                seen["arg"] = arg
                seen["timeout"] = timeout
                return FakeHandle({"html": "", "selector": "body"})

        assert extract_from_context(Recorder(), ("#a", ".b"), 123) is None
        assert seen["script"] == EXTRACT_SCRIPT
        assert seen["arg"] == {"selectors": ["#a", ".b"], "minLength": 123}
        assert seen["timeout"] == DEFAULT_SCRIPT_TIMEOUT_MS

    def test_result_is_stripped_and_carries_url(self):
        inner = f"<div>{FILLER}</div>"

        class Padded:
            url = "https://example.com/preview"

            def wait_for_function(self, expression, arg=None, timeout=None):
                return FakeHandle({"html": "\n   " + inner + "  \n", "selector": "div"})

        match = extract_from_context(Padded(), ("div",), 300)
        assert match is not None
        assert match.html == inner
        assert match.url == "https://example.com/preview"

    def test_unexpected_payload_yields_none(self):
        class Weird:
            url = ""

            def wait_for_function(self, expression, arg=None, timeout=None):
                return FakeHandle("<div>not a dict</div>")

        assert extract_from_context(Weird(), ("div",), 1) is None

    def test_handle_disposed(self):
        handle = FakeHandle({"html": f"<p>{FILLER}</p>", "selector": "p"})

        class Frame:
            url = ""

            def wait_for_function(self, expression, arg=None, timeout=None):
                return handle

        run_extract_script(Frame(), ("p",), 10)
        assert handle.disposed is True

    def test_explicit_script_timeout(self):
        frame = FakeFrame(_page(FILLER))
        extract_from_context(frame, ("body",), 10, timeout_ms=2000)
        assert frame.script_timeouts == [2000]

    def test_deadline_clamps_settle_and_script_timeout(self):
        frame = FakeFrame(_page(FILLER))
        extract_from_context(
            frame, ("body",), 10, settle_ms=60_000, timeout_ms=60_000, deadline=Deadline(0.5),
        )
        assert 1 <= frame.waits[0] <= 500
        assert 1 <= frame.script_timeouts[0] <= 500

    def test_spent_deadline_still_gives_positive_timeouts(self):
        frame = FakeFrame(_page(FILLER))
        deadline = Deadline(0.001)
        time.sleep(0.01)
        extract_from_context(frame, ("body",), 10, settle_ms=800, deadline=deadline)
        assert frame.waits == [1]
        assert frame.script_timeouts == [1]

    def test_stuck_script_raises_timeout(self):
        frame = FakeFrame(_page(FILLER), script_delay=5)
        started = time.monotonic()
        with pytest.raises(PlaywrightTimeoutError):
            extract_from_context(frame, ("body",), 10, timeout_ms=50)
        assert time.monotonic() - started < 2


# ---------------------------------------------------------------------------
# Frame ranking
# ---------------------------------------------------------------------------

class TestRankFrames:
    def test_preferred_frames_first_in_document_order(self):
        main = FakeFrame(url="https://www.135editor.com/editor_styles/1?preview=1")
        ads = FakeFrame(url="https://ads.example.com/banner")
        preview = FakeFrame(url="https://www.135editor.com/preview/1")
        other = FakeFrame(url="about:blank")
        render = FakeFrame(url="https://cdn.example.com/render.html")

        ranked = rank_frames(
            [main, ads, preview, other, render],
            main_frame=main,
            keywords=DEFAULT_FRAME_KEYWORDS,
        )
        assert [c.frame for c in ranked] == [preview, render, ads, other]
        assert [c.preferred for c in ranked] == [True, True, False, False]

    def test_main_frame_excluded(self):
        main = FakeFrame(url="https://x/preview")
        ranked = rank_frames([main], main_frame=main, keywords=DEFAULT_FRAME_KEYWORDS)
        assert ranked == []

    def test_order_kept_without_keywords(self):
        frames = [FakeFrame(url=f"https://x/{i}") for i in range(4)]
        ranked = rank_frames(frames)
        assert [c.frame for c in ranked] == frames

    def test_keyword_match_is_case_insensitive(self):
        assert frame_is_preferred("https://x/PREVIEW?id=1", ["preview"]) is True
        assert frame_is_preferred("https://x/Editor_Styles/1", ["editor_styles"]) is True
        assert frame_is_preferred("https://x/ads", ["preview"]) is False
        assert frame_is_preferred("", ["preview"]) is False
