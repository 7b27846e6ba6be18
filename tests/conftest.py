"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def _read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


@pytest.fixture
def fullpage_html() -> str:
    return _read_fixture("fullpage.html")


@pytest.fixture
def wechat_html() -> str:
    return _read_fixture("wechat.html")


@pytest.fixture
def shell_html() -> str:
    return _read_fixture("shell.html")


@pytest.fixture
def login_html() -> str:
    return _read_fixture("login.html")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep the developer's environment out of config-dependent tests."""
    for var in (
        "CHROME_PATH",
        "HOST",
        "PORT",
        "TEMPLATEFETCHER_PROFILE",
        "TEMPLATEFETCHER_LAYOUT",
        "TEMPLATEFETCHER_MAX_SESSIONS",
        "TEMPLATEFETCHER_SETTLE_MS",
        "TEMPLATEFETCHER_NETWORK_IDLE",
        "TEMPLATEFETCHER_MIN_LENGTH",
        "TEMPLATEFETCHER_BUDGET_S",
        "TEMPLATEFETCHER_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _fresh_shared_extractors():
    from templatefetcher.extractor import _cached_extractor

    _cached_extractor.cache_clear()
    yield
    _cached_extractor.cache_clear()
