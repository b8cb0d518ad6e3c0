"""Shared test fixtures.

No test talks to AWS: transports, Lambda and Cognito clients are faked
per test.  Settings are re-read for every test so ``monkeypatch.setenv``
on ``LOANSTREAM_*`` variables takes effect.
"""

from __future__ import annotations

import pytest

from loanstream.console.settings import _get_settings_cached


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    _get_settings_cached.cache_clear()


@pytest.fixture(autouse=True)
def _reset_sse_app_status() -> None:
    """sse-starlette keeps a module-level exit event bound to the first loop that used it."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
