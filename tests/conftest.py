from __future__ import annotations

import pytest

from liquidvote.ops import events
from tests.fixtures.governance_data import ManualScheduler


@pytest.fixture(autouse=True)
def _default_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LIQUIDVOTE_API_BASE_URL", "https://governance.example.org/api")
    monkeypatch.delenv("LIQUIDVOTE_API_TOKEN", raising=False)
    from liquidvote.config import get_settings

    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _clear_activity() -> None:
    events.activity_buffer.clear()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()
