"""Pytest configuration and fixtures for the learning tool tests."""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pytest_bdd import given

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from learning_tool.state import StateRoot, open_state

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def ts(seconds: float = 0) -> str:
    """ISO timestamp a number of seconds after BASE_TIME."""
    moment = BASE_TIME + timedelta(seconds=seconds)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class BDDTestContext:
    """Holds test state across steps."""

    def __init__(self):
        self.state: StateRoot | None = None
        self.session_id: str = "session-1"
        self.clock: float = 0
        self.last_event_id: str | None = None
        self.recorded_ids: list[str] = []
        self.last_checkpoint_id: str | None = None
        self.last_result = None
        self.last_error: Exception | None = None
        self.patterns_by_name: dict[str, str] = {}
        self.checkpoint_ids: dict[str, str] = {}
        self.live_count_before: int = 0

    def tick(self, seconds: float = 1) -> str:
        self.clock += seconds
        return ts(self.clock)


@pytest.fixture
def state(tmp_path: Path) -> StateRoot:
    """A fresh, isolated learning state directory."""
    return open_state(str(tmp_path / "learning"))


@pytest.fixture
def test_context(tmp_path: Path):
    """Create a fresh test context with a temporary state directory."""
    ctx = BDDTestContext()
    ctx.state = open_state(str(tmp_path / "learning"))
    yield ctx


@given("a new learning state")
def given_new_learning_state(test_context: BDDTestContext):
    """State is already created by fixture."""
    pass
