"""State directory layout and identity record."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .errors import StorageError
from .utils import read_json_file, utc_now, write_json_file

logger = logging.getLogger(__name__)

STATE_VERSION = "1.0.0"
SYSTEM_NAME = "learning-tool"
FOCUS_AREAS = [
    "workflow-patterns",
    "error-fixes",
    "framework-selection",
    "testing-patterns",
]


@dataclass(frozen=True)
class StateRoot:
    """Paths of one learning state directory."""

    root: str

    @property
    def events_file(self) -> str:
        return os.path.join(self.root, "observations.jsonl")

    @property
    def archive_dir(self) -> str:
        return os.path.join(self.root, "observations.archive")

    @property
    def instincts_dir(self) -> str:
        return os.path.join(self.root, "instincts", "personal")

    @property
    def inherited_dir(self) -> str:
        return os.path.join(self.root, "instincts", "inherited")

    @property
    def evolved_dir(self) -> str:
        return os.path.join(self.root, "evolved")

    @property
    def ledger_file(self) -> str:
        return os.path.join(self.evolved_dir, "evolution-log.jsonl")

    @property
    def checkpoints_dir(self) -> str:
        return os.path.join(self.root, "checkpoints")

    @property
    def latest_checkpoint_file(self) -> str:
        return os.path.join(self.checkpoints_dir, "latest.json")

    @property
    def identity_file(self) -> str:
        return os.path.join(self.root, "identity.json")

    def artifact_dir(self, kind: str) -> str:
        """Directory for generated artifacts of a kind (skill -> evolved/skills)."""
        return os.path.join(self.evolved_dir, f"{kind}s")

    def pattern_file(self, category: str) -> str:
        return os.path.join(self.instincts_dir, f"{category}.json")

    def checkpoint_file(self, checkpoint_id: str) -> str:
        return os.path.join(self.checkpoints_dir, f"{checkpoint_id}.json")


def ensure_layout(state: StateRoot) -> None:
    """Create the directory layout and identity record if missing."""
    dirs = [
        state.root,
        state.archive_dir,
        state.instincts_dir,
        state.inherited_dir,
        state.artifact_dir("skill"),
        state.artifact_dir("command"),
        state.artifact_dir("agent"),
        state.checkpoints_dir,
    ]
    try:
        for directory in dirs:
            os.makedirs(directory, exist_ok=True)
        if not os.path.exists(state.identity_file):
            write_json_file(state.identity_file, default_identity())
            logger.info("Created identity record at %s", state.identity_file)
    except OSError as exc:
        raise StorageError(f"Cannot initialize learning state at {state.root}: {exc}") from exc


def default_identity() -> dict:
    return {
        "system": SYSTEM_NAME,
        "version": STATE_VERSION,
        "created_at": utc_now(),
        "learning_enabled": True,
        "focus_areas": list(FOCUS_AREAS),
    }


def open_state(path: str) -> StateRoot:
    """Open a learning state directory, creating its layout."""
    state = StateRoot(os.path.abspath(os.path.expanduser(path)))
    ensure_layout(state)
    return state


def init_state(path: str) -> dict:
    """Initialize a state directory and describe it."""
    state = open_state(path)
    return {
        "ok": True,
        "state_dir": state.root,
        "identity": load_identity(state),
    }


def load_identity(state: StateRoot) -> Optional[dict]:
    """Load the identity record, None when missing or unreadable."""
    if not os.path.exists(state.identity_file):
        return None
    try:
        identity = read_json_file(state.identity_file)
    except (ValueError, OSError) as exc:
        logger.warning("Unreadable identity record %s: %s", state.identity_file, exc)
        return None
    return identity if isinstance(identity, dict) else None


def learning_enabled(state: StateRoot) -> bool:
    identity = load_identity(state)
    if identity is None:
        return True
    return bool(identity.get("learning_enabled", True))
