#!/usr/bin/env python3
"""Lifecycle hook entry point.

Reads the hook payload as JSON on stdin and records a lifecycle event:

    learning-hook session-start < payload.json

The hook never fails its caller. It always prints ``{"continue": true}``
and exits 0; learning errors are logged to stderr.
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from typing import TYPE_CHECKING, Optional

from .errors import LearningError
from .events import record
from .state import learning_enabled, open_state
from .utils import DEFAULT_PROFILE, PROFILE_CHOICES, resolve_state_dir

if TYPE_CHECKING:
    from .state import StateRoot

logger = logging.getLogger(__name__)

HOOK_CATEGORIES = {
    "session-start": "session_start",
    "session-end": "session_end",
    "pre-compact": "pre_compact",
    "stop": "stop",
}

# (framework, source pattern) checked against the first few Python files
FRAMEWORK_SOURCE_MARKERS = [
    ("django", re.compile(r"^\s*(from|import) django\b", re.MULTILINE)),
    ("fastapi", re.compile(r"^\s*(from|import) fastapi\b", re.MULTILINE)),
    ("flask", re.compile(r"^\s*(from|import) flask\b", re.MULTILINE)),
    ("pytorch", re.compile(r"^\s*(from|import) torch\b", re.MULTILINE)),
    ("pandas", re.compile(r"^\s*(from|import) pandas\b", re.MULTILINE)),
]
FRAMEWORK_FILE_MARKERS = [
    ("django", "manage.py"),
    ("node", "package.json"),
    ("rust", "Cargo.toml"),
    ("go", "go.mod"),
    ("python", "pyproject.toml"),
    ("python", "setup.py"),
]
MAX_SCANNED_FILES = 10


def detect_framework(cwd: str) -> str:
    """Guess the framework in use from source imports, then marker files."""
    try:
        files = sorted(os.listdir(cwd))
    except OSError:
        return "unknown"

    for name in [f for f in files if f.endswith(".py")][:MAX_SCANNED_FILES]:
        try:
            with open(os.path.join(cwd, name), "r", encoding="utf-8", errors="ignore") as f:
                content = f.read()
        except OSError:
            continue
        for framework, marker in FRAMEWORK_SOURCE_MARKERS:
            if marker.search(content):
                return framework

    for framework, marker_file in FRAMEWORK_FILE_MARKERS:
        if marker_file in files:
            return framework
    return "unknown"


def handle_hook(state: StateRoot, hook_name: str, data: dict) -> dict:
    """Record the event for one lifecycle hook invocation."""
    category = HOOK_CATEGORIES.get(hook_name)
    if category is None:
        raise ValueError(f"Unknown hook '{hook_name}'. Expected one of: {', '.join(HOOK_CATEGORIES)}")
    if not learning_enabled(state):
        return {"recorded": False, "reason": "learning_disabled"}

    session_id = data.get("session_id") or "unknown"
    cwd = data.get("cwd") or os.getcwd()
    framework = data.get("framework") or detect_framework(cwd)
    payload = {
        key: value
        for key, value in data.items()
        if key not in ("session_id", "cwd", "framework", "transcript_path")
    }
    event_id = record(
        state,
        category,
        payload,
        {"session_id": session_id, "working_directory": cwd, "framework": framework},
    )
    result = {"recorded": True, "event_id": event_id, "category": category, "framework": framework}

    if category == "pre_compact":
        from .checkpoints import save_checkpoint

        checkpoint = save_checkpoint(state, f"pre-compact-{session_id}")
        result["checkpoint_id"] = checkpoint.id
    return result


def read_payload(raw: str) -> dict:
    if not raw.strip():
        return {}
    data = json.loads(raw)
    return data if isinstance(data, dict) else {}


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Record a lifecycle hook event")
    parser.add_argument("hook", choices=sorted(HOOK_CATEGORIES))
    parser.add_argument("--profile", choices=PROFILE_CHOICES, default=DEFAULT_PROFILE)
    parser.add_argument("--state-dir", default=None)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, stream=sys.stderr, format="[learning-hook] %(levelname)s %(message)s")

    output: dict = {"continue": True}
    try:
        data = read_payload(sys.stdin.read())
        state = open_state(resolve_state_dir(args.profile, args.state_dir))
        output.update(handle_hook(state, args.hook, data))
    except (LearningError, OSError, ValueError) as exc:
        logger.warning("Hook %s failed: %s", args.hook, exc)
        output["recorded"] = False
        output["error"] = str(exc)
    print(json.dumps(output))


if __name__ == "__main__":
    main()
