"""Utility functions for the learning tool."""
from __future__ import annotations

import json
import os
import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Optional

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

PROFILE_STATE_DIRS = {
    "claude": "~/.claude/learning",
    "codex": "~/.codex/learning",
    "shared": "~/.local/share/llm-learning",
}
PROFILE_CHOICES = tuple(PROFILE_STATE_DIRS.keys())
DEFAULT_PROFILE = os.environ.get("LEARNING_PROFILE", "claude").strip().lower() or "claude"
if DEFAULT_PROFILE not in PROFILE_STATE_DIRS:
    DEFAULT_PROFILE = "claude"

_ID_ALPHABET = string.ascii_lowercase + string.digits
_last_stamp = 0


def utc_now() -> str:
    """Get current UTC time in ISO format with millisecond precision."""
    return datetime.now(timezone.utc).strftime(ISO_FORMAT)[:-4] + "Z"


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO timestamp, returning None when it cannot be read."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def next_stamp() -> int:
    """Microsecond stamp, strictly increasing within this process."""
    global _last_stamp
    stamp = time.time_ns() // 1000
    if stamp <= _last_stamp:
        stamp = _last_stamp + 1
    _last_stamp = stamp
    return stamp


def make_id(prefix: str) -> str:
    """Build an id that sorts lexicographically in creation order."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"{prefix}_{next_stamp():016d}_{suffix}"


def resolve_state_dir(profile: str, explicit_dir: str | None) -> str:
    """Resolve the learning state directory from profile, env or explicit path."""
    if explicit_dir:
        return os.path.expanduser(explicit_dir)
    env_dir = os.environ.get("LEARNING_DIR", "").strip()
    if env_dir:
        return os.path.expanduser(env_dir)
    profile_name = (profile or DEFAULT_PROFILE).strip().lower()
    if profile_name not in PROFILE_STATE_DIRS:
        raise ValueError(f"Unknown profile '{profile_name}'. Expected one of: {', '.join(PROFILE_CHOICES)}")
    return os.path.expanduser(PROFILE_STATE_DIRS[profile_name])


def safe_name(name: Any) -> bool:
    """True when a name can be used as a single file name inside the state root."""
    return (
        isinstance(name, str)
        and bool(name)
        and os.sep not in name
        and "/" not in name
        and name not in (".", "..")
    )


def canonical_json(value: Any) -> str:
    """Serialize a value so structurally equal values produce equal text."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def summarize_value(value: Any, length: int) -> str:
    """Shorten the JSON form of a value for listings."""
    text = json.dumps(value, ensure_ascii=False)
    if len(text) <= length:
        return text
    return text[:length] + "..."


def count_lines(path: str) -> int:
    """Count non-blank lines in a file, 0 when it does not exist."""
    if not os.path.exists(path):
        return 0
    with open(path, "rb") as f:
        return sum(1 for line in f if line.strip())


def read_json_file(path: str) -> Any:
    """Load a JSON document."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def write_json_file(path: str, data: Any) -> None:
    """Write a JSON document through a temp file so readers never see a partial write."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    os.replace(tmp_path, path)
