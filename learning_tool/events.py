"""Event recording, rollover and reading."""
from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Any, Iterable, List, Optional, Union

from .errors import MalformedRecordError, StorageError
from .models import DEFAULT_CATEGORY, EVENT_CATEGORIES, EventRecord
from .utils import count_lines, make_id, next_stamp, utc_now

if TYPE_CHECKING:
    from .state import StateRoot

logger = logging.getLogger(__name__)

ROLLOVER_THRESHOLD = 1000
EVENT_VERSION = "1.0"


def create_event(
    category: Optional[str],
    payload: Any,
    context: Optional[dict] = None,
    event_id: Optional[str] = None,
    timestamp: Optional[str] = None,
    source: str = "hook",
) -> EventRecord:
    """Build an event, filling in id, timestamp and context defaults."""
    category = ("" if category is None else str(category)).strip() or DEFAULT_CATEGORY
    if category not in EVENT_CATEGORIES:
        logger.debug("Recording event with unknown category %r", category)
    context = dict(context or {})
    merged_context = {
        "session_id": context.pop("session_id", None) or "unknown",
        "working_directory": context.pop("working_directory", None) or context.pop("cwd", None) or os.getcwd(),
        "framework": context.pop("framework", None) or "unknown",
    }
    merged_context.update(context)
    return EventRecord(
        id=event_id or make_id("obs"),
        timestamp=timestamp or utc_now(),
        category=category,
        payload=payload if payload is not None else {},
        context=merged_context,
        metadata={"version": EVENT_VERSION, "source": source},
    )


def record(
    state: StateRoot,
    category: Optional[str],
    payload: Any,
    context: Optional[dict] = None,
    event_id: Optional[str] = None,
    timestamp: Optional[str] = None,
    source: str = "hook",
) -> str:
    """Append one event to the live log and return its id.

    Raises StorageError when the log cannot be written; the event is lost.
    """
    event = create_event(category, payload, context, event_id, timestamp, source)
    _append_lines(state, [event])
    try:
        check_rollover(state)
    except OSError as exc:
        raise StorageError(f"Rollover of {state.events_file} failed: {exc}") from exc
    return event.id


def record_input(state: StateRoot, data: Any, source: str = "cli") -> str:
    """Record an event from raw JSON input such as a hook or stdin message."""
    if not isinstance(data, dict):
        raise ValueError("Event input must be a JSON object")
    category = data.get("category") or data.get("type")
    if "payload" in data:
        payload = data["payload"]
    elif "data" in data:
        payload = data["data"]
    else:
        payload = {k: v for k, v in data.items() if k not in ("category", "type", "context", "id", "timestamp")}
    if not isinstance(payload, dict):
        payload = {"value": payload}
    context = data.get("context") if isinstance(data.get("context"), dict) else {}
    return record(
        state,
        category,
        payload,
        context,
        event_id=data.get("id"),
        timestamp=data.get("timestamp"),
        source=source,
    )


def append_events(state: StateRoot, events: Iterable[EventRecord]) -> int:
    """Append already-built events to the live log without a rollover check."""
    events = list(events)
    if events:
        _append_lines(state, events)
    return len(events)


def _append_lines(state: StateRoot, events: List[EventRecord]) -> None:
    lines = "".join(json.dumps(event.to_dict(), ensure_ascii=False) + "\n" for event in events)
    try:
        os.makedirs(os.path.dirname(state.events_file), exist_ok=True)
        with open(state.events_file, "a", encoding="utf-8") as f:
            f.write(lines)
    except OSError as exc:
        raise StorageError(f"Cannot write event log {state.events_file}: {exc}") from exc


def check_rollover(state: StateRoot) -> Optional[str]:
    """Archive the live log once it holds ROLLOVER_THRESHOLD records."""
    if count_lines(state.events_file) < ROLLOVER_THRESHOLD:
        return None
    os.makedirs(state.archive_dir, exist_ok=True)
    archive_path = os.path.join(state.archive_dir, f"observations_{next_stamp():016d}.jsonl")
    os.replace(state.events_file, archive_path)
    with open(state.events_file, "w", encoding="utf-8"):
        pass
    logger.info("Rolled event log over to %s", archive_path)
    return archive_path


def list_archives(state: StateRoot) -> List[str]:
    """Archive file paths, oldest first."""
    if not os.path.isdir(state.archive_dir):
        return []
    names = sorted(name for name in os.listdir(state.archive_dir) if name.endswith(".jsonl"))
    return [os.path.join(state.archive_dir, name) for name in names]


def parse_event_line(line: Union[str, bytes]) -> EventRecord:
    try:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        data = json.loads(line)
    except UnicodeDecodeError as exc:
        raise MalformedRecordError(f"Invalid UTF-8: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(f"Invalid JSON: {exc}") from exc
    return EventRecord.from_dict(data)


def read_event_file(path: str) -> List[EventRecord]:
    """Read one log file, skipping lines that do not parse."""
    events: List[EventRecord] = []
    if not os.path.exists(path):
        return events
    with open(path, "rb") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                events.append(parse_event_line(line))
            except MalformedRecordError as exc:
                logger.debug("Skipping %s:%d: %s", path, lineno, exc)
    return events


def load_live(state: StateRoot) -> List[EventRecord]:
    return read_event_file(state.events_file)


def load_all(state: StateRoot) -> List[EventRecord]:
    """All events: archived ones first, then the live log in append order."""
    events: List[EventRecord] = []
    for archive_path in list_archives(state):
        events.extend(read_event_file(archive_path))
    events.extend(load_live(state))
    return events


def recent_events(state: StateRoot, limit: int) -> List[EventRecord]:
    events = load_all(state)
    if limit <= 0:
        return []
    return events[-limit:]


def get_stats(state: StateRoot) -> dict:
    """Event counts for the live log and archives."""
    live = load_live(state)
    archived: List[EventRecord] = []
    archives = list_archives(state)
    for archive_path in archives:
        archived.extend(read_event_file(archive_path))
    per_category: dict[str, int] = {}
    for event in archived + live:
        per_category[event.category] = per_category.get(event.category, 0) + 1
    return {
        "total": len(archived) + len(live),
        "current_file": len(live),
        "archives": len(archives),
        "per_category": per_category,
    }
