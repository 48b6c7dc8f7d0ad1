"""Pattern mining: turn recorded events into scored instincts.

Three extractions run over the full ordered event history:

* workflow patterns - ``workflow_pattern`` and ``node_usage`` events whose
  payloads are structurally identical, seen at least three times;
* error-fix pairs - an ``error_occurrence`` followed, in the same session and
  within five minutes, by an ``error_fix``;
* framework selections - ``framework_selection`` events grouped by project
  type and framework, seen at least twice.

Error-fix pairing takes, for each error, the first fix in history order whose
timestamp falls after the error and inside the window; log position does
not matter. Errors without a fix and fixes without an error are dropped
without notice, since most errors are never followed by a recorded fix.
"""
from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from .errors import MalformedRecordError, StorageError
from .events import load_all
from .models import (
    ERROR_FIX_CATEGORY,
    FRAMEWORK_CATEGORY,
    WORKFLOW_CATEGORY,
    EventRecord,
    PatternCandidate,
    PatternRecord,
)
from .utils import (
    canonical_json,
    make_id,
    parse_timestamp,
    read_json_file,
    safe_name,
    summarize_value,
    utc_now,
    write_json_file,
)

if TYPE_CHECKING:
    from .state import StateRoot

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.3
MAX_CONFIDENCE = 0.9
WORKFLOW_MIN_OCCURRENCES = 3
ERROR_FIX_MIN_OCCURRENCES = 2
FRAMEWORK_MIN_OCCURRENCES = 2
ERROR_FIX_WINDOW_SECONDS = 300

# Extraction kind -> pattern store category
KIND_CATEGORIES = {
    "workflow_pattern": WORKFLOW_CATEGORY,
    "error_fix": ERROR_FIX_CATEGORY,
    "framework_selection": FRAMEWORK_CATEGORY,
}


def pattern_key(value: object) -> str:
    """Structural identity of a pattern payload."""
    return canonical_json(value)


def score(base: float, step: float, occurrences: int) -> float:
    confidence = min(MAX_CONFIDENCE, base + step * occurrences)
    return round(max(MIN_CONFIDENCE, confidence), 4)


def analyze_workflow_patterns(events: Iterable[EventRecord]) -> List[PatternCandidate]:
    groups: Dict[str, dict] = {}
    for event in events:
        if event.category not in ("workflow_pattern", "node_usage"):
            continue
        key = pattern_key(event.payload)
        group = groups.setdefault(key, {"pattern": event.payload, "count": 0})
        group["count"] += 1

    return [
        PatternCandidate(
            kind="workflow_pattern",
            pattern=group["pattern"],
            occurrences=group["count"],
            confidence=score(0.3, 0.1, group["count"]),
        )
        for group in groups.values()
        if group["count"] >= WORKFLOW_MIN_OCCURRENCES
    ]


def _payload_field(event: EventRecord, name: str) -> object:
    if isinstance(event.payload, dict):
        return event.payload.get(name)
    return None


def analyze_error_fix_patterns(events: Iterable[EventRecord]) -> List[PatternCandidate]:
    timed: List[Tuple[EventRecord, object]] = []
    for event in events:
        if event.category not in ("error_occurrence", "error_fix"):
            continue
        when = parse_timestamp(event.timestamp)
        if when is None:
            logger.debug("Skipping event %s with unreadable timestamp %r", event.id, event.timestamp)
            continue
        timed.append((event, when))

    fixes = [(event, when) for event, when in timed if event.category == "error_fix"]
    pairs: Dict[str, dict] = {}
    for error, error_time in timed:
        if error.category != "error_occurrence":
            continue
        match: Optional[EventRecord] = None
        for fix, fix_time in fixes:
            if fix.session_id != error.session_id:
                continue
            elapsed = (fix_time - error_time).total_seconds()
            if 0 < elapsed < ERROR_FIX_WINDOW_SECONDS:
                match = fix
                break
        if match is None:
            continue
        key = pattern_key([_payload_field(error, "error_type"), _payload_field(match, "fix_type")])
        pair = pairs.setdefault(key, {"error": error.payload, "fix": match.payload, "count": 0})
        pair["count"] += 1

    return [
        PatternCandidate(
            kind="error_fix",
            pattern={"error": pair["error"], "fix": pair["fix"]},
            occurrences=pair["count"],
            confidence=score(0.4, 0.15, pair["count"]),
        )
        for pair in pairs.values()
        if pair["count"] >= ERROR_FIX_MIN_OCCURRENCES
    ]


def analyze_framework_patterns(events: Iterable[EventRecord]) -> List[PatternCandidate]:
    selections: Dict[str, dict] = {}
    for event in events:
        if event.category != "framework_selection":
            continue
        project_type = _payload_field(event, "project_type")
        framework = _payload_field(event, "framework")
        key = pattern_key([project_type, framework])
        selection = selections.setdefault(
            key, {"project_type": project_type, "framework": framework, "count": 0}
        )
        selection["count"] += 1

    return [
        PatternCandidate(
            kind="framework_selection",
            pattern={"project_type": s["project_type"], "framework": s["framework"]},
            occurrences=s["count"],
            confidence=score(0.4, 0.1, s["count"]),
        )
        for s in selections.values()
        if s["count"] >= FRAMEWORK_MIN_OCCURRENCES
    ]


def analyze_events(events: List[EventRecord]) -> Dict[str, List[PatternCandidate]]:
    return {
        "workflow_patterns": analyze_workflow_patterns(events),
        "error_fix_patterns": analyze_error_fix_patterns(events),
        "framework_patterns": analyze_framework_patterns(events),
    }


def analyze(state: StateRoot) -> Dict[str, List[PatternCandidate]]:
    """Run every extraction over the full event history. Read-only."""
    events = load_all(state)
    logger.debug("Analyzing %d events", len(events))
    return analyze_events(events)


def load_category(state: StateRoot, category: str) -> List[PatternRecord]:
    """Load one category store, skipping entries that do not parse."""
    path = state.pattern_file(category)
    if not os.path.exists(path):
        return []
    try:
        raw = read_json_file(path)
    except (ValueError, OSError) as exc:
        logger.warning("Ignoring unreadable pattern store %s: %s", path, exc)
        return []
    if not isinstance(raw, list):
        logger.warning("Ignoring pattern store %s: expected a list", path)
        return []

    records: List[PatternRecord] = []
    for item in raw:
        try:
            records.append(PatternRecord.from_dict(item, category))
        except MalformedRecordError as exc:
            logger.debug("Skipping pattern in %s: %s", path, exc)
    return records


def list_categories(state: StateRoot) -> List[str]:
    if not os.path.isdir(state.instincts_dir):
        return []
    return sorted(
        name[: -len(".json")]
        for name in os.listdir(state.instincts_dir)
        if name.endswith(".json")
    )


def load_patterns(state: StateRoot) -> Dict[str, List[PatternRecord]]:
    """Every category store, keyed by category."""
    return {category: load_category(state, category) for category in list_categories(state)}


def save_category(state: StateRoot, category: str, records: List[PatternRecord]) -> None:
    if not safe_name(category):
        raise ValueError(f"Invalid pattern category {category!r}")
    path = state.pattern_file(category)
    try:
        write_json_file(path, [record.to_dict() for record in records])
    except OSError as exc:
        raise StorageError(f"Cannot write pattern store {path}: {exc}") from exc


def merge_candidates(
    existing: List[PatternRecord],
    candidates: Iterable[PatternCandidate],
    category: str,
) -> Tuple[List[PatternRecord], int, int]:
    """Merge candidates into a store by structural pattern equality.

    Returns the updated records with the number created and merged.
    """
    records = list(existing)
    index = {pattern_key(record.pattern): record for record in records}
    created = merged = 0
    now = utc_now()
    for candidate in candidates:
        key = pattern_key(candidate.pattern)
        current = index.get(key)
        if current is not None:
            current.confidence = max(current.confidence, candidate.confidence)
            current.occurrences += candidate.occurrences
            current.updated_at = now
            merged += 1
            continue
        record = PatternRecord(
            id=make_id("instinct"),
            category=category,
            kind=candidate.kind,
            pattern=candidate.pattern,
            confidence=candidate.confidence,
            occurrences=candidate.occurrences,
            created_at=now,
            updated_at=now,
            active=True,
        )
        records.append(record)
        index[key] = record
        created += 1
    return records, created, merged


def generate_and_persist(state: StateRoot) -> dict:
    """Analyze events and merge the results into the category stores."""
    results = analyze(state)
    by_category: Dict[str, List[PatternCandidate]] = {}
    for candidates in results.values():
        for candidate in candidates:
            by_category.setdefault(KIND_CATEGORIES[candidate.kind], []).append(candidate)

    summary: Dict[str, dict] = {}
    for category, candidates in by_category.items():
        records, created, merged = merge_candidates(load_category(state, category), candidates, category)
        save_category(state, category, records)
        summary[category] = {"created": created, "merged": merged, "total": len(records)}
        logger.info("Saved %d %s instincts (%d new, %d merged)", len(records), category, created, merged)

    return {"ok": True, "categories": summary}


def list_patterns(state: StateRoot) -> dict:
    """Short listing of every stored instinct per category."""
    result: Dict[str, dict] = {}
    for category, records in load_patterns(state).items():
        result[category] = {
            "count": len(records),
            "instincts": [
                {
                    "id": record.id,
                    "confidence": record.confidence,
                    "occurrences": record.occurrences,
                    "pattern_summary": summarize_value(record.pattern, 50),
                }
                for record in records
            ],
        }
    return result


def find_pattern(state: StateRoot, pattern_id: str) -> Optional[PatternRecord]:
    for records in load_patterns(state).values():
        for record in records:
            if record.id == pattern_id:
                return record
    return None
