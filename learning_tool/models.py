"""Data models for the learning tool."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .errors import MalformedRecordError
from .utils import safe_name

EVENT_CATEGORIES = (
    "tool_use",
    "workflow_pattern",
    "error_occurrence",
    "error_fix",
    "framework_selection",
    "node_usage",
    "connection_pattern",
    "test_pattern",
    "model_definition",
    "session_summary",
    "session_start",
    "session_end",
    "pre_compact",
    "stop",
)
DEFAULT_CATEGORY = "tool_use"

WORKFLOW_CATEGORY = "workflow-patterns"
ERROR_FIX_CATEGORY = "error-fixes"
FRAMEWORK_CATEGORY = "framework-selection"

ARTIFACT_KINDS = ("skill", "command", "agent")


def _require(data: Any, keys: tuple, record_type: str) -> None:
    if not isinstance(data, dict):
        raise MalformedRecordError(f"{record_type} must be an object, got {type(data).__name__}")
    missing = [key for key in keys if key not in data]
    if missing:
        raise MalformedRecordError(f"{record_type} missing fields: {', '.join(missing)}")


@dataclass
class EventRecord:
    id: str
    timestamp: str
    category: str
    payload: Any
    context: Dict[str, Any]
    metadata: Dict[str, Any] = field(default_factory=dict)
    restored_from: Optional[str] = None
    restored_at: Optional[str] = None

    @property
    def session_id(self) -> str:
        return str(self.context.get("session_id", "unknown"))

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.restored_from is None:
            del data["restored_from"]
        if self.restored_at is None:
            del data["restored_at"]
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "EventRecord":
        _require(data, ("id", "timestamp", "category"), "Event")
        context = data.get("context") or {}
        if not isinstance(context, dict):
            raise MalformedRecordError("Event context must be an object")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise MalformedRecordError("Event metadata must be an object")
        return cls(
            id=str(data["id"]),
            timestamp=str(data["timestamp"]),
            category=str(data["category"]),
            payload=data.get("payload", {}),
            context=context,
            metadata=metadata,
            restored_from=data.get("restored_from"),
            restored_at=data.get("restored_at"),
        )


@dataclass
class PatternCandidate:
    """A pattern found by analysis, before it is merged into a store."""

    kind: str  # "workflow_pattern", "error_fix", "framework_selection"
    pattern: Any
    occurrences: int
    confidence: float


@dataclass
class PatternRecord:
    """A persisted instinct."""

    id: str
    category: str
    kind: str
    pattern: Any
    confidence: float
    occurrences: int
    created_at: str
    updated_at: str
    active: bool = True

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any, category: Optional[str] = None) -> "PatternRecord":
        _require(data, ("id", "pattern", "confidence", "occurrences"), "Pattern")
        if not safe_name(str(data["id"])):
            raise MalformedRecordError(f"Pattern id {data['id']!r} is not a valid file name")
        try:
            confidence = float(data["confidence"])
            occurrences = int(data["occurrences"])
        except (TypeError, ValueError) as exc:
            raise MalformedRecordError(f"Pattern {data.get('id')} has non-numeric scores") from exc
        created_at = str(data.get("created_at", ""))
        return cls(
            id=str(data["id"]),
            category=str(data.get("category") or category or ""),
            kind=str(data.get("kind", "")),
            pattern=data["pattern"],
            confidence=confidence,
            occurrences=occurrences,
            created_at=created_at,
            updated_at=str(data.get("updated_at", created_at)),
            active=bool(data.get("active", True)),
        )


@dataclass
class PromotionLedgerEntry:
    timestamp: str
    pattern_id: str
    kind: str
    category: str
    output_path: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "PromotionLedgerEntry":
        _require(data, ("timestamp", "pattern_id", "kind", "output_path"), "Ledger entry")
        return cls(
            timestamp=str(data["timestamp"]),
            pattern_id=str(data["pattern_id"]),
            kind=str(data["kind"]),
            category=str(data.get("category", "")),
            output_path=str(data["output_path"]),
        )


@dataclass
class GeneratedArtifact:
    pattern_id: str
    kind: str
    category: str
    path: str


@dataclass
class Checkpoint:
    id: str
    name: str
    created_at: str
    events: List[EventRecord]
    patterns: Dict[str, List[PatternRecord]]
    identity: Optional[dict]
    stats: Dict[str, Any]
    imported_from: Optional[str] = None
    imported_at: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "events": [event.to_dict() for event in self.events],
            "patterns": {
                category: [record.to_dict() for record in records]
                for category, records in self.patterns.items()
            },
            "identity": self.identity,
            "stats": self.stats,
        }
        if self.imported_from is not None:
            data["imported_from"] = self.imported_from
            data["imported_at"] = self.imported_at
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Checkpoint":
        _require(data, ("id", "created_at"), "Checkpoint")
        raw_patterns = data.get("patterns") or {}
        if not isinstance(raw_patterns, dict):
            raise MalformedRecordError("Checkpoint patterns must be an object")
        patterns: Dict[str, List[PatternRecord]] = {}
        for category, items in raw_patterns.items():
            if not safe_name(category):
                raise MalformedRecordError(f"Checkpoint pattern category {category!r} is not a valid file name")
            if not isinstance(items, list):
                raise MalformedRecordError(f"Checkpoint patterns for {category} must be a list")
            patterns[category] = [PatternRecord.from_dict(item, category) for item in items]
        events = data.get("events") or []
        if not isinstance(events, list):
            raise MalformedRecordError("Checkpoint events must be a list")
        stats = data.get("stats") or {}
        if not isinstance(stats, dict):
            raise MalformedRecordError("Checkpoint stats must be an object")
        if not isinstance(stats.get("event_count", 0), int):
            raise MalformedRecordError("Checkpoint event_count must be an integer")
        identity = data.get("identity")
        if identity is not None and not isinstance(identity, dict):
            raise MalformedRecordError("Checkpoint identity must be an object")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            created_at=str(data["created_at"]),
            events=[EventRecord.from_dict(item) for item in events],
            patterns=patterns,
            identity=identity,
            stats=stats,
            imported_from=data.get("imported_from"),
            imported_at=data.get("imported_at"),
        )


@dataclass
class CheckpointSummary:
    id: str
    name: str
    created_at: str
    event_count: int
    pattern_categories: int
    pattern_count: int
