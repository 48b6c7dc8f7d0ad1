"""Continuous learning tool package."""
from __future__ import annotations

from .models import (
    ARTIFACT_KINDS,
    DEFAULT_CATEGORY,
    EVENT_CATEGORIES,
    Checkpoint,
    CheckpointSummary,
    EventRecord,
    GeneratedArtifact,
    PatternCandidate,
    PatternRecord,
    PromotionLedgerEntry,
)
from .errors import LearningError, MalformedRecordError, NotFoundError, StorageError
from .state import StateRoot, init_state, load_identity, open_state
from .utils import (
    canonical_json,
    make_id,
    parse_timestamp,
    resolve_state_dir,
    utc_now,
    DEFAULT_PROFILE,
    PROFILE_CHOICES,
    PROFILE_STATE_DIRS,
)
from .events import (
    ROLLOVER_THRESHOLD,
    append_events,
    check_rollover,
    create_event,
    get_stats,
    list_archives,
    load_all,
    load_live,
    record,
    record_input,
    recent_events,
)
from .patterns import (
    analyze,
    analyze_error_fix_patterns,
    analyze_events,
    analyze_framework_patterns,
    analyze_workflow_patterns,
    find_pattern,
    generate_and_persist,
    list_patterns,
    load_category,
    load_patterns,
    merge_candidates,
    pattern_key,
    save_category,
)
from .promotion import (
    THRESHOLDS,
    auto_promote,
    candidates,
    load_ledger,
    promote,
    qualifies,
    render_artifact,
)
from .checkpoints import (
    CHECKPOINT_EVENT_WINDOW,
    diff_checkpoint,
    export_checkpoint,
    get_checkpoint,
    import_checkpoint,
    list_checkpoints,
    load_checkpoint,
    restore_checkpoint,
    save_checkpoint,
)
from .hooks import detect_framework, handle_hook

__all__ = [
    # Models
    "ARTIFACT_KINDS",
    "DEFAULT_CATEGORY",
    "EVENT_CATEGORIES",
    "Checkpoint",
    "CheckpointSummary",
    "EventRecord",
    "GeneratedArtifact",
    "PatternCandidate",
    "PatternRecord",
    "PromotionLedgerEntry",
    # Errors
    "LearningError",
    "MalformedRecordError",
    "NotFoundError",
    "StorageError",
    # State
    "StateRoot",
    "init_state",
    "load_identity",
    "open_state",
    # Utils
    "canonical_json",
    "make_id",
    "parse_timestamp",
    "resolve_state_dir",
    "utc_now",
    "DEFAULT_PROFILE",
    "PROFILE_CHOICES",
    "PROFILE_STATE_DIRS",
    # Events
    "ROLLOVER_THRESHOLD",
    "append_events",
    "check_rollover",
    "create_event",
    "get_stats",
    "list_archives",
    "load_all",
    "load_live",
    "record",
    "record_input",
    "recent_events",
    # Patterns
    "analyze",
    "analyze_error_fix_patterns",
    "analyze_events",
    "analyze_framework_patterns",
    "analyze_workflow_patterns",
    "find_pattern",
    "generate_and_persist",
    "list_patterns",
    "load_category",
    "load_patterns",
    "merge_candidates",
    "pattern_key",
    "save_category",
    # Promotion
    "THRESHOLDS",
    "auto_promote",
    "candidates",
    "load_ledger",
    "promote",
    "qualifies",
    "render_artifact",
    # Checkpoints
    "CHECKPOINT_EVENT_WINDOW",
    "diff_checkpoint",
    "export_checkpoint",
    "get_checkpoint",
    "import_checkpoint",
    "list_checkpoints",
    "load_checkpoint",
    "restore_checkpoint",
    "save_checkpoint",
    # Hooks
    "detect_framework",
    "handle_hook",
]
