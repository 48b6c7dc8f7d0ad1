"""Checkpoint management: snapshot, restore, diff, export and import."""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import replace
from typing import TYPE_CHECKING, List, Optional

from .errors import MalformedRecordError, NotFoundError, StorageError
from .events import append_events, load_all
from .models import Checkpoint, CheckpointSummary
from .patterns import load_patterns, save_category
from .state import load_identity
from .utils import make_id, next_stamp, read_json_file, safe_name, utc_now, write_json_file

if TYPE_CHECKING:
    from .state import StateRoot

logger = logging.getLogger(__name__)

CHECKPOINT_EVENT_WINDOW = 100
LATEST_ALIAS = "latest"


def _write_checkpoint(state: StateRoot, checkpoint: Checkpoint) -> str:
    path = state.checkpoint_file(checkpoint.id)
    try:
        write_json_file(path, checkpoint.to_dict())
    except OSError as exc:
        raise StorageError(f"Cannot write checkpoint {path}: {exc}") from exc
    return path


def save_checkpoint(state: StateRoot, name: Optional[str] = None) -> Checkpoint:
    """Snapshot recent events, every pattern store and the identity record."""
    events = load_all(state)
    patterns = load_patterns(state)
    checkpoint_id = make_id("checkpoint")
    checkpoint = Checkpoint(
        id=checkpoint_id,
        name=name or checkpoint_id,
        created_at=utc_now(),
        events=events[-CHECKPOINT_EVENT_WINDOW:],
        patterns=patterns,
        identity=load_identity(state),
        stats={
            "event_count": len(events),
            "pattern_categories": len(patterns),
            "pattern_count": sum(len(records) for records in patterns.values()),
        },
    )
    path = _write_checkpoint(state, checkpoint)
    try:
        shutil.copyfile(path, state.latest_checkpoint_file)
    except OSError as exc:
        raise StorageError(f"Cannot update latest checkpoint alias: {exc}") from exc
    logger.info("Saved checkpoint %s (%s)", checkpoint.id, checkpoint.name)
    return checkpoint


def get_checkpoint(state: StateRoot, checkpoint_id: str) -> Optional[Checkpoint]:
    """Load a checkpoint by id; "latest" reads the alias."""
    if not safe_name(checkpoint_id):
        return None
    if checkpoint_id == LATEST_ALIAS:
        path = state.latest_checkpoint_file
    else:
        path = state.checkpoint_file(checkpoint_id)
    if not os.path.exists(path):
        return None
    try:
        return Checkpoint.from_dict(read_json_file(path))
    except (OSError, ValueError) as exc:
        logger.warning("Unreadable checkpoint %s: %s", path, exc)
        return None


def load_checkpoint(state: StateRoot, checkpoint_id: str) -> Checkpoint:
    checkpoint = get_checkpoint(state, checkpoint_id)
    if checkpoint is None:
        raise NotFoundError(f"Checkpoint {checkpoint_id} not found")
    return checkpoint


def list_checkpoints(state: StateRoot) -> List[CheckpointSummary]:
    """Checkpoint summaries, newest first. The latest alias is not listed."""
    if not os.path.isdir(state.checkpoints_dir):
        return []
    summaries: List[CheckpointSummary] = []
    for name in os.listdir(state.checkpoints_dir):
        if not name.endswith(".json") or name == f"{LATEST_ALIAS}.json":
            continue
        checkpoint = get_checkpoint(state, name[: -len(".json")])
        if checkpoint is None:
            continue
        summaries.append(
            CheckpointSummary(
                id=checkpoint.id,
                name=checkpoint.name,
                created_at=checkpoint.created_at,
                event_count=int(checkpoint.stats.get("event_count", len(checkpoint.events))),
                pattern_categories=len(checkpoint.patterns),
                pattern_count=sum(len(records) for records in checkpoint.patterns.values()),
            )
        )
    summaries.sort(key=lambda s: (s.created_at, s.id), reverse=True)
    return summaries


def restore_checkpoint(state: StateRoot, checkpoint_id: str) -> dict:
    """Restore a checkpoint on top of the current state.

    A safety checkpoint of the current state is always saved first. Events
    are appended to the live log; pattern stores named in the checkpoint are
    replaced wholesale.
    """
    checkpoint = load_checkpoint(state, checkpoint_id)
    backup = save_checkpoint(state, f"pre-restore-{next_stamp()}")

    restored_at = utc_now()
    restored_events = [
        replace(event, restored_from=checkpoint.id, restored_at=restored_at)
        for event in checkpoint.events
    ]
    append_events(state, restored_events)

    for category, records in checkpoint.patterns.items():
        save_category(state, category, records)

    logger.info(
        "Restored checkpoint %s (%d events, %d pattern categories); backup %s",
        checkpoint.id,
        len(restored_events),
        len(checkpoint.patterns),
        backup.id,
    )
    return {
        "ok": True,
        "restored_checkpoint": checkpoint.id,
        "backup_checkpoint": backup.id,
        "events_restored": len(restored_events),
        "pattern_categories_restored": len(checkpoint.patterns),
    }


def diff_checkpoint(state: StateRoot, checkpoint_id: str) -> dict:
    """Compare the current state with a checkpoint. Read-only."""
    checkpoint = load_checkpoint(state, checkpoint_id)
    current_patterns = load_patterns(state)
    current_total = len(load_all(state))
    checkpoint_total = int(checkpoint.stats.get("event_count", len(checkpoint.events)))

    added = []
    removed = []
    modified = []
    for category in sorted(current_patterns):
        current_count = len(current_patterns[category])
        if category not in checkpoint.patterns:
            added.append({"category": category, "count": current_count})
            continue
        checkpoint_count = len(checkpoint.patterns[category])
        if current_count != checkpoint_count:
            modified.append(
                {
                    "category": category,
                    "checkpoint_count": checkpoint_count,
                    "current_count": current_count,
                    "delta": current_count - checkpoint_count,
                }
            )
    for category in sorted(checkpoint.patterns):
        if category not in current_patterns:
            removed.append({"category": category, "count": len(checkpoint.patterns[category])})

    return {
        "checkpoint_id": checkpoint.id,
        "checkpoint_date": checkpoint.created_at,
        "events": {
            "checkpoint": len(checkpoint.events),
            "checkpoint_total": checkpoint_total,
            "current": current_total,
            "delta": current_total - checkpoint_total,
        },
        "patterns": {
            "added": added,
            "removed": removed,
            "modified": modified,
        },
    }


def export_checkpoint(state: StateRoot, checkpoint_id: str, output_path: str) -> dict:
    """Write a checkpoint to an external file."""
    checkpoint = load_checkpoint(state, checkpoint_id)
    output_path = os.path.expanduser(output_path)
    try:
        write_json_file(output_path, checkpoint.to_dict())
    except OSError as exc:
        raise StorageError(f"Cannot export checkpoint to {output_path}: {exc}") from exc
    return {
        "ok": True,
        "exported_to": output_path,
        "checkpoint_id": checkpoint.id,
    }


def import_checkpoint(state: StateRoot, input_path: str) -> dict:
    """Import a checkpoint file under a fresh id."""
    input_path = os.path.expanduser(input_path)
    if not os.path.exists(input_path):
        raise NotFoundError(f"File {input_path} not found")
    try:
        raw = read_json_file(input_path)
    except ValueError as exc:
        raise MalformedRecordError(f"{input_path} is not a checkpoint file: {exc}") from exc
    checkpoint = Checkpoint.from_dict(raw)

    new_id = make_id("checkpoint_imported")
    while os.path.exists(state.checkpoint_file(new_id)):
        new_id = make_id("checkpoint_imported")
    imported = replace(
        checkpoint,
        id=new_id,
        imported_from=os.path.abspath(input_path),
        imported_at=utc_now(),
    )
    path = _write_checkpoint(state, imported)
    logger.info("Imported checkpoint %s from %s", new_id, input_path)
    return {
        "ok": True,
        "imported_checkpoint": new_id,
        "original_checkpoint": checkpoint.id,
        "file": path,
    }
