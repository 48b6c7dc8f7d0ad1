"""Promotion of instincts into skill, command and agent documents."""
from __future__ import annotations

import json
import logging
import os
from typing import TYPE_CHECKING, Dict, List

from .errors import MalformedRecordError, NotFoundError, StorageError
from .models import (
    ARTIFACT_KINDS,
    ERROR_FIX_CATEGORY,
    WORKFLOW_CATEGORY,
    GeneratedArtifact,
    PatternRecord,
    PromotionLedgerEntry,
)
from .patterns import find_pattern, load_patterns
from .utils import safe_name, summarize_value, utc_now

if TYPE_CHECKING:
    from .state import StateRoot

logger = logging.getLogger(__name__)

# kind -> (min confidence, min occurrences)
THRESHOLDS = {
    "skill": (0.70, 5),
    "command": (0.60, 3),
    "agent": (0.80, 10),
}
AUTO_PROMOTE_MIN_CONFIDENCE = 0.8
AUTO_PROMOTE_MIN_OCCURRENCES = 5


def qualifies(record: PatternRecord, kind: str) -> bool:
    min_confidence, min_occurrences = THRESHOLDS[kind]
    return record.confidence >= min_confidence and record.occurrences >= min_occurrences


def candidates(state: StateRoot) -> Dict[str, List[dict]]:
    """Instincts that clear each kind's thresholds; one may appear under several kinds."""
    result: Dict[str, List[dict]] = {kind: [] for kind in ARTIFACT_KINDS}
    for records in load_patterns(state).values():
        for record in records:
            for kind in ARTIFACT_KINDS:
                if qualifies(record, kind):
                    result[kind].append(
                        {
                            "id": record.id,
                            "confidence": record.confidence,
                            "occurrences": record.occurrences,
                            "category": record.category,
                            "pattern_summary": summarize_value(record.pattern, 80),
                        }
                    )
    return result


def _percent(confidence: float) -> str:
    return f"{confidence * 100:.0f}%"


def _json_block(value: object, lang: str = "json") -> str:
    return f"```{lang}\n{json.dumps(value, indent=2, ensure_ascii=False)}\n```\n"


def _workflow_steps(pattern: object) -> List[str]:
    if not isinstance(pattern, dict):
        return []
    for key in ("steps", "nodes", "sequence", "tools"):
        steps = pattern.get(key)
        if isinstance(steps, list) and steps:
            return [s if isinstance(s, str) else json.dumps(s, ensure_ascii=False) for s in steps]
    return []


def _pattern_section(record: PatternRecord) -> str:
    """Category-aware body shared by every artifact kind."""
    if record.category == WORKFLOW_CATEGORY:
        text = "## Pattern\n\n"
        steps = _workflow_steps(record.pattern)
        if steps:
            text += "".join(f"{i}. {step}\n" for i, step in enumerate(steps, start=1))
            text += "\n"
        text += _json_block(record.pattern)
        text += f"\n## When to Use\n\nThis workflow was observed {record.occurrences} times.\n"
        return text

    if record.category == ERROR_FIX_CATEGORY:
        pattern = record.pattern if isinstance(record.pattern, dict) else {}
        text = "## Error Pattern\n\n"
        text += _json_block(pattern.get("error", record.pattern), lang="")
        text += "\n## Fix Pattern\n\n"
        text += _json_block(pattern.get("fix", {}), lang="")
        text += "\n## When to Apply\n\nApply this fix when encountering the error pattern above.\n"
        text += f"Confidence: {_percent(record.confidence)}\n"
        return text

    text = "## Pattern\n\n"
    text += _json_block(record.pattern)
    text += f"\n## Usage Notes\n\nThis pattern was learned from {record.occurrences} observations.\n"
    return text


def _source_section(record: PatternRecord) -> str:
    return (
        "## Source\n\n"
        f"- Instinct ID: {record.id}\n"
        f"- Category: {record.category}\n"
        f"- Confidence: {_percent(record.confidence)}\n"
        f"- Occurrences: {record.occurrences}\n"
        f"- Learned: {record.created_at}\n"
    )


def render_skill(record: PatternRecord) -> str:
    if record.category == WORKFLOW_CATEGORY:
        title = "Learned Workflow Pattern"
    elif record.category == ERROR_FIX_CATEGORY:
        title = "Learned Error-Fix Pattern"
    else:
        title = "Learned Pattern"
    return f"# {title}\n\n{_source_section(record)}\n{_pattern_section(record)}"


def command_name(record: PatternRecord) -> str:
    return record.id.replace("instinct_", "", 1)[:20]


def render_command(record: PatternRecord) -> str:
    return (
        f"# /{command_name(record)} - Learned Command\n\n"
        "## Purpose\n\nCommand generated from a learned instinct.\n\n"
        f"{_source_section(record)}\n"
        f"{_pattern_section(record)}\n"
        "## Usage\n\n"
        "1. Rename to a meaningful name\n"
        "2. Move into the commands directory\n"
        "3. Update the command registry\n"
    )


def render_agent(record: PatternRecord) -> str:
    return (
        f"# Learned Agent: {record.category}\n\n"
        "## Role\n\n"
        f"Specialist for {record.category} work, built from an instinct seen "
        f"{record.occurrences} times at {_percent(record.confidence)} confidence.\n\n"
        f"{_source_section(record)}\n"
        f"{_pattern_section(record)}\n"
        "## Instructions\n\n"
        "Follow the pattern above when the situation it describes comes up. "
        "Escalate when the observed context differs from it.\n"
    )


RENDERERS = {
    "skill": render_skill,
    "command": render_command,
    "agent": render_agent,
}


def render_artifact(record: PatternRecord, kind: str) -> str:
    if kind not in RENDERERS:
        raise ValueError(f"Unknown artifact kind '{kind}'. Expected one of: {', '.join(ARTIFACT_KINDS)}")
    return RENDERERS[kind](record)


def _append_ledger(state: StateRoot, entry: PromotionLedgerEntry) -> None:
    with open(state.ledger_file, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")


def promote(state: StateRoot, pattern_id: str, kind: str) -> GeneratedArtifact:
    """Write the artifact for an instinct and append a ledger entry."""
    if kind not in RENDERERS:
        raise ValueError(f"Unknown artifact kind '{kind}'. Expected one of: {', '.join(ARTIFACT_KINDS)}")
    record = find_pattern(state, pattern_id)
    if record is None:
        raise NotFoundError(f"Instinct {pattern_id} not found")
    if not safe_name(record.id):
        raise MalformedRecordError(f"Instinct id {record.id!r} is not a valid file name")

    content = render_artifact(record, kind)
    output_dir = state.artifact_dir(kind)
    output_path = os.path.join(output_dir, f"{record.id}.md")
    try:
        os.makedirs(output_dir, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(content)
        _append_ledger(
            state,
            PromotionLedgerEntry(
                timestamp=utc_now(),
                pattern_id=record.id,
                kind=kind,
                category=record.category,
                output_path=output_path,
            ),
        )
    except OSError as exc:
        raise StorageError(f"Cannot write {kind} for {record.id}: {exc}") from exc

    logger.info("Promoted %s to %s at %s", record.id, kind, output_path)
    return GeneratedArtifact(pattern_id=record.id, kind=kind, category=record.category, path=output_path)


def auto_kind(record: PatternRecord) -> str:
    if record.category == ERROR_FIX_CATEGORY:
        return "command"
    return "skill"


def auto_promote(state: StateRoot) -> dict:
    """Promote every instinct that clears the strict combined rule."""
    promoted: List[dict] = []
    skipped: List[dict] = []
    for records in load_patterns(state).values():
        for record in records:
            if record.confidence < AUTO_PROMOTE_MIN_CONFIDENCE:
                skipped.append({"id": record.id, "category": record.category, "reason": "low_confidence"})
                continue
            if record.occurrences < AUTO_PROMOTE_MIN_OCCURRENCES:
                skipped.append({"id": record.id, "category": record.category, "reason": "insufficient_occurrences"})
                continue
            artifact = promote(state, record.id, auto_kind(record))
            promoted.append(
                {
                    "id": artifact.pattern_id,
                    "kind": artifact.kind,
                    "category": artifact.category,
                    "file": artifact.path,
                }
            )
    return {"promoted": promoted, "skipped": skipped}


def load_ledger(state: StateRoot) -> List[PromotionLedgerEntry]:
    """Promotion history, oldest first."""
    entries: List[PromotionLedgerEntry] = []
    if not os.path.exists(state.ledger_file):
        return entries
    with open(state.ledger_file, "rb") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                entries.append(PromotionLedgerEntry.from_dict(json.loads(line)))
            except ValueError as exc:
                logger.debug("Skipping ledger line: %s", exc)
    return entries
