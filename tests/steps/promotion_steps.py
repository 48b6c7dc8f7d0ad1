"""Step definitions for promotion."""
from __future__ import annotations

import os

from pytest_bdd import given, parsers, then, when

from conftest import BDDTestContext, ts


@given(parsers.parse('a "{category}" instinct "{name}" with confidence {confidence:f} and {occurrences:d} occurrences'))
def given_instinct(test_context: BDDTestContext, category: str, name: str, confidence: float, occurrences: int):
    """Store an instinct directly in a category store."""
    from learning_tool.models import PatternRecord
    from learning_tool.patterns import load_category, save_category

    record = PatternRecord(
        id=f"instinct_{name}",
        category=category,
        kind="",
        pattern={"name": name},
        confidence=confidence,
        occurrences=occurrences,
        created_at=ts(0),
        updated_at=ts(0),
    )
    records = load_category(test_context.state, category)
    records.append(record)
    save_category(test_context.state, category, records)
    test_context.patterns_by_name[name] = record.id


@when("I list promotion candidates")
def list_candidates(test_context: BDDTestContext):
    """Evaluate promotion thresholds."""
    from learning_tool.promotion import candidates
    test_context.last_result = candidates(test_context.state)


@then(parsers.parse('"{name}" should be a candidate for "{kinds}"'))
def candidate_for(test_context: BDDTestContext, name: str, kinds: str):
    """Verify exactly which kinds an instinct qualifies for."""
    pattern_id = test_context.patterns_by_name[name]
    found = {
        kind
        for kind, entries in test_context.last_result.items()
        if any(entry["id"] == pattern_id for entry in entries)
    }
    assert found == set(kinds.split(","))


@when(parsers.parse('I promote instinct "{name}" to a "{kind}"'))
def promote_instinct(test_context: BDDTestContext, name: str, kind: str):
    """Promote an instinct, keeping any error."""
    from learning_tool.errors import LearningError
    from learning_tool.promotion import promote

    pattern_id = test_context.patterns_by_name.get(name, f"instinct_{name}")
    try:
        test_context.last_result = promote(test_context.state, pattern_id, kind)
    except LearningError as exc:
        test_context.last_error = exc


@then(parsers.parse('the "{kind}" artifact for "{name}" should exist'))
def artifact_exists(test_context: BDDTestContext, kind: str, name: str):
    """Verify the generated document was written."""
    pattern_id = test_context.patterns_by_name[name]
    path = os.path.join(test_context.state.artifact_dir(kind), f"{pattern_id}.md")
    assert test_context.last_result.path == path
    assert os.path.exists(path)


@then(parsers.re(r"the ledger should hold (?P<count>\d+) entr(?:y|ies)"), converters={"count": int})
def ledger_holds(test_context: BDDTestContext, count: int):
    """Verify the promotion ledger length."""
    from learning_tool.promotion import load_ledger
    assert len(load_ledger(test_context.state)) == count


@when("I auto promote")
def run_auto_promote(test_context: BDDTestContext):
    """Promote every instinct above the strict rule."""
    from learning_tool.promotion import auto_promote
    test_context.last_result = auto_promote(test_context.state)


@then(parsers.parse('"{name}" should be promoted as a "{kind}"'))
def promoted_as(test_context: BDDTestContext, name: str, kind: str):
    """Verify an instinct was auto promoted to a kind."""
    pattern_id = test_context.patterns_by_name[name]
    promoted = {item["id"]: item["kind"] for item in test_context.last_result["promoted"]}
    assert promoted[pattern_id] == kind


@then(parsers.parse('"{name}" should be skipped for "{reason}"'))
def skipped_for(test_context: BDDTestContext, name: str, reason: str):
    """Verify an instinct was skipped with a reason."""
    pattern_id = test_context.patterns_by_name[name]
    skipped = {item["id"]: item["reason"] for item in test_context.last_result["skipped"]}
    assert skipped[pattern_id] == reason
