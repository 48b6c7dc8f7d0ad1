#!/usr/bin/env python3
"""Command-line interface for the learning tool."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict

from .checkpoints import (
    diff_checkpoint,
    export_checkpoint,
    import_checkpoint,
    list_checkpoints,
    load_checkpoint,
    restore_checkpoint,
    save_checkpoint,
)
from .errors import LearningError
from .events import get_stats, record, record_input
from .models import ARTIFACT_KINDS
from .patterns import analyze, generate_and_persist, list_patterns
from .promotion import auto_promote, candidates, load_ledger, promote
from .state import init_state, open_state
from .utils import DEFAULT_PROFILE, PROFILE_CHOICES, resolve_state_dir


def parse_args(argv: list | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Continuous learning tool")
    parser.add_argument(
        "--profile",
        choices=PROFILE_CHOICES,
        default=DEFAULT_PROFILE,
        help="Learning profile to select default state directory",
    )
    parser.add_argument("--state-dir", default=None, help="Learning state directory (overrides --profile)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # init
    subparsers.add_parser("init", help="Initialize the state directory")

    # record
    record_parser = subparsers.add_parser("record", help="Record an event (JSON on stdin without --category)")
    record_parser.add_argument("--category", default=None)
    record_parser.add_argument("--payload", default=None, help="JSON payload")
    record_parser.add_argument("--context", default=None, help="JSON context")
    record_parser.add_argument("--session-id", default=None)

    # stats
    subparsers.add_parser("stats", help="Event statistics")

    # mining
    subparsers.add_parser("analyze", help="Analyze events for patterns")
    subparsers.add_parser("generate", help="Generate and persist instincts")
    subparsers.add_parser("list", help="List instincts")

    # promotion
    subparsers.add_parser("candidates", help="List promotion candidates")
    promote_parser = subparsers.add_parser("promote", help="Promote an instinct")
    promote_parser.add_argument("pattern_id")
    promote_parser.add_argument("--kind", choices=ARTIFACT_KINDS, default="skill")
    subparsers.add_parser("auto-promote", help="Promote every high-confidence instinct")
    subparsers.add_parser("promotions", help="Show the promotion ledger")

    # checkpoint
    checkpoint_parser = subparsers.add_parser("checkpoint", help="Checkpoint management")
    checkpoint_subparsers = checkpoint_parser.add_subparsers(dest="checkpoint_action", required=True)

    checkpoint_save = checkpoint_subparsers.add_parser("save", help="Save checkpoint")
    checkpoint_save.add_argument("--name", default=None)

    checkpoint_subparsers.add_parser("list", help="List checkpoints")

    checkpoint_show = checkpoint_subparsers.add_parser("show", help="Show checkpoint")
    checkpoint_show.add_argument("checkpoint_id")

    checkpoint_restore = checkpoint_subparsers.add_parser("restore", help="Restore checkpoint")
    checkpoint_restore.add_argument("checkpoint_id")

    checkpoint_diff = checkpoint_subparsers.add_parser("diff", help="Compare with checkpoint")
    checkpoint_diff.add_argument("checkpoint_id")

    checkpoint_export = checkpoint_subparsers.add_parser("export", help="Export checkpoint")
    checkpoint_export.add_argument("checkpoint_id")
    checkpoint_export.add_argument("output")

    checkpoint_import = checkpoint_subparsers.add_parser("import", help="Import checkpoint")
    checkpoint_import.add_argument("file")

    return parser.parse_args(argv)


def main(argv: list | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        state_dir = resolve_state_dir(args.profile, args.state_dir)
        if args.command == "init":
            print(json.dumps(init_state(state_dir), indent=2))
            return

        state = open_state(state_dir)
        if args.command == "record":
            _handle_record(state, args)
        elif args.command == "stats":
            print(json.dumps({"ok": True, **get_stats(state)}, indent=2))
        elif args.command == "analyze":
            _handle_analyze(state)
        elif args.command == "generate":
            print(json.dumps(generate_and_persist(state), indent=2))
        elif args.command == "list":
            print(json.dumps({"ok": True, "categories": list_patterns(state)}, indent=2))
        elif args.command == "candidates":
            print(json.dumps({"ok": True, **candidates(state)}, indent=2))
        elif args.command == "promote":
            artifact = promote(state, args.pattern_id, args.kind)
            print(json.dumps({"ok": True, **asdict(artifact)}, indent=2))
        elif args.command == "auto-promote":
            print(json.dumps({"ok": True, **auto_promote(state)}, indent=2))
        elif args.command == "promotions":
            entries = load_ledger(state)
            print(json.dumps({"ok": True, "entries": [e.to_dict() for e in entries]}, indent=2))
        elif args.command == "checkpoint":
            _handle_checkpoint(state, args)
    except (LearningError, OSError, ValueError) as exc:
        print(json.dumps({"ok": False, "error": str(exc)}, indent=2))
        sys.exit(1)


def _handle_record(state, args):
    if args.category is None and args.payload is None:
        data = json.loads(sys.stdin.read() or "{}")
        event_id = record_input(state, data)
    else:
        payload = json.loads(args.payload) if args.payload else {}
        context = json.loads(args.context) if args.context else {}
        if args.session_id:
            context["session_id"] = args.session_id
        event_id = record(state, args.category, payload, context, source="cli")
    print(json.dumps({"ok": True, "event_id": event_id, "stats": get_stats(state)}, indent=2))


def _handle_analyze(state):
    results = analyze(state)
    output = {"ok": True}
    for key, found in results.items():
        output[key] = [asdict(candidate) for candidate in found]
    print(json.dumps(output, indent=2))


def _handle_checkpoint(state, args):
    if args.checkpoint_action == "save":
        checkpoint = save_checkpoint(state, args.name)
        print(json.dumps({
            "ok": True,
            "action": "save",
            "checkpoint_id": checkpoint.id,
            "name": checkpoint.name,
            "file": state.checkpoint_file(checkpoint.id),
            "stats": checkpoint.stats,
        }, indent=2))
    elif args.checkpoint_action == "list":
        checkpoints = list_checkpoints(state)
        print(json.dumps({"ok": True, "action": "list", "checkpoints": [asdict(c) for c in checkpoints]}, indent=2))
    elif args.checkpoint_action == "show":
        checkpoint = load_checkpoint(state, args.checkpoint_id)
        print(json.dumps({"ok": True, "checkpoint": checkpoint.to_dict()}, indent=2))
    elif args.checkpoint_action == "restore":
        print(json.dumps({"action": "restore", **restore_checkpoint(state, args.checkpoint_id)}, indent=2))
    elif args.checkpoint_action == "diff":
        print(json.dumps({"ok": True, "action": "diff", "diff": diff_checkpoint(state, args.checkpoint_id)}, indent=2))
    elif args.checkpoint_action == "export":
        print(json.dumps({"action": "export", **export_checkpoint(state, args.checkpoint_id, args.output)}, indent=2))
    elif args.checkpoint_action == "import":
        print(json.dumps({"action": "import", **import_checkpoint(state, args.file)}, indent=2))


if __name__ == "__main__":
    main()
