#!/usr/bin/env python3
"""CLI for inspecting and editing a project's kanban board."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Support running as a standalone script from repo root.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from boardsync.kanban import (
    BoardError,
    BoardSyncEngine,
    NotFoundError,
    ValidationError,
)
from boardsync.kanban.wip import usage_ratio


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Kanban board CLI")
    parser.add_argument("--config", default=None, help="Path to board.yaml")
    parser.add_argument("--project", required=True, dest="project_id")
    parser.add_argument("--json", action="store_true", dest="as_json", help="Print board as JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("show", help="Print columns, WIP state and orphans")

    move_parser = subparsers.add_parser("move", help="Move an issue to a status")
    move_parser.add_argument("issue_id")
    move_parser.add_argument("status")
    move_parser.add_argument("--index", type=int, default=None, help="Final position in the column")

    create_parser = subparsers.add_parser("status-create", help="Create a custom status")
    create_parser.add_argument("name")
    create_parser.add_argument("--color", default=None)
    create_parser.add_argument("--position", type=int, default=None)

    rename_parser = subparsers.add_parser("status-rename", help="Rename a status")
    rename_parser.add_argument("status", help="Status id or current name")
    rename_parser.add_argument("name")

    delete_parser = subparsers.add_parser("status-delete", help="Delete an unused status")
    delete_parser.add_argument("status", help="Status id or name")

    wip_parser = subparsers.add_parser("wip", help="Set a column's WIP limit")
    wip_parser.add_argument("status")
    wip_parser.add_argument("limit", help="1-50, or 'none' for unlimited")

    return parser


def _parse_limit(raw: str) -> int | None:
    if raw.lower() in ("none", "null", "unlimited"):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"WIP limit must be an integer or 'none', got {raw!r}", "INVALID_WIP_LIMIT")


def _status_id(engine: BoardSyncEngine, ref: str) -> str:
    if engine.state.find_status(ref) is not None:
        return ref
    status = engine.state.find_status_by_name(ref)
    if status is None:
        raise NotFoundError(f"Status {ref} not found", "STATUS_NOT_FOUND")
    return status.id


def _render(engine: BoardSyncEngine) -> list[str]:
    lines = []
    for status, issues in engine.columns.items():
        limit = engine.wip_limits.get(status)
        header = f"{status} ({len(issues)}"
        if limit is not None:
            ratio = usage_ratio(len(issues), limit)
            header += f"/{limit}, {engine.wip_state(status).value}, {ratio:.0%}"
        lines.append(header + ")")
        for issue in issues:
            lines.append(f"  {issue.id}  {issue.title}".rstrip())
    if engine.orphans:
        lines.append(f"Orphans ({len(engine.orphans)})")
        for issue in engine.orphans:
            lines.append(f"  {issue.id}  [{issue.status}] {issue.title}".rstrip())
    return lines


def _print_board(engine: BoardSyncEngine, as_json: bool) -> None:
    if as_json:
        payload = engine.state.to_dict()
        payload["wipStates"] = {k: v.value for k, v in engine.wip_states().items()}
        print(json.dumps(payload, indent=2))
        return
    for line in _render(engine):
        print(line)


async def _run(args: argparse.Namespace) -> int:
    engine = BoardSyncEngine.from_config(args.project_id, config_path=args.config)
    await engine.refresh()

    if args.command == "show":
        _print_board(engine, args.as_json)
        return 0

    if args.command == "move":
        moved = await engine.move_issue(args.issue_id, args.status, target_index=args.index)
        if moved is None:
            print(f"move:noop:{args.issue_id}")
        else:
            print(f"move:{moved.id}:{moved.status}:{moved.order}")
        return 0

    if args.command == "status-create":
        status = await engine.create_status(args.name, color=args.color, position=args.position)
        print(f"status:created:{status.id}:{status.name}")
        return 0

    if args.command == "status-rename":
        status = await engine.update_status(_status_id(engine, args.status), name=args.name)
        print(f"status:renamed:{status.id}:{status.name}")
        return 0

    if args.command == "status-delete":
        status_id = _status_id(engine, args.status)
        await engine.delete_status(status_id)
        print(f"status:deleted:{status_id}")
        return 0

    if args.command == "wip":
        limit = _parse_limit(args.limit)
        await engine.set_wip_limit(args.status, limit)
        print(f"wip:{args.status}:{'none' if limit is None else limit}")
        return 0

    return 1


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)

    try:
        return asyncio.run(_run(args))
    except ValidationError as err:
        print(f"invalid:{err}", file=sys.stderr)
        return 2
    except BoardError as err:
        print(f"error:{err}", file=sys.stderr)
        return 1
    except ValueError as err:
        print(f"error:{err}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
