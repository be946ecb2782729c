"""
daysync CLI - inspect and push locally cached planner records.

Usage:
    daysync show KIND PERIOD --user U [--json]
    daysync edit KIND PERIOD --user U --set FIELD=VALUE [--set FIELD=VALUE]...
    daysync push KIND PERIOD --user U
    daysync status

KIND is one of journal, tracker, graph, monthly_tasks. PERIOD is YYYY-MM-DD
for journal and YYYY-MM for the monthly kinds. VALUE is parsed as JSON and
falls back to a plain string.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

from daysync.config import Settings, get_settings
from daysync.protocols import DaysyncError
from daysync.storage.local import LocalCacheStore
from daysync.storage.sqlite import SQLiteKeyValueStore
from daysync.sync.controller import SyncController
from daysync.sync.writer import DebouncedWriter
from daysync.types import CacheKey, ResourceKind, SyncState

logger = logging.getLogger(__name__)


class CLIError(DaysyncError):
    """A user-facing CLI failure."""

    pass


def parse_key(args) -> CacheKey:
    try:
        return CacheKey(args.user, ResourceKind(args.kind), args.period)
    except ValueError as e:
        raise CLIError(str(e))


def parse_assignments(assignments: List[str]) -> Dict[str, Any]:
    """``["diary=\\"hi\\"", "tasks=[]"] -> {"diary": "hi", "tasks": []}``."""
    patch: Dict[str, Any] = {}
    for assignment in assignments:
        field, sep, raw = assignment.partition("=")
        field = field.strip()
        if not sep or not field:
            raise CLIError(f"Expected FIELD=VALUE, got {assignment!r}")
        try:
            patch[field] = json.loads(raw)
        except ValueError:
            patch[field] = raw
    return patch


def build_remote(settings: Settings):
    if not settings.backend_url:
        raise CLIError("No backend configured. Set DAYSYNC_BACKEND_URL (and DAYSYNC_AUTH_TOKEN).")
    from daysync.storage.http import HttpRemoteStore

    return HttpRemoteStore(settings.backend_url, settings.auth_token)


def build_controller(settings: Settings) -> Tuple[SyncController, Any]:
    remote = build_remote(settings)
    store = SQLiteKeyValueStore(settings.local_db_path)
    return SyncController.from_settings(remote, store, settings), remote


def print_record(key: CacheKey, state: SyncState, record: Optional[dict], as_json: bool) -> None:
    if as_json:
        print(json.dumps({"key": str(key), "state": state.value, "record": record}, indent=2))
        return
    print(f"{key}  [{state.value}]")
    if record is None:
        print("  (no record)")
        return
    for field, value in record.items():
        print(f"  {field}: {json.dumps(value, ensure_ascii=False)}")


async def cmd_show(args, settings: Settings) -> int:
    key = parse_key(args)
    controller, remote = build_controller(settings)
    try:
        state = await controller.load(key)
        print_record(key, state, controller.record(key), args.json)
        error = controller.last_error(key)
        if error is not None:
            print(f"  last error: {error.kind.value}: {error}", file=sys.stderr)
    finally:
        await controller.aclose()
        await remote.aclose()
    return 1 if state is SyncState.LOAD_FAILED else 0


async def cmd_edit(args, settings: Settings) -> int:
    key = parse_key(args)
    patch = parse_assignments(args.set)
    controller, remote = build_controller(settings)
    try:
        await controller.load(key)
        controller.edit(key, patch)
        failed = controller.state(key) is SyncState.LOAD_FAILED
        record = controller.record(key)
        # Disposing flushes the pending write
        task = controller.dispose(key)
        result = await task if task is not None else None
    finally:
        await controller.aclose()
        await remote.aclose()

    if failed:
        state = SyncState.LOAD_FAILED
    elif result is not None and result.ok:
        state = SyncState.SYNCED
    else:
        state = SyncState.SAVING
    print_record(key, state, record, False)
    if failed:
        print("✗ Remote record could not be read; edit kept locally. Use `daysync push` to overwrite.")
        return 1
    if result is not None and not result.ok:
        print(f"⚠ Saved locally; remote write failed ({result.error.kind.value})")
        return 0 if result.error.ignorable else 1
    print("✓ Saved")
    return 0


async def cmd_push(args, settings: Settings) -> int:
    key = parse_key(args)
    remote = build_remote(settings)
    local = LocalCacheStore(SQLiteKeyValueStore(settings.local_db_path), settings.cache_namespace)
    try:
        record = local.get(key)
        if record is None:
            print(f"✗ Nothing cached locally for {key}")
            return 1
        writer = DebouncedWriter(local, remote, write_deadline=settings.write_deadline)
        result = await writer.flush_now(key, record)
    finally:
        await remote.aclose()
    if result.ok:
        print(f"✓ Pushed {key}")
        return 0
    print(f"✗ Push failed: {result.error!r}")
    return 1


async def cmd_status(args, settings: Settings) -> int:
    token = settings.auth_token
    masked = f"{token[:4]}…" if token else "(not set)"
    print(f"backend_url:       {settings.backend_url or '(not set)'}")
    print(f"auth_token:        {masked}")
    print(f"local_db_path:     {settings.local_db_path}")
    print(f"cache_namespace:   {settings.cache_namespace}")
    print(f"debounce_ms:       {settings.debounce_ms}")
    print(f"read_deadline_ms:  {settings.read_deadline_ms}")
    print(f"write_deadline_ms: {settings.write_deadline_ms}")
    return 0


COMMANDS = {
    "show": cmd_show,
    "edit": cmd_edit,
    "push": cmd_push,
    "status": cmd_status,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="daysync", description="Local-first planner sync")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_key_args(sub):
        sub.add_argument("kind", choices=[k.value for k in ResourceKind])
        sub.add_argument("period", help="YYYY-MM-DD (journal) or YYYY-MM")
        sub.add_argument("--user", required=True, help="Authenticated user id")

    show = subparsers.add_parser("show", help="Load and print a record")
    add_key_args(show)
    show.add_argument("--json", action="store_true", help="Output as JSON")

    edit = subparsers.add_parser("edit", help="Patch a record and save it")
    add_key_args(edit)
    edit.add_argument("--set", action="append", required=True, metavar="FIELD=VALUE")

    push = subparsers.add_parser("push", help="Force-save the locally cached record")
    add_key_args(push)

    subparsers.add_parser("status", help="Show effective settings")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()

    level = logging.DEBUG if args.verbose else getattr(logging, settings.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=level)

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except CLIError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
