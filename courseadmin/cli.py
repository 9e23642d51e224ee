"""
CLI (Command Line Interface).

Quick terminal commands for scripting and for testing against a live API:

    courseadmin screens
    courseadmin list recitations --filter 3 --search excellent
    courseadmin show students 12
    courseadmin create students name="Amina" email=a@example.org --file student_img=photo.jpg
    courseadmin update recitation 7 recitation_evaluation=Good
    courseadmin delete courses 4
    courseadmin login <token> / courseadmin logout
    courseadmin interactive

Note:
- The interactive console lives in courseadmin/interactive.py
- This CLI prints plain text (no rich formatting)
- Every command goes through the same ScreenCoordinator the console uses
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from courseadmin.config import Settings, load_settings
from courseadmin.coordinator import ScreenCoordinator, ScreenState
from courseadmin.errors import ApiError
from courseadmin.repository import EntityRepository
from courseadmin.screens import SCREENS, Screen, get_screen
from courseadmin.session import SessionContext, clear_session_token, save_session_token
from courseadmin.transport import TransportClient


log = logging.getLogger(__name__)


def configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def build_repository(settings: Settings) -> EntityRepository:
    """
    Wire transport + repository for one process.
    """
    transport = TransportClient(
        settings.base_url,
        session=SessionContext(path=settings.session_path),
        timeout=settings.timeout,
    )
    return EntityRepository(transport)


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def parse_value(text: str) -> Any:
    """
    Interpret a command-line value: JSON when it parses (7, [1,2], true),
    the raw string otherwise.
    """
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_assignments(items: list[str]) -> dict[str, Any]:
    """
    Turn ["name=Amina", "student_id=4"] into {"name": "Amina", "student_id": 4}.
    """
    out: dict[str, Any] = {}
    for item in items:
        if "=" not in item:
            raise ValueError(f"Expected field=value, got {item!r}")
        key, raw = item.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"Missing field name in {item!r}")
        out[key] = parse_value(raw)
    return out


def load_attachments(items: list[str]) -> dict[str, Any]:
    """
    Turn ["student_img=photo.jpg"] into {"student_img": ("photo.jpg", b"...")}.
    """
    out: dict[str, Any] = {}
    for item in items:
        if "=" not in item:
            raise ValueError(f"Expected field=path, got {item!r}")
        key, raw_path = item.split("=", 1)
        path = Path(raw_path.strip()).expanduser()
        out[key.strip()] = (path.name, path.read_bytes())
    return out


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _print_rows(screen: Screen, rows: list[dict[str, Any]]) -> None:
    print(" | ".join(c.label for c in screen.columns))
    for row in rows:
        print(" | ".join(format_cell(row.get(c.key)) for c in screen.columns))


def _print_validation(errors: dict[str, list[str]]) -> None:
    print("Validation failed:")
    for field_name, messages in errors.items():
        for message in messages:
            print(f"  {field_name}: {message}")


def _screen_or_none(name: str) -> Optional[Screen]:
    try:
        return get_screen(name)
    except KeyError as exc:
        print(exc.args[0])
        return None


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_screens(args: argparse.Namespace) -> int:
    for screen in SCREENS.values():
        scope = f" (filter: {screen.filter_label})" if screen.filter_label else ""
        print(f"{screen.name}{scope}")
    return 0


def _cmd_list(args: argparse.Namespace, repo: EntityRepository) -> int:
    """
    Fetch a screen's rows (optionally scoped) and print the searched subset.
    """
    screen = _screen_or_none(args.screen)
    if screen is None:
        return 2

    relation_filter = parse_value(args.filter) if args.filter is not None else None
    if relation_filter is not None and not screen.has_filter:
        print(f"Screen '{screen.name}' has no relation filter.")
        return 2

    coordinator = ScreenCoordinator(screen, repo)
    if relation_filter is None:
        asyncio.run(coordinator.mount())
    else:
        asyncio.run(coordinator.select_filter(relation_filter))

    if coordinator.state is ScreenState.ERROR:
        print(f"Could not load {screen.name}: {coordinator.error}")
        return 1

    rows = coordinator.set_search(args.search)
    if not rows:
        print("No results.")
        return 0

    _print_rows(screen, rows)
    return 0


def _cmd_show(args: argparse.Namespace, repo: EntityRepository) -> int:
    screen = _screen_or_none(args.screen)
    if screen is None:
        return 2

    try:
        record = repo.get_by_id(screen.kind, parse_value(args.id))
    except ApiError as exc:
        print(f"Could not load {screen.name} #{args.id}: {exc}")
        return 1

    for key, value in record.items():
        print(f"{key}: {format_cell(value)}")
    return 0


async def _save(
    coordinator: ScreenCoordinator, entity_id: Any, values: dict[str, Any], repo: EntityRepository
) -> bool:
    record = None
    if entity_id is not None:
        record = await asyncio.to_thread(repo.get_by_id, coordinator.screen.kind, entity_id)
    await coordinator.open_form(record)
    return await coordinator.submit(values)


def _cmd_save(args: argparse.Namespace, repo: EntityRepository) -> int:
    """
    Shared body of `create` and `update`.
    """
    screen = _screen_or_none(args.screen)
    if screen is None:
        return 2

    try:
        values = parse_assignments(args.fields)
        values.update(load_attachments(args.file or []))
    except (ValueError, OSError) as exc:
        print(str(exc))
        return 2

    entity_id = parse_value(args.id) if getattr(args, "id", None) is not None else None
    # One-shot command: nothing is displayed afterwards, so no refetch.
    coordinator = ScreenCoordinator(screen, repo, refetch_after_mutation=False)

    try:
        ok = asyncio.run(_save(coordinator, entity_id, values, repo))
    except ApiError as exc:
        print(f"Could not load {screen.name} #{entity_id}: {exc}")
        return 1

    if not ok:
        if coordinator.validation_errors:
            _print_validation(coordinator.validation_errors)
        else:
            print(coordinator.notice or "Save failed.")
        return 1

    saved = coordinator.last_saved or {}
    verb = "Updated" if entity_id is not None else "Created"
    new_id = saved.get("id", entity_id)
    print(f"{verb}: {screen.name}" + (f" #{new_id}" if new_id is not None else ""))
    return 0


def _confirm_prompt(message: str) -> bool:
    return input(f"{message} [y/N]: ").strip().lower() in ("y", "yes")


def _cmd_delete(args: argparse.Namespace, repo: EntityRepository) -> int:
    screen = _screen_or_none(args.screen)
    if screen is None:
        return 2

    entity_id = parse_value(args.id)
    coordinator = ScreenCoordinator(screen, repo, refetch_after_mutation=False)
    confirm = (lambda _message: True) if args.yes else _confirm_prompt

    ok = asyncio.run(coordinator.delete({"id": entity_id}, confirm))
    if ok:
        print(f"Deleted: {screen.name} #{entity_id}")
        return 0
    if coordinator.notice:
        print(coordinator.notice)
        return 1

    print("Cancelled.")
    return 0


def _cmd_login(args: argparse.Namespace, settings: Settings) -> int:
    token = (args.token or "").strip()
    if not token:
        print("Please provide a token.")
        return 1
    save_session_token(token, settings.session_path)
    print(f"Token saved to {settings.session_path}")
    return 0


def _cmd_logout(args: argparse.Namespace, settings: Settings) -> int:
    if clear_session_token(settings.session_path):
        print("Logged out.")
    else:
        print("No session to clear.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="courseadmin", description="Course administration console")
    parser.add_argument("--base-url", type=str, default=None, help="API base URL (env: COURSEADMIN_BASE_URL)")
    parser.add_argument("--session-file", type=str, default=None, help="Session token file")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds (default: none)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv debug)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("screens", help="List management screens")

    p_list = sub.add_parser("list", help="List the rows of a screen")
    p_list.add_argument("screen", type=str, help="Screen name (e.g. recitations)")
    p_list.add_argument("--filter", "-f", type=str, default=None, help="Relation filter id (course/exam)")
    p_list.add_argument("--search", "-s", type=str, default="", help="Search text")

    p_show = sub.add_parser("show", help="Show one record")
    p_show.add_argument("screen", type=str)
    p_show.add_argument("id", type=str)

    p_create = sub.add_parser("create", help="Create a record")
    p_create.add_argument("screen", type=str)
    p_create.add_argument("fields", nargs="*", help="field=value pairs")
    p_create.add_argument("--file", action="append", help="field=path attachment (repeatable)")

    p_update = sub.add_parser("update", help="Update a record")
    p_update.add_argument("screen", type=str)
    p_update.add_argument("id", type=str)
    p_update.add_argument("fields", nargs="*", help="field=value pairs")
    p_update.add_argument("--file", action="append", help="field=path attachment (repeatable)")

    p_delete = sub.add_parser("delete", help="Delete a record")
    p_delete.add_argument("screen", type=str)
    p_delete.add_argument("id", type=str)
    p_delete.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")

    p_login = sub.add_parser("login", help="Store an API token")
    p_login.add_argument("token", type=str)

    sub.add_parser("logout", help="Forget the stored API token")
    sub.add_parser("interactive", help="Interactive console")

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    settings = load_settings(base_url=args.base_url, session_path=args.session_file, timeout=args.timeout)

    if args.command == "screens":
        raise SystemExit(_cmd_screens(args))
    if args.command == "login":
        raise SystemExit(_cmd_login(args, settings))
    if args.command == "logout":
        raise SystemExit(_cmd_logout(args, settings))

    repo = build_repository(settings)

    if args.command == "list":
        raise SystemExit(_cmd_list(args, repo))
    if args.command == "show":
        raise SystemExit(_cmd_show(args, repo))
    if args.command in ("create", "update"):
        raise SystemExit(_cmd_save(args, repo))
    if args.command == "delete":
        raise SystemExit(_cmd_delete(args, repo))

    if args.command == "interactive":
        from courseadmin.interactive import run_interactive

        run_interactive(repo)
        raise SystemExit(0)

    raise SystemExit(2)
