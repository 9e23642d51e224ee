from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from courseadmin.cli import format_cell, parse_value
from courseadmin.coordinator import FormContext, ScreenCoordinator, ScreenState
from courseadmin.repository import EntityRepository
from courseadmin.screens import SCREENS

console = Console()

ATTACHMENT_FIELDS = ("student_img", "instructor_img", "course_img", "file")


def _println(msg: str = "") -> None:
    console.print(msg)


async def _prompt(msg: str) -> str:
    return await asyncio.to_thread(console.input, escape(msg))


async def _confirm(message: str) -> bool:
    answer = (await _prompt(f"{message} [y/N]: ")).strip().lower()
    return answer in ("y", "yes")


def run_interactive(repo: EntityRepository) -> None:
    """
    Interactive menu loop: pick a screen, then work on its table.
    """
    asyncio.run(_main_menu(repo))


async def _main_menu(repo: EntityRepository) -> None:
    # One coordinator per screen for the whole session, so going back and
    # forth keeps each screen's filter and search.
    coordinators: dict[str, ScreenCoordinator] = {}
    names = list(SCREENS)

    while True:
        _println("\n=== Course Admin (interactive) ===")
        for i, name in enumerate(names, start=1):
            _println(f"[{i}] {SCREENS[name].title}")
        _println("[0] Exit")

        choice = (await _prompt("Select: ")).strip()
        if choice == "0":
            _println("Bye.")
            return
        if not choice.isdigit() or not (1 <= int(choice) <= len(names)):
            _println("Invalid choice.")
            continue

        name = names[int(choice) - 1]
        coordinator = coordinators.get(name)
        if coordinator is None:
            coordinator = ScreenCoordinator(SCREENS[name], repo)
            coordinators[name] = coordinator
        if coordinator.state is ScreenState.IDLE:
            await coordinator.mount()

        await _screen_loop(coordinator)


def _render(coordinator: ScreenCoordinator) -> None:
    screen = coordinator.screen
    rows = coordinator.visible_rows

    scope = ""
    if screen.filter_label:
        current = coordinator.relation_filter
        scope = f" | {screen.filter_label}: {current if current is not None else 'all'}"
    search = f" | search: '{escape(coordinator.search_term)}'" if coordinator.search_term else ""

    _println(f"\n=== {screen.title} ===")
    _println(f"[dim]{coordinator.state.value}{scope}{search} | {len(rows)}/{len(coordinator.rows)} rows[/]")

    if coordinator.state is ScreenState.ERROR:
        _println(f"[red]Could not load data: {escape(str(coordinator.error))}[/]")
    if coordinator.notice:
        _println(f"[yellow]{escape(coordinator.notice)}[/]")

    if not rows:
        _println("No rows.")
        return

    table = Table(box=box.SIMPLE)
    table.add_column("#", justify="right")
    for column in screen.columns:
        table.add_column(column.label)
    for i, row in enumerate(rows, start=1):
        table.add_row(str(i), *[escape(format_cell(row.get(c.key))) for c in screen.columns])
    console.print(table)


async def _screen_loop(coordinator: ScreenCoordinator) -> None:
    has_filter = coordinator.screen.has_filter

    while True:
        _render(coordinator)

        menu = "\n[f] Filter  " if has_filter else "\n"
        menu += "[s] Search  [a] Add  [e] Edit  [d] Delete  [r] Refresh  [b] Back\nSelect: "
        choice = (await _prompt(menu)).strip().lower()

        if choice == "b":
            return
        if choice == "f" and has_filter:
            await _flow_filter(coordinator)
        elif choice == "s":
            term = await _prompt("Search text [blank = clear]: ")
            coordinator.set_search(term)
        elif choice == "a":
            await _flow_form(coordinator, None)
        elif choice == "e":
            row = await _pick_row(coordinator, "edit")
            if row is not None:
                await _flow_form(coordinator, row)
        elif choice == "d":
            row = await _pick_row(coordinator, "delete")
            if row is not None and await coordinator.delete(row, _confirm):
                _println("[green]Deleted.[/]")
        elif choice == "r":
            await coordinator.refresh()
        else:
            _println("Invalid choice.")


async def _flow_filter(coordinator: ScreenCoordinator) -> None:
    options = await coordinator.filter_options()
    if not options:
        _println("No filter options available.")
        return

    table = Table(title=coordinator.screen.filter_label, box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Option")
    for i, opt in enumerate(options, start=1):
        table.add_row(str(i), escape(opt.label))
    console.print(table)

    pick = (await _prompt("Enter number [blank = show all]: ")).strip()
    if not pick:
        await coordinator.select_filter(None)
        return
    if not pick.isdigit() or not (1 <= int(pick) <= len(options)):
        _println("Out of range.")
        return
    await coordinator.select_filter(options[int(pick) - 1].value)


async def _pick_row(coordinator: ScreenCoordinator, action: str) -> Optional[dict[str, Any]]:
    rows = coordinator.visible_rows
    if not rows:
        _println("No rows.")
        return None

    pick = (await _prompt(f"Row number to {action} [blank = back]: ")).strip()
    if not pick:
        return None
    if not pick.isdigit() or not (1 <= int(pick) <= len(rows)):
        _println("Out of range.")
        return None
    return rows[int(pick) - 1]


def _field_hint(form: FormContext, name: str) -> str:
    options = form.options.get(name)
    if not options:
        return ""
    shown = ", ".join(f"{o.value}={o.label}" for o in options[:10])
    more = f" (+{len(options) - 10})" if len(options) > 10 else ""
    return f" [dim]({escape(shown)}{more})[/]"


async def _ask_field(form: FormContext, name: str, values: dict[str, Any]) -> None:
    current = values.get(name, form.values.get(name))
    error = form.first_error(name)
    if error:
        _println(f"  [red]{escape(name)}: {escape(error)}[/]")

    if name in ATTACHMENT_FIELDS:
        raw = (await _prompt(f"{name} (file path) [blank = keep]: ")).strip()
        if raw:
            path = Path(raw).expanduser()
            try:
                values[name] = (path.name, path.read_bytes())
            except OSError as exc:
                _println(f"[red]Cannot read {escape(str(path))}: {escape(str(exc))}[/]")
        return

    _println(f"{escape(name)}{_field_hint(form, name)}")
    raw = (await _prompt(f"  [{format_cell(current)}]: ")).strip()
    if raw:
        values[name] = parse_value(raw)


async def _flow_form(coordinator: ScreenCoordinator, row: Optional[dict[str, Any]]) -> None:
    """
    Walk the form fields, submit, and re-ask on validation errors until the
    user saves successfully or gives up.
    """
    form = await coordinator.open_form(row)
    _println("Edit record" if form.is_edit else "New record")

    values: dict[str, Any] = {}
    while True:
        for name in coordinator.screen.config.fields:
            await _ask_field(form, name, values)

        if await coordinator.submit(values):
            _println("[green]Saved.[/]")
            return

        if not form.errors:
            _println(f"[red]{escape(coordinator.notice or 'Save failed.')}[/]")
            coordinator.close_form()
            return

        _println("[red]Please correct the highlighted fields.[/]")
        again = (await _prompt("Try again? [Y/n]: ")).strip().lower()
        if again == "n":
            coordinator.close_form()
            return
