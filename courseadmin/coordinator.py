"""
View-state coordination for one management screen.

ScreenCoordinator owns everything a table screen shows:
- the projected rows for the active relation filter
- the search term (rows shown = pure filter over rows)
- the open form and its validation errors
- a state flag: IDLE, LOADING, READY, MUTATING or ERROR

All operations are coroutines. Blocking repository calls run through
`run_blocking` (asyncio.to_thread by default), so one event loop can drive
several screens while requests are in flight.

Two guards keep the rows consistent:
- a fetch is not issued while a fetch for the same filter is pending or a
  mutation is in flight
- each fetch is tagged with the filter it was issued for and with the number
  of mutations started so far; when it completes after the filter changed or
  after another mutation began, its result is discarded

Only the refetch that ends a mutation leaves MUTATING, so a late fetch can
never release the screen while a save or delete is still running.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from courseadmin.errors import ApiError, HttpError
from courseadmin.model import Option
from courseadmin.repository import EntityRepository
from courseadmin.screens import Screen
from courseadmin.search import filter_rows


log = logging.getLogger(__name__)

GENERIC_FAILURE = "The operation failed. Please try again."
BUSY = "Another operation is still running."

RunBlocking = Callable[..., Awaitable[Any]]
Confirm = Callable[[str], Union[bool, Awaitable[bool]]]


class ScreenState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    MUTATING = "mutating"
    ERROR = "error"


@dataclass
class FormContext:
    """
    What a form collaborator receives.

    record   the row being edited, or None when creating
    values   initial field values (copy of the row, or the screen defaults)
    options  relation-scoped choices per field, e.g. {"student_id": [...]}
    errors   validation messages per field from the last failed submit
    """

    record: Optional[dict[str, Any]]
    values: dict[str, Any]
    options: dict[str, list[Option]] = field(default_factory=dict)
    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_edit(self) -> bool:
        return self.record is not None

    def first_error(self, name: str) -> Optional[str]:
        messages = self.errors.get(name)
        return messages[0] if messages else None


class ScreenCoordinator:
    def __init__(
        self,
        screen: Screen,
        repository: EntityRepository,
        run_blocking: Optional[RunBlocking] = None,
        refetch_after_mutation: bool = True,
    ) -> None:
        self.screen = screen
        self.repository = repository
        self._run: RunBlocking = run_blocking or asyncio.to_thread
        self.refetch_after_mutation = refetch_after_mutation

        self.state = ScreenState.IDLE
        self.rows: list[dict[str, Any]] = []
        self.relation_filter: Any = None
        self.search_term = ""
        self.form: Optional[FormContext] = None
        self.error: Optional[ApiError] = None
        self.notice: Optional[str] = None
        self.last_saved: Optional[dict[str, Any]] = None

        self._pending: set[Any] = set()
        self._mutations = 0

    # -- derived state ------------------------------------------------------

    @property
    def loading(self) -> bool:
        return self.state is ScreenState.LOADING

    @property
    def busy(self) -> bool:
        return self.state in (ScreenState.LOADING, ScreenState.MUTATING)

    @property
    def visible_rows(self) -> list[dict[str, Any]]:
        return filter_rows(self.rows, self.search_term, self.screen.search_fields)

    @property
    def validation_errors(self) -> dict[str, list[str]]:
        return self.form.errors if self.form is not None else {}

    def set_search(self, term: str | None) -> list[dict[str, Any]]:
        self.search_term = term or ""
        return self.visible_rows

    # -- fetching -----------------------------------------------------------

    async def mount(self) -> bool:
        return await self.refresh()

    async def refresh(self) -> bool:
        return await self._fetch()

    async def select_filter(self, value: Any) -> bool:
        """
        Switch the relation filter (None = unscoped) and fetch its rows.

        During a mutation only the filter is switched; the refetch that ends
        the mutation picks up the new value.
        """
        if value is not None and not self.screen.has_filter:
            raise ValueError(f"Screen {self.screen.name!r} has no relation filter")

        if value != self.relation_filter:
            self.relation_filter = value
            self.rows = []
        return await self._fetch()

    async def filter_options(self) -> list[Option]:
        try:
            return await self._run(self.screen.filter_options, self.repository)
        except ApiError as exc:
            log.warning("%s: loading filter options failed: %s", self.screen.name, exc)
            self.notice = GENERIC_FAILURE
            return []

    def _superseded(self, tag: Any, issued_at: int) -> bool:
        return tag != self.relation_filter or issued_at != self._mutations

    async def _fetch(self, *, after_mutation: bool = False) -> bool:
        tag = self.relation_filter
        issued_at = self._mutations

        if not after_mutation:
            if self.state is ScreenState.MUTATING:
                log.debug("%s: fetch skipped, mutation in flight", self.screen.name)
                return False
            if tag in self._pending:
                log.debug("%s: fetch skipped, already loading %r", self.screen.name, tag)
                return False

        self._pending.add(tag)
        self.state = ScreenState.LOADING
        try:
            rows = await self._run(self.screen.load, self.repository, tag)
        except ApiError as exc:
            if self._superseded(tag, issued_at):
                log.info("%s: ignoring failure of superseded fetch for %r", self.screen.name, tag)
                return False
            log.warning("%s: fetch failed: %s", self.screen.name, exc)
            self.error = exc
            self.state = ScreenState.ERROR
            return False
        finally:
            self._pending.discard(tag)

        if self._superseded(tag, issued_at):
            log.info(
                "%s: discarding %d stale rows for %r (active filter: %r)",
                self.screen.name,
                len(rows),
                tag,
                self.relation_filter,
            )
            return False

        self.rows = rows
        self.error = None
        self.state = ScreenState.READY
        return True

    # -- forms --------------------------------------------------------------

    async def open_form(self, record: Optional[dict[str, Any]] = None) -> FormContext:
        """
        Open a fresh form for `record` (None = create). Any previous form and
        its validation errors are discarded first.
        """
        self.close_form()

        try:
            options = await self._run(self.screen.form_options, self.repository, self.relation_filter)
        except ApiError as exc:
            log.warning("%s: loading form options failed: %s", self.screen.name, exc)
            self.notice = GENERIC_FAILURE
            options = {}

        values = dict(record) if record is not None else self.screen.blank_record(self.relation_filter)
        self.form = FormContext(record=record, values=values, options=options)
        return self.form

    def close_form(self) -> None:
        if self.form is not None:
            self.form.errors = {}
        self.form = None

    # -- mutations ----------------------------------------------------------

    async def submit(self, values: dict[str, Any]) -> bool:
        """
        Create or update from the open form.

        On success the form is closed and rows are refetched for whatever
        filter is active by then. On a 422 the form receives the server's
        field errors; any other failure sets a generic notice. Rows are left
        untouched on failure.
        """
        if self.busy:
            self.notice = BUSY
            return False

        if self.form is None:
            self.form = FormContext(record=None, values=self.screen.blank_record(self.relation_filter))
        form = self.form
        form.errors = {}
        self.notice = None

        record = {**form.values, **values}
        payload = self.screen.config.payload_from(record)
        entity_id = self.screen.record_id(form.record) if form.record is not None else None

        if form.record is not None and entity_id is None:
            log.warning("%s: cannot update a row without a server id", self.screen.name)
            self.notice = "This record cannot be edited: it has no server identifier."
            return False

        prior = self.state
        started_with = self._begin_mutation()
        try:
            if entity_id is None:
                saved = await self._run(self.repository.create, self.screen.kind, payload)
            else:
                saved = await self._run(self.repository.update, self.screen.kind, entity_id, payload)
        except HttpError as exc:
            errors = exc.validation_errors()
            if errors:
                form.errors = errors
            else:
                log.warning("%s: save failed: %s", self.screen.name, exc)
                self.notice = GENERIC_FAILURE
            await self._mutation_failed(prior, started_with)
            return False
        except ApiError as exc:
            log.warning("%s: save failed: %s", self.screen.name, exc)
            self.notice = GENERIC_FAILURE
            await self._mutation_failed(prior, started_with)
            return False

        self.last_saved = saved
        if self.form is form:
            self.close_form()
        await self._mutation_succeeded(prior)
        return True

    async def delete(self, row: dict[str, Any], confirm: Confirm) -> bool:
        """
        Delete `row` after `confirm(message)` agrees. Declining changes nothing.
        Rows without a server id are refused before anyone is asked.
        """
        if self.busy:
            self.notice = BUSY
            return False

        entity_id = self.screen.record_id(row)
        if entity_id is None:
            log.warning("%s: cannot delete a row without a server id", self.screen.name)
            self.notice = "This record cannot be deleted: it has no server identifier."
            return False

        answer = confirm(f"Are you sure you want to delete this {self.screen.title.lower()} record?")
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            return False

        prior = self.state
        started_with = self._begin_mutation()
        self.notice = None
        try:
            await self._run(self.repository.delete, self.screen.kind, entity_id)
        except ApiError as exc:
            log.warning("%s: delete of %r failed: %s", self.screen.name, entity_id, exc)
            self.notice = GENERIC_FAILURE
            await self._mutation_failed(prior, started_with)
            return False

        await self._mutation_succeeded(prior)
        return True

    def _begin_mutation(self) -> Any:
        self._mutations += 1
        self.state = ScreenState.MUTATING
        return self.relation_filter

    async def _mutation_succeeded(self, prior: ScreenState) -> None:
        if self.refetch_after_mutation:
            await self._fetch(after_mutation=True)
        else:
            self.state = prior

    async def _mutation_failed(self, prior: ScreenState, started_with: Any) -> None:
        # Rows stay as they were, unless the filter moved on while the
        # request was in flight: then the new filter still needs its rows.
        self.state = prior
        if self.relation_filter != started_with and self.refetch_after_mutation:
            await self._fetch(after_mutation=True)
