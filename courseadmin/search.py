"""
Search over already-fetched rows.

A row matches when any of the given display fields contains the search term
as a case-insensitive substring. Filtering returns a new list and never
touches the rows it was given, so it is cheap to recompute on every keystroke.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence


def _display_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return " ".join(_display_text(v) for v in value)
    return str(value)


def normalize_term(term: str | None) -> str:
    # Whitespace is part of the term: "Amina " must not match "Aminah".
    return (term or "").lower()


def row_matches(row: dict[str, Any], term: str, fields: Sequence[str]) -> bool:
    query = normalize_term(term)
    if not query:
        return True
    return any(query in _display_text(row.get(f)).lower() for f in fields)


def filter_rows(rows: Iterable[dict[str, Any]], term: str | None, fields: Sequence[str]) -> list[dict[str, Any]]:
    """
    Rows whose display fields contain `term`. An empty term keeps everything.
    """
    query = normalize_term(term)
    if not query:
        return list(rows)
    return [row for row in rows if row_matches(row, query, fields)]
