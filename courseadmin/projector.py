"""
Projection (relational responses -> flat table rows).

- Walks each nested response level exactly once
- Emits ONE row per (parent, child) pair, in source order
- Coerces the API's text encodings into numbers and lists

Important rules:
- Rows are rebuilt from scratch on every fetch, never patched
- Coercion never raises: unparseable values fall back to documented
  defaults and the fallback is logged at DEBUG
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional

from courseadmin.model import CourseRecitations, ExamStudentExams
from courseadmin.registry import EntityKind


log = logging.getLogger(__name__)

DEFAULT_JUZ = 1
DEFAULT_PAGE = 1

_JUZ_RE = re.compile(r"^\s*(?:juz\s+)?(\d+)\s*$", re.IGNORECASE)
_INT_RE = re.compile(r"^\s*[+-]?\d+\s*$")


# ---------------------------------------------------------------------------
# Coercions
# ---------------------------------------------------------------------------


def _fallback(what: str, value: Any, default: Any) -> Any:
    log.debug("parse fallback: %s %r -> %r", what, value, default)
    return default


def parse_juz(value: Any) -> int:
    """
    "Juz 5" -> 5. Bare numbers ("5" or 5) are accepted too.
    Anything else yields DEFAULT_JUZ.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        m = _JUZ_RE.match(value)
        if m:
            return int(m.group(1))
    return _fallback("juz", value, DEFAULT_JUZ)


def parse_page(value: Any) -> int:
    """
    "12" -> 12; anything unparseable yields DEFAULT_PAGE.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and _INT_RE.match(value):
        return int(value)
    return _fallback("page", value, DEFAULT_PAGE)


def to_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """
    Lenient int conversion for identifiers ("7" -> 7); None stays None.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and _INT_RE.match(value):
        return int(value)
    if value is None:
        return default
    return _fallback("integer", value, default)


def int_sequence(value: Any) -> List[int]:
    """
    Ordered list of ints, never None.

    Accepts lists of ints or numeric strings, and comma separated strings
    ("1, 2, 3"). Items that are not numbers are dropped.
    """
    if value is None:
        return []

    items: Iterable[Any]
    if isinstance(value, str):
        items = [p for p in value.strip().strip("[]").split(",") if p.strip()]
    elif isinstance(value, (list, tuple)):
        items = value
    elif isinstance(value, int) and not isinstance(value, bool):
        items = [value]
    else:
        return _fallback("int sequence", value, [])

    out: List[int] = []
    for item in items:
        if isinstance(item, int) and not isinstance(item, bool):
            out.append(item)
        elif isinstance(item, str) and _INT_RE.match(item):
            out.append(int(item))
        else:
            _fallback("int sequence item", item, None)
    return out


# ---------------------------------------------------------------------------
# Relational projections (CORE LOGIC)
# ---------------------------------------------------------------------------


def project_recitations(response: CourseRecitations) -> List[dict[str, Any]]:
    """
    Flatten course -> lesson -> recitation into one row per recitation.

    Row id is "{lesson_id}-{student_id}": a student recites at most once per
    lesson, so the pair is unique within one course.
    """
    course_id = to_int(response.course_id)
    rows: List[dict[str, Any]] = []

    for lesson in response.lessons:
        for rec in lesson.recitations:
            rows.append(
                {
                    "id": f"{lesson.lesson_id}-{rec.student_id}",
                    "recitation_id": rec.recitation_id,
                    "student_id": rec.student_id,
                    "student_name": rec.student_name,
                    "course_id": course_id,
                    "course_title": response.course_title,
                    "lesson_id": lesson.lesson_id,
                    "lesson_title": lesson.lesson_title,
                    "lesson_date": lesson.lesson_date,
                    "recitation_per_page": int_sequence(rec.recitation_per_page),
                    "recitation_evaluation": rec.recitation_evaluation,
                    "current_juz": parse_juz(rec.current_juz),
                    "current_juz_page": parse_page(rec.current_juz_page),
                    "recitation_notes": rec.recitation_notes,
                    "homework": int_sequence(rec.homework),
                }
            )

    return rows


def project_student_exams(response: ExamStudentExams) -> List[dict[str, Any]]:
    """
    One row per student exam, with the exam header copied onto every row.

    Student exams carry their own server id, so that is the row id.
    """
    exam = response.exam
    rows: List[dict[str, Any]] = []

    for entry in response.student_exams:
        rows.append(
            {
                "id": entry.student_exam_id,
                "exam_id": exam.exam_id,
                "exam_title": exam.title,
                "course_id": exam.course_id,
                "max_mark": exam.max_mark,
                "passing_mark": exam.passing_mark,
                "student_id": entry.student_id,
                "student_name": entry.student_name,
                "student_mark": entry.student_mark,
            }
        )

    return rows


def project_recitation_records(records: Iterable[dict[str, Any]]) -> List[dict[str, Any]]:
    """
    Unscoped recitation list: records are already flat, only the encoded
    fields need coercion so scoped and unscoped rows look the same.
    """
    rows: List[dict[str, Any]] = []
    for record in records:
        row = dict(record)
        row.setdefault("id", None)
        row["recitation_id"] = record.get("id")
        row["current_juz"] = parse_juz(record.get("current_juz"))
        row["current_juz_page"] = parse_page(record.get("current_juz_page"))
        row["recitation_per_page"] = int_sequence(record.get("recitation_per_page"))
        row["homework"] = int_sequence(record.get("homework"))
        row["recitation_notes"] = record.get("recitation_notes") or ""
        rows.append(row)
    return rows


def project_entities(kind: EntityKind | str, records: Iterable[dict[str, Any]]) -> List[dict[str, Any]]:
    """
    Plain entity lists: shallow copies with an "id" key always present.
    """
    kind = EntityKind(kind)
    if kind is EntityKind.RECITATION:
        return project_recitation_records(records)

    rows: List[dict[str, Any]] = []
    for record in records:
        row = dict(record)
        row.setdefault("id", None)
        rows.append(row)
    return rows
