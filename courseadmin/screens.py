"""
Management screens.

A Screen describes one table view: which entity kind it edits, how it loads
rows with and without a relation filter, which display fields the search box
looks at, and what options its form and filter selects offer. The
coordinator drives a Screen; it never special-cases an entity itself.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from courseadmin.model import Option
from courseadmin.projector import project_entities, project_recitations, project_student_exams
from courseadmin.registry import EntityConfig, EntityKind, config_for
from courseadmin.repository import EntityRepository


TAHFEEZ_COURSE_TYPE = "TahfeezCourse"

EVALUATION_CHOICES = ("Excellent", "Good", "Fair", "Poor", "So Bad")

MAX_JUZ = 30
MAX_JUZ_PAGE = 20
MAX_RECITATION_PAGES = 20
MAX_HOMEWORK = 20

Rows = list[dict[str, Any]]


@dataclass(frozen=True)
class Column:
    key: str
    label: str


def _row_id(row: dict[str, Any]) -> Any:
    return row.get("id")


def _recitation_id(row: dict[str, Any]) -> Any:
    # Course-scoped rows carry a composite "lesson-student" id; the server
    # id travels separately. Raw API records only have "id".
    if "recitation_id" in row:
        return row["recitation_id"]
    return row.get("id")


@dataclass(frozen=True)
class Screen:
    name: str
    title: str
    kind: EntityKind
    search_fields: tuple[str, ...]
    columns: tuple[Column, ...]
    filter_label: Optional[str] = None
    load_scoped: Optional[Callable[[EntityRepository, Any], Rows]] = None
    filter_choices: Optional[Callable[[EntityRepository], list[Option]]] = None
    form_choices: Optional[Callable[[EntityRepository, Any], dict[str, list[Option]]]] = None
    defaults: dict[str, Any] = field(default_factory=dict, hash=False)
    filter_field: Optional[str] = None
    record_id: Callable[[dict[str, Any]], Any] = _row_id

    @property
    def config(self) -> EntityConfig:
        return config_for(self.kind)

    @property
    def has_filter(self) -> bool:
        return self.load_scoped is not None

    def load(self, repo: EntityRepository, relation_filter: Any = None) -> Rows:
        """
        Fetch and project rows for one filter value (None = unscoped).
        Runs in a worker thread; may raise any ApiError.
        """
        if relation_filter is not None and self.load_scoped is not None:
            return self.load_scoped(repo, relation_filter)
        return project_entities(self.kind, repo.list_all(self.kind))

    def blank_record(self, relation_filter: Any = None) -> dict[str, Any]:
        record = copy.deepcopy(self.defaults)
        if self.filter_field and relation_filter is not None:
            record[self.filter_field] = relation_filter
        return record

    def filter_options(self, repo: EntityRepository) -> list[Option]:
        return self.filter_choices(repo) if self.filter_choices else []

    def form_options(self, repo: EntityRepository, relation_filter: Any = None) -> dict[str, list[Option]]:
        return self.form_choices(repo, relation_filter) if self.form_choices else {}


# ---------------------------------------------------------------------------
# Recitations (scoped by Tahfeez course)
# ---------------------------------------------------------------------------


def _load_course_recitations(repo: EntityRepository, course_id: Any) -> Rows:
    return project_recitations(repo.recitations_for_course(course_id))


def _tahfeez_courses(repo: EntityRepository) -> list[Option]:
    courses = repo.list_all(EntityKind.COURSE)
    return [
        Option(value=c.get("id"), label=str(c.get("title") or ""))
        for c in courses
        if c.get("type") == TAHFEEZ_COURSE_TYPE
    ]


def _numbered(prefix: str, count: int) -> list[Option]:
    return [Option(value=n, label=f"{prefix} {n}") for n in range(1, count + 1)]


def _recitation_form_choices(repo: EntityRepository, course_id: Any) -> dict[str, list[Option]]:
    courses = repo.list_all(EntityKind.COURSE)
    choices: dict[str, list[Option]] = {
        "course_id": [Option(value=c.get("id"), label=str(c.get("title") or "")) for c in courses],
        "recitation_evaluation": [Option(value=e, label=e) for e in EVALUATION_CHOICES],
        "recitation_per_page": _numbered("Page", MAX_RECITATION_PAGES),
        "homework": _numbered("Assignment", MAX_HOMEWORK),
        "current_juz": _numbered("Juz", MAX_JUZ),
        "current_juz_page": _numbered("Page", MAX_JUZ_PAGE),
    }
    if course_id is None:
        return choices

    course = repo.course_detail(course_id)
    choices["student_id"] = [Option(value=s.get("id"), label=str(s.get("name") or "")) for s in course.students]
    choices["lesson_id"] = [Option(value=x.get("id"), label=str(x.get("lesson_title") or "")) for x in course.lessons]
    return choices


RECITATIONS = Screen(
    name="recitations",
    title="Recitations",
    kind=EntityKind.RECITATION,
    search_fields=("student_name", "lesson_title", "recitation_evaluation"),
    columns=(
        Column("student_name", "Student Name"),
        Column("lesson_title", "Lesson"),
        Column("lesson_date", "Date"),
        Column("current_juz", "Current Juz"),
        Column("current_juz_page", "Juz Page"),
        Column("recitation_evaluation", "Evaluation"),
        Column("recitation_per_page", "Pages Recited"),
        Column("homework", "Homework"),
    ),
    filter_label="Tahfeez course",
    load_scoped=_load_course_recitations,
    filter_choices=_tahfeez_courses,
    form_choices=_recitation_form_choices,
    defaults={
        "student_id": 0,
        "course_id": 0,
        "lesson_id": 0,
        "recitation_per_page": [],
        "recitation_evaluation": "",
        "current_juz": 1,
        "current_juz_page": 1,
        "recitation_notes": "",
        "homework": [],
    },
    filter_field="course_id",
    record_id=_recitation_id,
)


# ---------------------------------------------------------------------------
# Student exams (scoped by exam)
# ---------------------------------------------------------------------------


def _load_exam_student_exams(repo: EntityRepository, exam_id: Any) -> Rows:
    return project_student_exams(repo.student_exams_for_exam(exam_id))


def _exams(repo: EntityRepository) -> list[Option]:
    return [Option(value=e.get("id"), label=str(e.get("title") or "")) for e in repo.list_all(EntityKind.EXAM)]


def _student_exam_form_choices(repo: EntityRepository, exam_id: Any) -> dict[str, list[Option]]:
    if exam_id is None:
        return {}
    exam = repo.get_by_id(EntityKind.EXAM, exam_id)
    course_id = exam.get("course_id")
    if course_id is None:
        return {}
    course = repo.course_detail(course_id)
    return {"student_id": [Option(value=s.get("id"), label=str(s.get("name") or "")) for s in course.students]}


STUDENT_EXAMS = Screen(
    name="student-exams",
    title="Student Exams",
    kind=EntityKind.STUDENT_EXAM,
    search_fields=("exam_id", "student_id", "student_name"),
    columns=(
        Column("exam_id", "Exam ID"),
        Column("student_id", "Student ID"),
        Column("student_name", "Student"),
        Column("student_mark", "Mark"),
    ),
    filter_label="Exam",
    load_scoped=_load_exam_student_exams,
    filter_choices=_exams,
    form_choices=_student_exam_form_choices,
    defaults={"exam_id": 0, "student_id": 0, "student_mark": 0},
    filter_field="exam_id",
)


# ---------------------------------------------------------------------------
# Plain entity screens
# ---------------------------------------------------------------------------


def _plain(name: str, title: str, kind: EntityKind, search: tuple[str, ...], columns: tuple[Column, ...]) -> Screen:
    return Screen(name=name, title=title, kind=kind, search_fields=search, columns=columns)


COURSES = _plain(
    "courses",
    "Courses",
    EntityKind.COURSE,
    ("title", "type", "description"),
    (Column("id", "ID"), Column("title", "Title"), Column("type", "Type"), Column("start_date", "Start")),
)
STUDENTS = _plain(
    "students",
    "Students",
    EntityKind.STUDENT,
    ("name", "email", "phone"),
    (Column("id", "ID"), Column("name", "Name"), Column("email", "Email"), Column("phone", "Phone")),
)
INSTRUCTORS = _plain(
    "instructors",
    "Instructors",
    EntityKind.INSTRUCTOR,
    ("name", "email", "specialization"),
    (Column("id", "ID"), Column("name", "Name"), Column("email", "Email"), Column("specialization", "Specialization")),
)
LESSONS = _plain(
    "lessons",
    "Lessons",
    EntityKind.LESSON,
    ("lesson_title", "lesson_date"),
    (Column("id", "ID"), Column("course_id", "Course"), Column("lesson_title", "Title"), Column("lesson_date", "Date")),
)
EXAMS = _plain(
    "exams",
    "Exams",
    EntityKind.EXAM,
    ("title", "exam_date"),
    (
        Column("id", "ID"),
        Column("title", "Title"),
        Column("exam_date", "Date"),
        Column("max_mark", "Max"),
        Column("passing_mark", "Pass"),
    ),
)
ATTENDANCE = _plain(
    "attendance",
    "Attendance",
    EntityKind.ATTENDANCE,
    ("student_id", "lesson_id", "status"),
    (Column("id", "ID"), Column("student_id", "Student"), Column("lesson_id", "Lesson"), Column("status", "Status")),
)
COURSE_FILES = _plain(
    "course-files",
    "Course Files",
    EntityKind.COURSE_FILE,
    ("title", "course_id"),
    (Column("id", "ID"), Column("course_id", "Course"), Column("title", "Title")),
)


SCREENS: dict[str, Screen] = {
    s.name: s
    for s in (COURSES, STUDENTS, INSTRUCTORS, LESSONS, EXAMS, ATTENDANCE, STUDENT_EXAMS, RECITATIONS, COURSE_FILES)
}


def get_screen(name: str) -> Screen:
    key = (name or "").strip().lower()
    if key not in SCREENS:
        raise KeyError(f"Unknown screen {name!r} (choose from: {', '.join(SCREENS)})")
    return SCREENS[key]
