"""
Typed shapes of the API's relational responses.

Plain entities (courses, students, ...) are handled as dicts. The nested
responses that the projector flattens are validated into the pydantic models
below at the transport boundary, so that:
- a malformed response fails early as a DecodeError
- the projector walks a typed tree instead of guessing at dict shapes

Repository methods pass `Model.model_validate` as the transport's `parse`;
TransportClient.request turns pydantic.ValidationError into DecodeError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field, model_validator


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _list_or_empty(value: Any) -> Any:
    return [] if value is None else value


# null -> "" / null -> [], everything else validated as usual
Text = Annotated[str, BeforeValidator(_text)]


def unwrap(data: Any, *keys: str) -> Any:
    """
    Strip a response envelope: return data[key] for the first key present.
    Bare payloads are returned unchanged.
    """
    if isinstance(data, dict):
        for key in keys:
            if key in data:
                return data[key]
    return data


@dataclass
class Option:
    """One choice offered to a form or filter select."""

    value: Any
    label: str


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ---------------------------------------------------------------------------
# Recitations by course:  GET /recitation/course/{courseId}
# ---------------------------------------------------------------------------


class RecitationEntry(_Schema):
    """
    One student's recitation inside a lesson.

    Juz, page and list fields are kept exactly as sent; the API encodes them
    as text ("Juz 5", "12") and the projector owns their coercion.
    """

    student_id: Any
    student_name: Text = ""
    recitation_per_page: Any = None
    recitation_evaluation: Text = ""
    current_juz: Any = None
    current_juz_page: Any = None
    recitation_notes: Text = ""
    homework: Any = None
    recitation_id: Any = Field(default=None, validation_alias=AliasChoices("recitation_id", "id"))


class LessonRecitations(_Schema):
    lesson_id: Any
    lesson_title: Text = ""
    lesson_date: Text = ""
    recitations: Annotated[List[RecitationEntry], BeforeValidator(_list_or_empty)] = []


class CourseRecitations(_Schema):
    course_id: Any
    course_title: Text = ""
    lessons: Annotated[List[LessonRecitations], BeforeValidator(_list_or_empty)] = Field(
        validation_alias=AliasChoices("recitations_by_lesson", "lessons")
    )


# ---------------------------------------------------------------------------
# Student exams by exam:  GET /stdExam/exam/{examId}
# ---------------------------------------------------------------------------


class ExamHeader(_Schema):
    exam_id: Any = Field(default=None, validation_alias=AliasChoices("id", "exam_id"))
    title: Text = ""
    course_id: Any = None
    max_mark: Any = None
    passing_mark: Any = None


class StudentExamEntry(_Schema):
    student_exam_id: Any = Field(default=None, validation_alias=AliasChoices("id", "student_exam_id"))
    student_id: Any
    student_name: Text = ""
    student_mark: Any = None


class ExamStudentExams(_Schema):
    exam: ExamHeader
    student_exams: Annotated[List[StudentExamEntry], BeforeValidator(_list_or_empty)]


# ---------------------------------------------------------------------------
# Course detail:  GET /courses/{id}  (embeds students and lessons)
# ---------------------------------------------------------------------------


class CourseDetail(_Schema):
    course_id: Any = Field(validation_alias=AliasChoices("id", "course_id"))
    title: Text = ""
    type: Optional[str] = None
    students: Annotated[List[dict], BeforeValidator(_list_or_empty)] = []
    lessons: Annotated[List[dict], BeforeValidator(_list_or_empty)] = []

    @model_validator(mode="before")
    @classmethod
    def _strip_envelope(cls, data: Any) -> Any:
        return unwrap(data, "course", "data")
