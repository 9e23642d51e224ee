"""
Entity registry.

One EntityConfig per entity kind, keyed by the closed EntityKind enumeration.
The table is built once at import time; nothing else in the package spells
out endpoint paths or envelope keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    COURSE = "courses"
    STUDENT = "students"
    INSTRUCTOR = "instructors"
    LESSON = "lessons"
    EXAM = "exams"
    ATTENDANCE = "atten"
    STUDENT_EXAM = "stdExam"
    RECITATION = "recitation"
    COURSE_FILE = "courseFiles"


@dataclass(frozen=True)
class EntityConfig:
    """
    Static description of one entity kind.

    path          URL segment, e.g. "stdExam"
    list_key      envelope key of the list response ({"courses": [...]})
    item_key      envelope key of single-record responses, if any
    fields        payload shape: the keys a create/update request may carry
    relations     relation name -> parent kind, for GET /{path}/{relation}/{id}
    """

    kind: EntityKind
    list_key: str
    item_key: str | None
    fields: tuple[str, ...]
    relations: dict[str, EntityKind] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.kind.value

    def list_path(self) -> str:
        return self.path

    def item_path(self, entity_id: Any) -> str:
        return f"{self.path}/{entity_id}"

    def relation_path(self, relation: str, parent_id: Any) -> str:
        if relation not in self.relations:
            raise KeyError(f"{self.path} has no relation {relation!r}")
        return f"{self.path}/{relation}/{parent_id}"

    def store_path(self) -> str:
        return f"{self.path}/store"

    def update_path(self, entity_id: Any) -> str:
        return f"{self.path}/update/{entity_id}"

    def delete_path(self, entity_id: Any) -> str:
        return f"{self.path}/delete/{entity_id}"

    def payload_from(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Keep only the keys this kind accepts, dropping display-only fields
        (denormalized names, composite row ids) added by the projector.
        """
        return {k: record[k] for k in self.fields if k in record}


REGISTRY: dict[EntityKind, EntityConfig] = {
    EntityKind.COURSE: EntityConfig(
        kind=EntityKind.COURSE,
        list_key="courses",
        item_key="course",
        fields=("title", "type", "description", "instructor_id", "start_date", "end_date", "course_img"),
    ),
    EntityKind.STUDENT: EntityConfig(
        kind=EntityKind.STUDENT,
        list_key="students",
        item_key="student",
        fields=("name", "email", "phone", "birth_date", "gender", "address", "student_img"),
    ),
    EntityKind.INSTRUCTOR: EntityConfig(
        kind=EntityKind.INSTRUCTOR,
        list_key="instructors",
        item_key="instructor",
        fields=("name", "email", "phone", "specialization", "instructor_img"),
    ),
    EntityKind.LESSON: EntityConfig(
        kind=EntityKind.LESSON,
        list_key="lessons",
        item_key="lesson",
        fields=("course_id", "lesson_title", "lesson_date", "description"),
    ),
    EntityKind.EXAM: EntityConfig(
        kind=EntityKind.EXAM,
        list_key="exams",
        item_key="exam",
        fields=("course_id", "title", "exam_date", "max_mark", "passing_mark"),
    ),
    EntityKind.ATTENDANCE: EntityConfig(
        kind=EntityKind.ATTENDANCE,
        list_key="data",
        item_key="data",
        fields=("student_id", "lesson_id", "status", "notes"),
    ),
    EntityKind.STUDENT_EXAM: EntityConfig(
        kind=EntityKind.STUDENT_EXAM,
        list_key="data",
        item_key="data",
        fields=("exam_id", "student_id", "student_mark"),
        relations={"exam": EntityKind.EXAM},
    ),
    EntityKind.RECITATION: EntityConfig(
        kind=EntityKind.RECITATION,
        list_key="student_recitation",
        item_key="student_recitation",
        fields=(
            "student_id",
            "course_id",
            "lesson_id",
            "recitation_per_page",
            "recitation_evaluation",
            "current_juz",
            "current_juz_page",
            "recitation_notes",
            "homework",
        ),
        relations={"course": EntityKind.COURSE},
    ),
    EntityKind.COURSE_FILE: EntityConfig(
        kind=EntityKind.COURSE_FILE,
        list_key="data",
        item_key="data",
        fields=("course_id", "title", "file"),
    ),
}


def config_for(kind: EntityKind | str) -> EntityConfig:
    """
    Resolve a kind (enum member or its path value) to its EntityConfig.
    """
    return REGISTRY[EntityKind(kind)]
