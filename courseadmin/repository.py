"""
Entity repository.

Uniform CRUD over every EntityKind plus the relational reads the management
screens need. Paths and envelopes come from the registry; encoding and error
mapping come from the transport. Nothing here retries, caches or swallows
errors: every ApiError propagates unchanged.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

from courseadmin.model import CourseDetail, CourseRecitations, ExamStudentExams, unwrap
from courseadmin.registry import EntityConfig, EntityKind, config_for
from courseadmin.transport import TransportClient


T = TypeVar("T")


def _parse_list(cfg: EntityConfig) -> Callable[[Any], list[dict[str, Any]]]:
    def parse(data: Any) -> list[dict[str, Any]]:
        items = unwrap(data, cfg.list_key, "data")
        if not isinstance(items, list):
            raise TypeError(f"{cfg.path}: expected a list under {cfg.list_key!r}")
        for item in items:
            if not isinstance(item, dict):
                raise TypeError(f"{cfg.path}: list items must be objects")
        return items

    return parse


def _parse_item(cfg: EntityConfig) -> Callable[[Any], dict[str, Any]]:
    keys = [k for k in (cfg.item_key, "data") if k]

    def parse(data: Any) -> dict[str, Any]:
        item = unwrap(data, *keys)
        if item is None:
            return {}
        if not isinstance(item, dict):
            raise TypeError(f"{cfg.path}: expected an object")
        return item

    return parse


class EntityRepository:
    def __init__(self, transport: TransportClient) -> None:
        self.transport = transport

    # -- generic CRUD -------------------------------------------------------

    def list_all(self, kind: EntityKind | str) -> list[dict[str, Any]]:
        cfg = config_for(kind)
        return self.transport.get(cfg.list_path(), parse=_parse_list(cfg))

    def list_by_relation(
        self,
        kind: EntityKind | str,
        relation: str,
        parent_id: Any,
        parse: Optional[Callable[[Any], T]] = None,
    ) -> Any:
        cfg = config_for(kind)
        return self.transport.get(cfg.relation_path(relation, parent_id), parse=parse)

    def get_by_id(self, kind: EntityKind | str, entity_id: Any) -> dict[str, Any]:
        cfg = config_for(kind)
        return self.transport.get(cfg.item_path(entity_id), parse=_parse_item(cfg))

    def create(self, kind: EntityKind | str, payload: dict[str, Any]) -> dict[str, Any]:
        cfg = config_for(kind)
        return self.transport.post(cfg.store_path(), payload, parse=_parse_item(cfg))

    def update(self, kind: EntityKind | str, entity_id: Any, payload: dict[str, Any]) -> dict[str, Any]:
        # The API updates with POST, not PUT/PATCH.
        cfg = config_for(kind)
        return self.transport.post(cfg.update_path(entity_id), payload, parse=_parse_item(cfg))

    def delete(self, kind: EntityKind | str, entity_id: Any) -> None:
        cfg = config_for(kind)
        self.transport.delete(cfg.delete_path(entity_id))

    # -- relational reads ---------------------------------------------------

    def recitations_for_course(self, course_id: Any) -> CourseRecitations:
        return self.list_by_relation(EntityKind.RECITATION, "course", course_id, parse=CourseRecitations.model_validate)

    def student_exams_for_exam(self, exam_id: Any) -> ExamStudentExams:
        return self.list_by_relation(EntityKind.STUDENT_EXAM, "exam", exam_id, parse=ExamStudentExams.model_validate)

    def course_detail(self, course_id: Any) -> CourseDetail:
        cfg = config_for(EntityKind.COURSE)
        return self.transport.get(cfg.item_path(course_id), parse=CourseDetail.model_validate)
