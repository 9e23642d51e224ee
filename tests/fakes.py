"""
Test doubles for the HTTP layer.

FakeHttp stands in for requests.Session: it records every call and answers
from scripted routes. FakeCourseApi adds an in-memory backend that follows
the API's conventions (GET /x, GET /x/{id}, POST /x/store,
POST /x/update/{id}, DELETE /x/delete/{id}, 422 validation bodies).
"""

from __future__ import annotations

import json
from collections import defaultdict
from typing import Any

import requests

from courseadmin.registry import config_for

BASE_URL = "http://api.test"


def make_response(
    status: int = 200,
    body: Any = None,
    *,
    text: str | None = None,
    content_type: str = "application/json",
) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    if text is None:
        text = "" if body is None else json.dumps(body)
    resp._content = text.encode("utf-8")
    resp.encoding = "utf-8"
    resp.headers["Content-Type"] = content_type
    return resp


class FakeHttp:
    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.calls: list[dict[str, Any]] = []

    def add(self, method: str, path: str, response: Any = None, *, status: int = 200, body: Any = None) -> None:
        if response is None:
            response = make_response(status, body)
        self.routes[(method.upper(), path.strip("/"))] = response

    def paths(self, method: str | None = None) -> list[str]:
        return [c["path"] for c in self.calls if method is None or c["method"] == method]

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        path = url[len(BASE_URL):] if url.startswith(BASE_URL) else url
        path = path.strip("/")
        self.calls.append({"method": method, "path": path, **kwargs})

        handler = self.routes.get((method, path))
        if handler is None:
            return self.handle(method, path, kwargs)
        if isinstance(handler, BaseException):
            raise handler
        return handler

    def handle(self, method: str, path: str, kwargs: dict[str, Any]) -> requests.Response:
        return make_response(404, {"message": "Not Found"})


def _payload(kwargs: dict[str, Any]) -> dict[str, Any]:
    if kwargs.get("json") is not None:
        return dict(kwargs["json"])

    out: dict[str, Any] = {}
    for key, value in kwargs.get("data") or []:
        if key.endswith("[]"):
            out.setdefault(key[:-2], []).append(value)
        else:
            out[key] = value
    for key, value in (kwargs.get("files") or {}).items():
        name = value[0] if isinstance(value, tuple) else "upload"
        out[key] = f"/storage/{name}"
    return out


class FakeCourseApi(FakeHttp):
    def __init__(self) -> None:
        super().__init__()
        self.tables: dict[str, dict[int, dict[str, Any]]] = defaultdict(dict)
        self.required: dict[str, tuple[str, ...]] = {}
        self._next_id = 1

    def seed(self, entity: str, *records: dict[str, Any]) -> list[int]:
        ids = []
        for record in records:
            rid = record.get("id") or self._next_id
            self._next_id = max(self._next_id, rid) + 1
            self.tables[entity][rid] = {**record, "id": rid}
            ids.append(rid)
        return ids

    def _validate(self, entity: str, payload: dict[str, Any]) -> dict[str, list[str]]:
        errors = {}
        for name in self.required.get(entity, ()):
            if payload.get(name) in (None, "", 0):
                errors[name] = [f"The {name} field is required."]
        return errors

    def handle(self, method: str, path: str, kwargs: dict[str, Any]) -> requests.Response:
        parts = path.split("/")
        try:
            cfg = config_for(parts[0])
        except ValueError:
            return make_response(404, {"message": "Not Found"})
        table = self.tables[cfg.path]

        if method == "GET" and len(parts) == 1:
            return make_response(200, {cfg.list_key: list(table.values())})

        if method == "GET" and len(parts) == 2 and parts[1].isdigit():
            record = table.get(int(parts[1]))
            if record is None:
                return make_response(404, {"message": "Not Found"})
            return make_response(200, {cfg.item_key: record})

        if method == "POST" and parts[1:] == ["store"]:
            payload = _payload(kwargs)
            errors = self._validate(cfg.path, payload)
            if errors:
                return make_response(422, {"message": "The given data was invalid.", "errors": errors})
            rid = self._next_id
            self._next_id += 1
            table[rid] = {"id": rid, **payload, "created_at": "2026-01-01T00:00:00Z"}
            return make_response(201, {"message": "Created", cfg.item_key: table[rid]})

        if method == "POST" and len(parts) == 3 and parts[1] == "update":
            rid = int(parts[2])
            if rid not in table:
                return make_response(404, {"message": "Not Found"})
            payload = _payload(kwargs)
            errors = self._validate(cfg.path, payload)
            if errors:
                return make_response(422, {"message": "The given data was invalid.", "errors": errors})
            table[rid].update(payload)
            return make_response(200, {"message": "Updated", cfg.item_key: table[rid]})

        if method == "DELETE" and len(parts) == 3 and parts[1] == "delete":
            if table.pop(int(parts[2]), None) is None:
                return make_response(404, {"message": "Not Found"})
            return make_response(200, {"message": "Deleted"})

        return make_response(404, {"message": "Not Found"})


def recitations_body(course_id: int, lessons: list[tuple[int, str, list[int]]]) -> dict[str, Any]:
    """
    Build a recitations-by-course body: lessons given as
    (lesson_id, title, [student ids]).
    """
    return {
        "course_id": str(course_id),
        "course_title": f"Course {course_id}",
        "recitations_by_lesson": [
            {
                "lesson_id": lesson_id,
                "lesson_title": title,
                "lesson_date": "2026-03-01",
                "recitations": [
                    {
                        "id": lesson_id * 100 + sid,
                        "student_id": sid,
                        "student_name": f"Student {sid}",
                        "recitation_per_page": [1, 2],
                        "recitation_evaluation": "Good",
                        "current_juz": "Juz 3",
                        "current_juz_page": "7",
                        "recitation_notes": None,
                        "homework": None,
                    }
                    for sid in students
                ],
            }
            for lesson_id, title, students in lessons
        ],
    }
