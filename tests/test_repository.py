"""
Tests for the entity repository against an in-memory API.

Covers endpoint conventions (POST for update, /store, /delete/{id}),
envelope unwrapping, relational reads and the create -> fetch round trip.
"""

import unittest

from courseadmin.errors import DecodeError, HttpError
from courseadmin.registry import EntityKind, config_for
from courseadmin.repository import EntityRepository
from courseadmin.session import SessionContext
from courseadmin.transport import TransportClient

from fakes import BASE_URL, FakeCourseApi, recitations_body


def _repo(api: FakeCourseApi) -> EntityRepository:
    return EntityRepository(TransportClient(BASE_URL, session=SessionContext(fixed_token="t"), http=api))


class TestEndpoints(unittest.TestCase):
    def test_crud_paths(self) -> None:
        api = FakeCourseApi()
        repo = _repo(api)

        created = repo.create(EntityKind.COURSE, {"title": "Tajweed"})
        repo.update(EntityKind.COURSE, created["id"], {"title": "Tajweed II"})
        repo.get_by_id(EntityKind.COURSE, created["id"])
        repo.list_all(EntityKind.COURSE)
        repo.delete(EntityKind.COURSE, created["id"])

        self.assertEqual(
            [(c["method"], c["path"]) for c in api.calls],
            [
                ("POST", "courses/store"),
                ("POST", f"courses/update/{created['id']}"),
                ("GET", f"courses/{created['id']}"),
                ("GET", "courses"),
                ("DELETE", f"courses/delete/{created['id']}"),
            ],
        )

    def test_list_unwraps_entity_envelope(self) -> None:
        api = FakeCourseApi()
        api.seed("recitation", {"student_id": 1}, {"student_id": 2})
        rows = _repo(api).list_all(EntityKind.RECITATION)
        self.assertEqual([r["student_id"] for r in rows], [1, 2])

    def test_list_accepts_bare_list_and_data_envelope(self) -> None:
        api = FakeCourseApi()
        api.add("GET", "students", body=[{"id": 1}])
        api.add("GET", "instructors", body={"data": [{"id": 2}]})
        repo = _repo(api)
        self.assertEqual(repo.list_all("students"), [{"id": 1}])
        self.assertEqual(repo.list_all("instructors"), [{"id": 2}])

    def test_list_rejects_non_list(self) -> None:
        api = FakeCourseApi()
        api.add("GET", "courses", body={"courses": "nope"})
        with self.assertRaises(DecodeError):
            _repo(api).list_all(EntityKind.COURSE)

    def test_relation_paths(self) -> None:
        self.assertEqual(config_for(EntityKind.RECITATION).relation_path("course", 3), "recitation/course/3")
        self.assertEqual(config_for(EntityKind.STUDENT_EXAM).relation_path("exam", 8), "stdExam/exam/8")
        with self.assertRaises(KeyError):
            config_for(EntityKind.COURSE).relation_path("exam", 1)


class TestRelationalReads(unittest.TestCase):
    def test_recitations_for_course_is_typed(self) -> None:
        api = FakeCourseApi()
        api.add("GET", "recitation/course/3", body=recitations_body(3, [(10, "L1", [1, 2])]))
        tree = _repo(api).recitations_for_course(3)
        self.assertEqual(tree.course_title, "Course 3")
        self.assertEqual([r.student_id for r in tree.lessons[0].recitations], [1, 2])

    def test_malformed_relational_response_is_decode_error(self) -> None:
        api = FakeCourseApi()
        api.add("GET", "recitation/course/3", body={"course_id": 3, "recitations_by_lesson": [{"title": "x"}]})
        with self.assertRaises(DecodeError):
            _repo(api).recitations_for_course(3)

    def test_student_exams_without_header_is_decode_error(self) -> None:
        api = FakeCourseApi()
        api.add("GET", "stdExam/exam/8", body={"student_exams": [{"id": 1, "student_id": 2}]})
        with self.assertRaises(DecodeError):
            _repo(api).student_exams_for_exam(8)

    def test_course_detail_embeds_students(self) -> None:
        api = FakeCourseApi()
        api.seed("courses", {"id": 3, "title": "Hifz", "students": [{"id": 1, "name": "Amina"}], "lessons": []})
        detail = _repo(api).course_detail(3)
        self.assertEqual(detail.title, "Hifz")
        self.assertEqual(detail.students, [{"id": 1, "name": "Amina"}])


class TestRoundTrip(unittest.TestCase):
    def test_create_then_fetch_returns_submitted_fields(self) -> None:
        payloads = [
            (EntityKind.COURSE, {"title": "Tajweed", "type": "TahfeezCourse", "instructor_id": 2}),
            (EntityKind.STUDENT_EXAM, {"exam_id": 8, "student_id": 1, "student_mark": 77}),
            (EntityKind.RECITATION, {"student_id": 1, "lesson_id": 4, "homework": [1, 2], "current_juz": 3}),
        ]
        api = FakeCourseApi()
        repo = _repo(api)
        for kind, payload in payloads:
            created = repo.create(kind, payload)
            fetched = repo.get_by_id(kind, created["id"])
            self.assertEqual({k: fetched[k] for k in payload}, payload)

    def test_attachment_payload_goes_multipart(self) -> None:
        api = FakeCourseApi()
        repo = _repo(api)
        created = repo.create(EntityKind.STUDENT, {"name": "Amina", "student_img": ("amina.png", b"PNG")})
        self.assertEqual(created["student_img"], "/storage/amina.png")
        self.assertIn("files", api.calls[0])

    def test_errors_propagate_unchanged(self) -> None:
        api = FakeCourseApi()
        api.required["courses"] = ("title",)
        with self.assertRaises(HttpError) as ctx:
            _repo(api).create(EntityKind.COURSE, {"title": ""})
        self.assertEqual(ctx.exception.status, 422)
        self.assertEqual(len(api.calls), 1)


if __name__ == "__main__":
    unittest.main()
