"""
Tests for CLI entry points.

These tests focus on:
- Basic argument validation (a command is required, unknown screens fail)
- Session login/logout against a temporary file
  (to avoid touching the real user session during tests)
- list/create/delete wired to an in-memory API
"""

import contextlib
import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from courseadmin.cli import main, parse_assignments
from courseadmin.repository import EntityRepository
from courseadmin.session import SessionContext, load_session_token
from courseadmin.transport import TransportClient

from fakes import BASE_URL, FakeCourseApi


def _run(argv, api=None):
    """
    Run main(argv) and return (exit code, stdout). When `api` is given, the
    repository is built on top of it instead of a live HTTP session.
    """
    out = io.StringIO()
    patcher = contextlib.nullcontext()
    if api is not None:
        repo = EntityRepository(TransportClient(BASE_URL, session=SessionContext(fixed_token="t"), http=api))
        patcher = mock.patch("courseadmin.cli.build_repository", return_value=repo)

    with patcher, contextlib.redirect_stdout(out):
        try:
            main(argv)
        except SystemExit as exc:
            return exc.code, out.getvalue()
    return None, out.getvalue()


def _courses_api() -> FakeCourseApi:
    api = FakeCourseApi()
    api.seed(
        "courses",
        {"id": 1, "title": "Hifz A", "type": "TahfeezCourse"},
        {"id": 2, "title": "Arabic Basics", "type": "LanguageCourse"},
    )
    return api


class TestCLI(unittest.TestCase):
    def test_cli_requires_command(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                main([])
        self.assertNotEqual(ctx.exception.code, 0)

    def test_screens_lists_filters(self) -> None:
        code, out = _run(["screens"])
        self.assertEqual(code, 0)
        self.assertIn("recitations (filter: Tahfeez course)", out)
        self.assertIn("courses", out)

    def test_login_and_logout_roundtrip(self) -> None:
        # Do not touch the real session file used by users.
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "session.json"
            code, _ = _run(["--session-file", str(p), "login", "tok-9"])
            self.assertEqual(code, 0)
            self.assertEqual(load_session_token(p), "tok-9")

            code, out = _run(["--session-file", str(p), "logout"])
            self.assertEqual(code, 0)
            self.assertIn("Logged out.", out)
            self.assertIsNone(load_session_token(p))

    def test_parse_assignments(self) -> None:
        values = parse_assignments(["name=Amina", "student_id=4", "homework=[1,2]", "note=a=b"])
        self.assertEqual(values, {"name": "Amina", "student_id": 4, "homework": [1, 2], "note": "a=b"})
        with self.assertRaises(ValueError):
            parse_assignments(["oops"])


class TestCLIAgainstApi(unittest.TestCase):
    def test_list_with_search(self) -> None:
        code, out = _run(["list", "courses", "--search", "arabic"], api=_courses_api())
        self.assertEqual(code, 0)
        self.assertIn("Arabic Basics", out)
        self.assertNotIn("Hifz A", out)

    def test_list_empty_search(self) -> None:
        code, out = _run(["list", "courses", "-s", "nothing-like-this"], api=_courses_api())
        self.assertEqual(code, 0)
        self.assertIn("No results.", out)

    def test_list_unknown_screen(self) -> None:
        code, out = _run(["list", "timetables"], api=_courses_api())
        self.assertEqual(code, 2)
        self.assertIn("Unknown screen", out)

    def test_filter_on_unscoped_screen(self) -> None:
        code, _ = _run(["list", "courses", "--filter", "1"], api=_courses_api())
        self.assertEqual(code, 2)

    def test_create_prints_new_id(self) -> None:
        api = _courses_api()
        code, out = _run(["create", "courses", "title=Tajweed", "type=TahfeezCourse"], api=api)
        self.assertEqual(code, 0)
        self.assertIn("Created: courses #3", out)
        self.assertEqual(api.tables["courses"][3]["title"], "Tajweed")
        # one-shot commands do not reload the list afterwards
        self.assertEqual(api.paths("GET"), [])

    def test_create_validation_errors(self) -> None:
        api = _courses_api()
        api.required["courses"] = ("title",)
        code, out = _run(["create", "courses", "type=TahfeezCourse"], api=api)
        self.assertEqual(code, 1)
        self.assertIn("title: The title field is required.", out)

    def test_update_merges_existing_record(self) -> None:
        api = _courses_api()
        code, out = _run(["update", "courses", "2", "title=Arabic II"], api=api)
        self.assertEqual(code, 0)
        self.assertIn("Updated: courses #2", out)
        self.assertEqual(api.tables["courses"][2]["type"], "LanguageCourse")
        self.assertEqual(api.tables["courses"][2]["title"], "Arabic II")
        self.assertEqual(api.paths("GET"), ["courses/2"])

    def test_delete_with_yes(self) -> None:
        api = _courses_api()
        code, out = _run(["delete", "courses", "1", "--yes"], api=api)
        self.assertEqual(code, 0)
        self.assertIn("Deleted: courses #1", out)
        self.assertNotIn(1, api.tables["courses"])
        self.assertEqual(api.paths("GET"), [])

    def test_delete_declined(self) -> None:
        api = _courses_api()
        with mock.patch("builtins.input", return_value="n"):
            code, out = _run(["delete", "courses", "1"], api=api)
        self.assertEqual(code, 0)
        self.assertIn("Cancelled.", out)
        self.assertIn(1, api.tables["courses"])
        self.assertEqual(api.paths("DELETE"), [])


if __name__ == "__main__":
    unittest.main()
