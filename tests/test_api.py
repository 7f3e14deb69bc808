"""End-to-end tests for the user directory HTTP API."""

from __future__ import annotations

import logging
import sqlite3
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from user_service.api import create_app
from user_service.config import DEFAULT_ROLE_PRIORITY, RolePriority
from user_service.database import Database
from user_service.errors import InternalError


class UserDirectoryAPITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "users.sqlite3"
        self.database = Database(db_path)
        self.database.initialize()
        app = create_app(
            database=self.database,
            role_priority=RolePriority(DEFAULT_ROLE_PRIORITY),
            seed_demo_data=True,
        )
        self.client = TestClient(app)

    def tearDown(self) -> None:
        self.client.close()
        self._tempdir.cleanup()

    def test_healthcheck(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_list_users_defaults(self) -> None:
        response = self.client.get("/users")
        self.assertEqual(response.status_code, 200, response.text)

        payload = response.json()
        self.assertEqual(len(payload["users"]), 9)
        self.assertEqual(
            payload["pages"],
            {
                "current_page": 1,
                "total_pages": 1,
                "page_size": 10,
                "total_count": 9,
                "has_previous_page": False,
                "has_next_page": False,
            },
        )
        pavel = next(user for user in payload["users"] if user["id"] == 5)
        self.assertEqual(pavel["roles"], ["SuperAdmin", "Admin"])
        self.assertEqual(pavel["age"], 38)

    def test_list_users_with_filters_and_sort(self) -> None:
        response = self.client.get(
            "/users",
            params={"age_from": 30, "age_to": 60, "sort": "age-descending"},
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual([user["age"] for user in response.json()["users"]], [52, 39, 38, 32])

        response = self.client.get("/users", params={"role": "Support", "email": "meta"})
        self.assertEqual([user["id"] for user in response.json()["users"]], [9])

    def test_list_users_legacy_sort_names(self) -> None:
        response = self.client.get("/users", params={"sort": "RoleAsc", "page_size": 3})
        self.assertEqual([user["id"] for user in response.json()["users"]], [5, 7, 9])

    def test_list_users_error_outcomes_are_distinct(self) -> None:
        beyond = self.client.get("/users", params={"page": 6, "page_size": 2})
        self.assertEqual(beyond.status_code, 404)
        self.assertEqual(beyond.json()["detail"], "page not found")

        invalid = self.client.get("/users", params={"page": 0})
        self.assertEqual(invalid.status_code, 400)

        invalid_size = self.client.get("/users", params={"page_size": 0})
        self.assertEqual(invalid_size.status_code, 400)

        unmatched = self.client.get("/users", params={"name": "Nobody"})
        self.assertEqual(unmatched.status_code, 404)
        self.assertEqual(unmatched.json()["detail"], "no entries matching filter")

    def test_last_page(self) -> None:
        response = self.client.get("/users", params={"page": 5, "page_size": 2})
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual([user["id"] for user in payload["users"]], [9])
        self.assertTrue(payload["pages"]["has_previous_page"])
        self.assertFalse(payload["pages"]["has_next_page"])

    def test_user_lifecycle(self) -> None:
        created = self.client.post(
            "/users",
            json={"name": "Jeff Bezos", "age": 59, "email": "j.bezos@amazon.com"},
        )
        self.assertEqual(created.status_code, 201, created.text)
        user = created.json()
        self.assertEqual(user["roles"], [])
        self.assertEqual(created.headers["location"], f"/users/{user['id']}")

        fetched = self.client.get(f"/users/{user['id']}")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["email"], "j.bezos@amazon.com")

        edited = self.client.put(
            f"/users/{user['id']}",
            json={"name": "Jeffrey Bezos", "age": 60, "email": "jeff@amazon.com"},
        )
        self.assertEqual(edited.status_code, 200, edited.text)
        self.assertEqual(edited.json()["name"], "Jeffrey Bezos")

        deleted = self.client.delete(f"/users/{user['id']}")
        self.assertEqual(deleted.status_code, 204)
        self.assertEqual(self.client.get(f"/users/{user['id']}").status_code, 404)
        self.assertEqual(self.client.delete(f"/users/{user['id']}").status_code, 404)

    def test_create_user_validation(self) -> None:
        taken = self.client.post(
            "/users",
            json={"name": "Copycat", "age": 30, "email": "p.durov@telegram.com"},
        )
        self.assertEqual(taken.status_code, 409)

        non_positive = self.client.post(
            "/users",
            json={"name": "Baby", "age": 0, "email": "baby@example.com"},
        )
        self.assertEqual(non_positive.status_code, 400)
        self.assertIn("Age", non_positive.json()["detail"])

        bad_email = self.client.post("/users", json={"name": "Nobody", "age": 20, "email": "not-an-email"})
        self.assertEqual(bad_email.status_code, 422)

        blank_name = self.client.post("/users", json={"name": "   ", "age": 20, "email": "blank@example.com"})
        self.assertEqual(blank_name.status_code, 422)

    def test_edit_missing_user(self) -> None:
        response = self.client.put(
            "/users/404",
            json={"name": "Ghost", "age": 30, "email": "ghost@example.com"},
        )
        self.assertEqual(response.status_code, 404)

    def test_change_roles(self) -> None:
        response = self.client.put("/users/1/roles", json=["Admin", "SuperAdmin"])
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(
            response.json(),
            {
                "user_id": 1,
                "added": ["Admin", "SuperAdmin"],
                "removed": ["User"],
                "roles": ["SuperAdmin", "Admin"],
            },
        )

        repeat = self.client.put("/users/1/roles", json=["SuperAdmin", "Admin"])
        self.assertEqual(repeat.json()["added"], [])
        self.assertEqual(repeat.json()["removed"], [])

    def test_change_roles_failures(self) -> None:
        empty = self.client.put("/users/1/roles", json=[])
        self.assertEqual(empty.status_code, 400)
        self.assertEqual(empty.json()["detail"], "no roles provided")

        ghost = self.client.put("/users/1/roles", json=["User", "Ghost"])
        self.assertEqual(ghost.status_code, 404)
        self.assertIn("Ghost", ghost.json()["detail"])

        missing_user = self.client.put("/users/42/roles", json=["User"])
        self.assertEqual(missing_user.status_code, 404)

        self.assertEqual(self.client.get("/users/1").json()["roles"], ["User"])

    def test_list_roles(self) -> None:
        response = self.client.get("/roles")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            [role["name"] for role in response.json()],
            ["SuperAdmin", "Admin", "Support", "User"],
        )

    def test_persistence_failure_maps_to_internal_error(self) -> None:
        def broken(*_args, **_kwargs):
            raise InternalError("Failed to change roles for user 1")

        self.database.apply_role_changes = broken  # type: ignore[method-assign]

        with self.assertLogs("userservice.api", level=logging.ERROR):
            response = self.client.put("/users/1/roles", json=["Admin"])

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "Internal server error"})

    def test_unreadable_database_maps_to_internal_error(self) -> None:
        def unavailable():
            raise sqlite3.OperationalError("unable to open database file")

        self.database._connect = unavailable  # type: ignore[method-assign]

        with self.assertLogs("userservice.api", level=logging.WARNING) as captured:
            response = self.client.get("/users")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"detail": "Internal server error"})
        levels = [record.levelno for record in captured.records]
        self.assertIn(logging.ERROR, levels)

    def test_requests_are_logged_by_status_class(self) -> None:
        with self.assertLogs("userservice.api", level=logging.INFO) as captured:
            self.client.get("/users/1")
            self.client.get("/users/404")

        messages = [(record.levelno, record.getMessage()) for record in captured.records]
        self.assertIn((logging.INFO, "Request: HTTP GET /users/1"), messages)
        self.assertIn((logging.INFO, "Response: HTTP GET /users/1 -> 200"), messages)
        self.assertIn((logging.WARNING, "Response: HTTP GET /users/404 -> 404"), messages)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
