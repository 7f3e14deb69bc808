"""SQLite-backed persistence for users, roles, and role assignments."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import ConflictError, InternalError, NotFoundError
from .models import Role, User

logger = logging.getLogger("userservice.database")

DEFAULT_ROLES: Tuple[Tuple[int, str], ...] = (
    (1, "User"),
    (2, "Support"),
    (3, "Admin"),
    (4, "SuperAdmin"),
)

DEFAULT_USERS: Tuple[Tuple[int, str, int, str], ...] = (
    (1, "Ivan Alexeev", 32, "i.alexeev@gmail.com"),
    (2, "Oleg Andreev", 22, "o.andreev@gmail.com"),
    (3, "Olga Petrova", 24, "o.petrova@gmail.com"),
    (4, "Elena Ivanova", 29, "e.ivanova@gmail.com"),
    (5, "Pavel Durov", 38, "p.durov@telegram.com"),
    (6, "Elon Musk", 52, "e.musk@spaceX.com"),
    (7, "Bill Gates", 67, "b.gates@microsoft.com"),
    (8, "Tim Cook", 62, "t.cook@apple.com"),
    (9, "Mark Zuckerberg", 39, "m.zuckerberg@meta.com"),
)

# (user_id, role_id) pairs
DEFAULT_ASSIGNMENTS: Tuple[Tuple[int, int], ...] = (
    (1, 1),
    (2, 1),
    (3, 1),
    (4, 1),
    (5, 3),
    (5, 4),
    (6, 2),
    (7, 3),
    (7, 4),
    (8, 2),
    (9, 2),
    (9, 3),
)


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "users.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for persisting users and their roles."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and rolls back on error."""

        conn = self._connect()
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    @contextmanager
    def _reading(self, action: str) -> Iterator[sqlite3.Connection]:
        try:
            with self._transaction() as conn:
                yield conn
        except sqlite3.DatabaseError as exc:
            raise InternalError(f"Failed to {action}") from exc

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    age INTEGER NOT NULL,
                    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS roles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE
                );

                CREATE TABLE IF NOT EXISTS user_roles (
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    role_id INTEGER NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
                    PRIMARY KEY (user_id, role_id)
                );

                CREATE INDEX IF NOT EXISTS idx_user_roles_role_id ON user_roles(role_id);
                """
            )

    def seed_defaults(self) -> bool:
        """Insert the default roles, demo users, and assignments.

        Seeding only happens while both the ``users`` and ``roles`` tables are
        empty. Returns ``True`` when rows were inserted.
        """

        now = _serialize_datetime(_current_timestamp())
        with self._transaction() as conn:
            user_count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
            role_count = conn.execute("SELECT COUNT(*) FROM roles").fetchone()[0]
            if user_count or role_count:
                return False

            conn.executemany("INSERT INTO roles (id, name) VALUES (?, ?)", DEFAULT_ROLES)
            conn.executemany(
                "INSERT INTO users (id, name, age, email, created_at) VALUES (?, ?, ?, ?, ?)",
                [(user_id, name, age, email, now) for user_id, name, age, email in DEFAULT_USERS],
            )
            conn.executemany(
                "INSERT INTO user_roles (user_id, role_id) VALUES (?, ?)",
                DEFAULT_ASSIGNMENTS,
            )

        logger.info(
            "Seeded %d roles, %d users and %d role assignments",
            len(DEFAULT_ROLES),
            len(DEFAULT_USERS),
            len(DEFAULT_ASSIGNMENTS),
        )
        return True

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def list_users_with_roles(self) -> List[User]:
        """Return every user ordered by id, each populated with its role names."""

        with self._reading("list users") as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
            assignments = conn.execute(
                """
                SELECT ur.user_id AS user_id, r.name AS role_name
                  FROM user_roles AS ur
                  JOIN roles AS r ON r.id = ur.role_id
                 ORDER BY ur.user_id, r.id
                """
            ).fetchall()

        roles_by_user: Dict[int, List[str]] = {}
        for assignment in assignments:
            roles_by_user.setdefault(int(assignment["user_id"]), []).append(str(assignment["role_name"]))

        return [self._row_to_user(row, roles_by_user.get(int(row["id"]), ())) for row in rows]

    def get_user(self, user_id: int) -> Optional[User]:
        with self._reading(f"load user {user_id}") as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                return None
            role_names = self._role_names_for_user(conn, user_id)
        return self._row_to_user(row, role_names)

    def email_exists(self, email: str, *, exclude_user_id: Optional[int] = None) -> bool:
        """Return ``True`` if another user already owns ``email`` (case-insensitive)."""

        query = "SELECT 1 FROM users WHERE email = ?"
        params: List[object] = [email.strip()]
        if exclude_user_id is not None:
            query += " AND id != ?"
            params.append(exclude_user_id)
        with self._reading("look up email") as conn:
            row = conn.execute(query, params).fetchone()
        return row is not None

    def create_user(self, name: str, age: int, email: str) -> User:
        created_at = _current_timestamp()
        with self._transaction() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO users (name, age, email, created_at) VALUES (?, ?, ?, ?)",
                    (name, age, email, _serialize_datetime(created_at)),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"{email} has already been taken") from exc
            except sqlite3.DatabaseError as exc:
                raise InternalError("Failed to store the new user") from exc
            user_id = cursor.lastrowid

        return User(id=int(user_id), name=name, age=age, email=email, roles=(), created_at=created_at)

    def update_user(self, user_id: int, *, name: str, age: int, email: str) -> Optional[User]:
        """Update a user's profile fields; returns ``None`` if the user is gone."""

        with self._transaction() as conn:
            try:
                cursor = conn.execute(
                    "UPDATE users SET name = ?, age = ?, email = ? WHERE id = ?",
                    (name, age, email, user_id),
                )
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"{email} has already been taken") from exc
            except sqlite3.DatabaseError as exc:
                raise InternalError(f"Failed to update user {user_id}") from exc
            if cursor.rowcount == 0:
                return None

        return self.get_user(user_id)

    def delete_user(self, user_id: int) -> bool:
        with self._transaction() as conn:
            try:
                cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            except sqlite3.DatabaseError as exc:
                raise InternalError(f"Failed to delete user {user_id}") from exc
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Role catalog and assignments
    # ------------------------------------------------------------------
    def list_roles(self) -> List[Role]:
        with self._reading("list roles") as conn:
            rows = conn.execute("SELECT id, name FROM roles ORDER BY id").fetchall()
        return [Role(id=int(row["id"]), name=str(row["name"])) for row in rows]

    def create_role(self, name: str) -> Role:
        cleaned = name.strip()
        if not cleaned:
            raise ValueError("Role name must not be empty")
        with self._transaction() as conn:
            try:
                cursor = conn.execute("INSERT INTO roles (name) VALUES (?)", (cleaned,))
            except sqlite3.IntegrityError as exc:
                raise ConflictError(f"Role '{cleaned}' already exists") from exc
            role_id = cursor.lastrowid
        return Role(id=int(role_id), name=cleaned)

    def role_exists(self, name: str) -> bool:
        with self._reading(f"look up role {name}") as conn:
            row = conn.execute("SELECT 1 FROM roles WHERE name = ?", (name,)).fetchone()
        return row is not None

    def apply_role_changes(
        self,
        user_id: int,
        to_add: Sequence[str],
        to_remove: Sequence[str],
    ) -> None:
        """Add and remove assignments for ``user_id`` as one unit of work.

        Either every change is committed or none is.
        """

        if not to_add and not to_remove:
            return

        try:
            with self._transaction() as conn:
                conn.execute("BEGIN IMMEDIATE")
                if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
                    raise NotFoundError(f"User with ID: {user_id} not found")

                for role_name in to_add:
                    row = conn.execute("SELECT id FROM roles WHERE name = ?", (role_name,)).fetchone()
                    if row is None:
                        raise NotFoundError(f"Role with name '{role_name}' not found")
                    conn.execute(
                        "INSERT OR IGNORE INTO user_roles (user_id, role_id) VALUES (?, ?)",
                        (user_id, int(row["id"])),
                    )

                if to_remove:
                    placeholders = ", ".join("?" for _ in to_remove)
                    conn.execute(
                        f"""
                        DELETE FROM user_roles
                         WHERE user_id = ?
                           AND role_id IN (SELECT id FROM roles WHERE name IN ({placeholders}))
                        """,
                        (user_id, *to_remove),
                    )
        except sqlite3.DatabaseError as exc:
            raise InternalError(f"Failed to change roles for user {user_id}") from exc

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _role_names_for_user(self, conn: sqlite3.Connection, user_id: int) -> List[str]:
        rows = conn.execute(
            """
            SELECT r.name AS role_name
              FROM user_roles AS ur
              JOIN roles AS r ON r.id = ur.role_id
             WHERE ur.user_id = ?
             ORDER BY r.id
            """,
            (user_id,),
        ).fetchall()
        return [str(row["role_name"]) for row in rows]

    def _row_to_user(self, row: sqlite3.Row, role_names: Sequence[str]) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            age=int(row["age"]),
            email=str(row["email"]),
            roles=tuple(role_names),
            created_at=_parse_datetime(row["created_at"]),
        )


__all__ = ["Database", "resolve_database_path"]
