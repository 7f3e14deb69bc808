import importlib.util
import sys
from pathlib import Path

import pytest

from user_service.database import Database

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture()
def create_user_script():
    spec = importlib.util.spec_from_file_location("create_user_script", ROOT / "scripts" / "create_user.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture()
def db_path(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.delenv("USER_SERVICE_ROLE_CONFIG", raising=False)
    path = tmp_path / "users.sqlite3"
    database = Database(path)
    database.initialize()
    database.create_role("User")
    database.create_role("Admin")
    return path


def _run(module, monkeypatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["create_user.py", *argv])
    return module.main()


def test_unknown_role_leaves_database_untouched(create_user_script, db_path: Path, monkeypatch, capsys) -> None:
    exit_code = _run(
        create_user_script,
        monkeypatch,
        "Jeff",
        "59",
        "jeff@example.com",
        "--role",
        "Admin",
        "--role",
        "Ghost",
        "--db",
        str(db_path),
    )

    assert exit_code == 1
    assert "Role with name 'Ghost' not found" in capsys.readouterr().err
    assert Database(db_path).list_users_with_roles() == []


def test_creates_user_with_roles(create_user_script, db_path: Path, monkeypatch, capsys) -> None:
    exit_code = _run(
        create_user_script,
        monkeypatch,
        "Jeff",
        "59",
        "jeff@example.com",
        "--role",
        "User",
        "--role",
        "Admin",
        "--db",
        str(db_path),
    )

    assert exit_code == 0
    assert "(Admin, User)" in capsys.readouterr().out
    [user] = Database(db_path).list_users_with_roles()
    assert (user.name, user.email, set(user.roles)) == ("Jeff", "jeff@example.com", {"User", "Admin"})


def test_duplicate_email_is_reported(create_user_script, db_path: Path, monkeypatch, capsys) -> None:
    Database(db_path).create_user("Jeff", 59, "jeff@example.com")

    exit_code = _run(create_user_script, monkeypatch, "Other", "30", "JEFF@example.com", "--db", str(db_path))

    assert exit_code == 1
    assert "has already been taken" in capsys.readouterr().err
    assert len(Database(db_path).list_users_with_roles()) == 1
