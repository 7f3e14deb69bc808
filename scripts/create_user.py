import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from user_service.config import load_role_priority, resolve_config_path
from user_service.database import Database, resolve_database_path
from user_service.directory import UserDirectory
from user_service.errors import NotFoundError, UserServiceError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a user in the user directory")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("age", type=int, help="Age of the user (must be greater than 0)")
    parser.add_argument("email", help="Unique email address")
    parser.add_argument(
        "--role",
        dest="roles",
        action="append",
        default=[],
        help="Role to assign; repeat for several roles",
    )
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to USER_SERVICE_DB_PATH or data/users.sqlite3)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    db_env = args.db_path or os.getenv("USER_SERVICE_DB_PATH")
    db_path = resolve_database_path(db_env)

    database = Database(db_path)
    database.initialize()
    priority = load_role_priority(resolve_config_path(os.getenv("USER_SERVICE_ROLE_CONFIG")))
    directory = UserDirectory(database, role_priority=priority)

    try:
        for role in args.roles:
            if not database.role_exists(role):
                raise NotFoundError(f"Role with name '{role}' not found")
        user = directory.create_user(args.name, args.age, args.email)
    except UserServiceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.roles:
        try:
            user = directory.change_roles(user.id, args.roles).user
        except UserServiceError as exc:
            # Roles changed underneath us; do not leave a half-created user.
            database.delete_user(user.id)
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    roles = ", ".join(user.roles) or "no roles"
    print(f"Created user #{user.id}: {user.name} <{user.email}> ({roles})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
