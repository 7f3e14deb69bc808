"""Command-line interface for the user directory service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Dict, Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

try:
    import httpx
except ImportError as exc:  # pragma: no cover - exercised in environments missing deps
    raise SystemExit(
        "The 'httpx' package is required. Execute `pip install -e .` to install dependencies."
    ) from exc

from user_service.database import Database, resolve_database_path

logger = logging.getLogger("userservice.main")

_DEFAULT_SERVICE_URL = "http://localhost:8000"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User directory service utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    init_parser = subparsers.add_parser("init-db", help="Initialise the user database")
    init_parser.add_argument(
        "--seed",
        action="store_true",
        help="Insert the default roles and demo users into an empty database",
    )

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP user directory service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )

    users_parser = subparsers.add_parser(
        "users", help="List users from a running directory service"
    )
    users_parser.add_argument(
        "--service-url",
        default=None,
        help=(
            "Base URL of a running directory service. Defaults to the "
            "USER_SERVICE_URL environment variable or http://localhost:8000."
        ),
    )
    users_parser.add_argument("--role", default="", help="Only users holding this role")
    users_parser.add_argument("--name", default="", help="Name substring filter")
    users_parser.add_argument("--email", default="", help="Email substring filter")
    users_parser.add_argument("--age-from", type=int, default=None, help="Minimum age (inclusive)")
    users_parser.add_argument("--age-to", type=int, default=None, help="Maximum age (inclusive)")
    users_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    users_parser.add_argument("--page-size", type=int, default=10, help="Users per page (default: 10)")
    users_parser.add_argument(
        "--sort",
        default="id-ascending",
        help="Sort key such as name-descending or role-ascending (default: id-ascending)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(*, seed: bool = False) -> Database:
    db_path = resolve_database_path(os.getenv("USER_SERVICE_DB_PATH"))
    database = Database(db_path)
    database.initialize()
    logger.info("Database initialised at %s", db_path)
    if seed and database.seed_defaults():
        logger.info("Demo data inserted")
    return database


def _serve(*, database: Database, host: str, port: int) -> None:
    from user_service.api import create_app
    import uvicorn

    logger.info("Starting user directory API on http://%s:%s", host, port)

    app = create_app(database=database)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _build_query(args: argparse.Namespace) -> Dict[str, object]:
    params: Dict[str, object] = {
        "page": args.page,
        "page_size": args.page_size,
        "sort": args.sort,
    }
    for key in ("role", "name", "email"):
        value = getattr(args, key)
        if value:
            params[key] = value
    if args.age_from is not None:
        params["age_from"] = args.age_from
    if args.age_to is not None:
        params["age_to"] = args.age_to
    return params


def _list_users(service_url: str, params: Dict[str, object]) -> int:
    endpoint = service_url.rstrip("/") + "/users"

    try:
        response = httpx.get(endpoint, params=params, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact user directory service: {exc}")
        return 1

    if response.status_code != 200:
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        print(f"Service responded with {response.status_code}: {str(detail).strip()}")
        return 1

    try:
        payload = response.json()
    except ValueError:
        print("Service returned an unexpected response format.")
        return 1

    users = payload.get("users", [])
    pages = payload.get("pages", {})

    for user in users:
        roles = ", ".join(user.get("roles", [])) or "-"
        print(f"#{user.get('id')}: {user.get('name')} <{user.get('email')}> age {user.get('age')} [{roles}]")

    print(
        f"Page {pages.get('current_page', '?')} of {pages.get('total_pages', '?')} "
        f"({pages.get('total_count', '?')} matching user(s))"
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "users":
        service_url = args.service_url or os.getenv("USER_SERVICE_URL") or _DEFAULT_SERVICE_URL
        return _list_users(service_url, _build_query(args))

    database = _initialise_database(seed=getattr(args, "seed", False))

    if args.command == "serve":
        _serve(database=database, host=args.host, port=args.port)
    elif args.command == "init-db":
        print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
