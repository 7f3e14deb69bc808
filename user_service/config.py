"""Configuration for the user directory service."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

import yaml

DEFAULT_ROLE_PRIORITY: Tuple[str, ...] = ("SuperAdmin", "Admin", "Support", "User")


class RolePriority(Mapping[str, int]):
    """Immutable ranking of role names, highest priority first.

    Rank ``0`` is the highest priority. Roles missing from the table rank after
    every listed role.
    """

    def __init__(self, names: Iterable[str]) -> None:
        ranks: Dict[str, int] = {}
        for name in names:
            cleaned = str(name).strip()
            if not cleaned:
                raise ValueError("Role priority entries must not be empty")
            if cleaned in ranks:
                raise ValueError(f"Role '{cleaned}' is listed more than once in the role priority")
            ranks[cleaned] = len(ranks)
        if not ranks:
            raise ValueError("Role priority must list at least one role")
        self._ranks = ranks

    def __getitem__(self, name: str) -> int:
        return self._ranks[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._ranks)

    def __len__(self) -> int:
        return len(self._ranks)

    def __repr__(self) -> str:
        return f"RolePriority({list(self._ranks)!r})"

    @property
    def unranked(self) -> int:
        """Rank shared by every role that is not listed."""
        return len(self._ranks)

    def rank(self, name: str) -> int:
        return self._ranks.get(name, self.unranked)

    def sort_key(self, name: str) -> Tuple[int, str]:
        # Unlisted roles share a rank, so fall back to the name to keep the order stable.
        return self.rank(name), name

    def order(self, names: Sequence[str]) -> Tuple[str, ...]:
        """Return ``names`` ordered for display, highest priority first."""
        return tuple(sorted(names, key=self.sort_key))


def load_role_priority(config_path: Path) -> RolePriority:
    """Load the role priority from a YAML file.

    A missing file yields the built-in ``SuperAdmin > Admin > Support > User``
    order.
    """
    if not config_path.exists():
        return RolePriority(DEFAULT_ROLE_PRIORITY)

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Role configuration must be a mapping")

    names = raw.get("role_priority")
    if not names:
        raise ValueError("Role configuration must list roles under the 'role_priority' key")
    if isinstance(names, str) or not isinstance(names, list):
        raise ValueError("'role_priority' must be a list of role names")

    return RolePriority(names)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the role configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "roles.yaml").resolve(strict=False)
    return candidate


def env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


__all__ = [
    "DEFAULT_ROLE_PRIORITY",
    "RolePriority",
    "env_flag",
    "load_role_priority",
    "resolve_config_path",
]
