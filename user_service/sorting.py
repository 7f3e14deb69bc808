"""Sort stage of the user listing pipeline."""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import RolePriority
from .models import SortDirection, SortField, SortKey, User

DEFAULT_SORT_KEY = SortKey()

_DIRECTIONS: Dict[str, SortDirection] = {
    "asc": SortDirection.ASCENDING,
    "ascending": SortDirection.ASCENDING,
    "desc": SortDirection.DESCENDING,
    "descending": SortDirection.DESCENDING,
}

# Accepts "name-descending", "name_desc", "name desc" and the compact "NameDesc".
_SORT_PATTERN = re.compile(
    r"^(?P<field>id|name|age|email|role)[-_ ]?(?P<direction>ascending|descending|asc|desc)?$",
    re.IGNORECASE,
)


def parse_sort_key(value: Optional[str]) -> SortKey:
    """Parse a textual sort key; unrecognized values fall back to id ascending."""

    if not value:
        return DEFAULT_SORT_KEY
    match = _SORT_PATTERN.match(value.strip())
    if match is None:
        return DEFAULT_SORT_KEY
    field = SortField(match.group("field").lower())
    direction_text = (match.group("direction") or "asc").lower()
    return SortKey(field=field, direction=_DIRECTIONS[direction_text])


def with_ordered_roles(user: User, priority: RolePriority) -> User:
    """Return ``user`` with its role names in display order."""

    ordered = priority.order(user.roles)
    if ordered == user.roles:
        return user
    return replace(user, roles=ordered)


def _role_sort_value(priority: RolePriority) -> Callable[[User], Tuple[int, str]]:
    # Users without roles carry the lowest value: first ascending, last descending.
    no_roles = (-1, "")

    def key(user: User) -> Tuple[int, str]:
        if not user.roles:
            return no_roles
        return priority.sort_key(user.roles[0])

    return key


def _field_key(sort_key: SortKey, priority: RolePriority) -> Callable[[User], object]:
    if sort_key.field is SortField.NAME:
        return lambda user: user.name
    if sort_key.field is SortField.AGE:
        return lambda user: user.age
    if sort_key.field is SortField.EMAIL:
        return lambda user: user.email
    if sort_key.field is SortField.ROLE:
        return _role_sort_value(priority)
    return lambda user: user.id


def sort_users(users: Iterable[User], sort_key: SortKey, priority: RolePriority) -> List[User]:
    """Order ``users`` by ``sort_key``.

    Every returned user carries its roles in priority order. For the ``role``
    field users are compared by their highest-priority role, so ascending
    places ``SuperAdmin`` holders ahead of ``User`` holders. Equal keys keep
    their incoming relative order in both directions.
    """

    ordered = [with_ordered_roles(user, priority) for user in users]
    return sorted(ordered, key=_field_key(sort_key, priority), reverse=sort_key.descending)


__all__ = ["DEFAULT_SORT_KEY", "parse_sort_key", "sort_users", "with_ordered_roles"]
