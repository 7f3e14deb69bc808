"""Reconciliation of a user's role assignments against a requested set."""
from __future__ import annotations

from typing import Callable, Iterable, List, Sequence

from .errors import InvalidArgumentError, NotFoundError
from .models import RoleChanges


def _unique(names: Iterable[str]) -> List[str]:
    seen = set()
    unique: List[str] = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        unique.append(name)
    return unique


def reconcile(
    current_role_names: Iterable[str],
    requested_role_names: Sequence[str],
    role_exists: Callable[[str], bool],
) -> RoleChanges:
    """Compute the assignments to add and remove.

    ``to_add`` keeps the order of ``requested_role_names`` and ``to_remove``
    the order of ``current_role_names``. Every role in ``to_add`` is checked
    with ``role_exists`` before anything is returned, so a missing role means
    no changes are applied at all. Roles being removed are not checked.

    An empty request is rejected; clearing every role is not supported.
    """

    if not requested_role_names:
        raise InvalidArgumentError("no roles provided")

    current = _unique(current_role_names)
    requested = _unique(requested_role_names)
    current_set = set(current)
    requested_set = set(requested)

    to_add = [name for name in requested if name not in current_set]
    for name in to_add:
        if not role_exists(name):
            raise NotFoundError(f"Role with name '{name}' not found")

    to_remove = [name for name in current if name not in requested_set]
    return RoleChanges(to_add=tuple(to_add), to_remove=tuple(to_remove))


__all__ = ["reconcile"]
