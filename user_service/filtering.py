"""Filter stage of the user listing pipeline."""
from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from .models import FilterCriteria, User

_Predicate = Callable[[User], bool]


def _is_set(bound: Optional[int]) -> bool:
    # 0 doubles as "unset", so an age boundary of zero is never applied.
    return bound is not None and bound != 0


def _age_predicate(age_from: Optional[int], age_to: Optional[int]) -> Optional[_Predicate]:
    has_from = _is_set(age_from)
    has_to = _is_set(age_to)
    if has_from and has_to:
        return lambda user: age_from <= user.age <= age_to  # type: ignore[operator]
    if has_from:
        return lambda user: user.age >= age_from  # type: ignore[operator]
    if has_to:
        return lambda user: user.age <= age_to  # type: ignore[operator]
    return None


def build_predicates(criteria: FilterCriteria) -> List[_Predicate]:
    """Return one predicate per active criterion."""

    predicates: List[_Predicate] = []
    if criteria.role:
        role = criteria.role
        predicates.append(lambda user: user.has_role(role))
    if criteria.name:
        name = criteria.name
        predicates.append(lambda user: name in user.name)
    if criteria.email:
        email = criteria.email
        predicates.append(lambda user: email in user.email)
    age = _age_predicate(criteria.age_from, criteria.age_to)
    if age is not None:
        predicates.append(age)
    return predicates


def filter_users(users: Iterable[User], criteria: FilterCriteria) -> List[User]:
    """Keep the users matching every active criterion, preserving their order.

    Role, name, and email matching are case-sensitive; name and email match on
    substrings while the role must equal an assigned role name.
    """

    predicates = build_predicates(criteria)
    return [user for user in users if all(predicate(user) for predicate in predicates)]


__all__ = ["build_predicates", "filter_users"]
