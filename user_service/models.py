"""Domain models shared by the directory core, persistence, and HTTP layers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class Role:
    """A named role from the role catalog."""

    id: int
    name: str


@dataclass(frozen=True)
class User:
    """Represents a user together with the names of the roles assigned to it."""

    id: int
    name: str
    age: int
    email: str
    roles: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None

    def has_role(self, role_name: str) -> bool:
        return role_name in self.roles


@dataclass(frozen=True)
class FilterCriteria:
    """Optional narrowing applied to the user collection.

    Empty strings and ``None`` disable a filter. An age bound of ``0`` is the
    "unset" sentinel, so a boundary of exactly zero cannot be expressed.
    """

    role: str = ""
    name: str = ""
    email: str = ""
    age_from: Optional[int] = None
    age_to: Optional[int] = None


class SortField(str, Enum):
    ID = "id"
    NAME = "name"
    AGE = "age"
    EMAIL = "email"
    ROLE = "role"


class SortDirection(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


@dataclass(frozen=True)
class SortKey:
    field: SortField = SortField.ID
    direction: SortDirection = SortDirection.ASCENDING

    @property
    def descending(self) -> bool:
        return self.direction is SortDirection.DESCENDING

    def __str__(self) -> str:
        return f"{self.field.value}-{self.direction.value}"


@dataclass(frozen=True)
class PaginationInfo:
    """Metadata describing one page of a paginated result."""

    current_page: int
    total_pages: int
    page_size: int
    total_count: int

    @classmethod
    def build(cls, total_count: int, page: int, page_size: int) -> "PaginationInfo":
        return cls(
            current_page=page,
            total_pages=math.ceil(total_count / page_size),
            page_size=page_size,
            total_count=total_count,
        )

    @property
    def has_previous_page(self) -> bool:
        return self.current_page > 1

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages


@dataclass(frozen=True)
class UserPage:
    users: Tuple[User, ...]
    pages: PaginationInfo


@dataclass(frozen=True)
class RoleChanges:
    """Assignments that move a user from its current roles to a requested set."""

    to_add: Tuple[str, ...] = ()
    to_remove: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


@dataclass(frozen=True)
class RoleChangeResult:
    user: User
    changes: RoleChanges = field(default_factory=RoleChanges)


__all__ = [
    "FilterCriteria",
    "PaginationInfo",
    "Role",
    "RoleChangeResult",
    "RoleChanges",
    "SortDirection",
    "SortField",
    "SortKey",
    "User",
    "UserPage",
]
