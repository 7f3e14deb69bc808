"""Use cases for querying and maintaining the user directory."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Protocol, Sequence, Union

from .config import DEFAULT_ROLE_PRIORITY, RolePriority
from .errors import ConflictError, InvalidArgumentError, NotFoundError
from .filtering import filter_users
from .models import FilterCriteria, Role, RoleChangeResult, SortKey, User, UserPage
from .pagination import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, check_page_request, paginate
from .roles import reconcile
from .sorting import DEFAULT_SORT_KEY, parse_sort_key, sort_users, with_ordered_roles

logger = logging.getLogger("userservice.directory")


class UserRepository(Protocol):
    """Persistence operations the directory relies on."""

    def list_users_with_roles(self) -> List[User]: ...

    def get_user(self, user_id: int) -> Optional[User]: ...

    def email_exists(self, email: str, *, exclude_user_id: Optional[int] = None) -> bool: ...

    def create_user(self, name: str, age: int, email: str) -> User: ...

    def update_user(self, user_id: int, *, name: str, age: int, email: str) -> Optional[User]: ...

    def delete_user(self, user_id: int) -> bool: ...

    def list_roles(self) -> List[Role]: ...

    def role_exists(self, name: str) -> bool: ...

    def apply_role_changes(self, user_id: int, to_add: Sequence[str], to_remove: Sequence[str]) -> None: ...


def _validate_profile(name: str, age: int, email: str) -> tuple[str, str]:
    cleaned_name = name.strip()
    if not cleaned_name:
        raise InvalidArgumentError("Name must not be empty")
    cleaned_email = email.strip()
    if not cleaned_email:
        raise InvalidArgumentError("Email must not be empty")
    if age <= 0:
        raise InvalidArgumentError("Age must be greater than 0")
    return cleaned_name, cleaned_email


class UserDirectory:
    """Compose the listing pipeline and role reconciliation over a repository."""

    def __init__(self, repository: UserRepository, *, role_priority: RolePriority | None = None) -> None:
        self._repository = repository
        self._priority = role_priority or RolePriority(DEFAULT_ROLE_PRIORITY)

    @property
    def role_priority(self) -> RolePriority:
        return self._priority

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_users(
        self,
        criteria: FilterCriteria | None = None,
        *,
        page: int = DEFAULT_PAGE,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort: Union[SortKey, str, None] = DEFAULT_SORT_KEY,
    ) -> UserPage:
        """Filter, sort, and paginate the user collection.

        Raises :class:`NotFoundError` when there are no users at all, when
        nothing matches ``criteria``, or when ``page`` is past the last page,
        and :class:`InvalidArgumentError` for a page or page size below one.
        """

        users = self._repository.list_users_with_roles()
        if not users:
            raise NotFoundError("no users")

        check_page_request(page, page_size)

        matches = filter_users(users, criteria or FilterCriteria())
        if not matches:
            raise NotFoundError("no entries matching filter")

        total_count = len(matches)
        sort_key = sort if isinstance(sort, SortKey) else parse_sort_key(sort)
        ordered = sort_users(matches, sort_key, self._priority)

        page_items, info = paginate(ordered, page, page_size, total_count)
        if page > info.total_pages:
            raise NotFoundError("page not found")

        return UserPage(users=tuple(page_items), pages=info)

    def get_user(self, user_id: int) -> User:
        user = self._repository.get_user(user_id)
        if user is None:
            logger.info("User with ID: %s not found", user_id)
            raise NotFoundError(f"User with ID: {user_id} not found")
        return with_ordered_roles(user, self._priority)

    def list_roles(self) -> List[Role]:
        roles = self._repository.list_roles()
        return sorted(roles, key=lambda role: self._priority.sort_key(role.name))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_user(self, name: str, age: int, email: str) -> User:
        cleaned_name, cleaned_email = _validate_profile(name, age, email)
        if self._repository.email_exists(cleaned_email):
            logger.info("User was not created. %s has already been taken.", cleaned_email)
            raise ConflictError(f"{cleaned_email} has already been taken")

        user = self._repository.create_user(cleaned_name, age, cleaned_email)
        logger.info("User %s created", user.id)
        return user

    def edit_user(self, user_id: int, *, name: str, age: int, email: str) -> User:
        current = self._repository.get_user(user_id)
        if current is None:
            logger.info("User was not edited. User with ID: %s not found", user_id)
            raise NotFoundError(f"User with ID: {user_id} not found")

        cleaned_name, cleaned_email = _validate_profile(name, age, email)
        if current.email.lower() != cleaned_email.lower() and self._repository.email_exists(
            cleaned_email, exclude_user_id=user_id
        ):
            logger.info("User was not edited. %s has already been taken.", cleaned_email)
            raise ConflictError(f"{cleaned_email} has already been taken")

        updated = self._repository.update_user(user_id, name=cleaned_name, age=age, email=cleaned_email)
        if updated is None:
            raise NotFoundError(f"User with ID: {user_id} not found")
        logger.info("User %s edited", user_id)
        return with_ordered_roles(updated, self._priority)

    def delete_user(self, user_id: int) -> None:
        if not self._repository.delete_user(user_id):
            logger.info("User with ID: %s not found", user_id)
            raise NotFoundError(f"User with ID: {user_id} not found")
        logger.info("User with ID: %s was deleted", user_id)

    def change_roles(self, user_id: int, role_names: Sequence[str]) -> RoleChangeResult:
        """Bring the roles of ``user_id`` to exactly ``role_names``.

        Validation happens before any write, and the additions and removals
        are applied in a single transaction.
        """

        user = self._repository.get_user(user_id)
        if user is None:
            logger.info("User with ID: %s not found", user_id)
            raise NotFoundError(f"User with ID: {user_id} not found")

        try:
            changes = reconcile(user.roles, role_names, self._repository.role_exists)
        except (InvalidArgumentError, NotFoundError) as exc:
            logger.info("Roles of user %s were not changed: %s", user_id, exc)
            raise

        self._repository.apply_role_changes(user_id, changes.to_add, changes.to_remove)
        if not changes.is_empty:
            logger.info(
                "Roles of user %s changed (added=%s, removed=%s)",
                user_id,
                list(changes.to_add),
                list(changes.to_remove),
            )

        removed = set(changes.to_remove)
        kept = tuple(name for name in user.roles if name not in removed)
        updated = replace(user, roles=kept + tuple(changes.to_add))
        return RoleChangeResult(user=with_ordered_roles(updated, self._priority), changes=changes)


__all__ = ["UserDirectory", "UserRepository"]
