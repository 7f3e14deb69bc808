"""FastAPI application that exposes the user directory."""
from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

from fastapi import Body, Depends, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, field_validator

from .config import RolePriority, env_flag, load_role_priority, resolve_config_path
from .database import Database, resolve_database_path
from .directory import UserDirectory
from .errors import ConflictError, InternalError, InvalidArgumentError, NotFoundError, UserServiceError
from .models import FilterCriteria, PaginationInfo, Role, User
from .pagination import DEFAULT_PAGE, DEFAULT_PAGE_SIZE

logger = logging.getLogger("userservice.api")

_ERROR_STATUS: Dict[type, int] = {
    InvalidArgumentError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class UserResponse(BaseModel):
    id: int
    name: str
    age: int
    email: str
    roles: List[str]


class PaginationResponse(BaseModel):
    current_page: int
    total_pages: int
    page_size: int
    total_count: int
    has_previous_page: bool
    has_next_page: bool


class UserListResponse(BaseModel):
    users: List[UserResponse]
    pages: PaginationResponse


class UserWriteRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    age: int
    email: EmailStr

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be empty")
        return stripped


class RoleResponse(BaseModel):
    id: int
    name: str


class RoleChangeResponse(BaseModel):
    user_id: int
    added: List[str]
    removed: List[str]
    roles: List[str]


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        age=user.age,
        email=user.email,
        roles=list(user.roles),
    )


def pagination_to_response(info: PaginationInfo) -> PaginationResponse:
    return PaginationResponse(
        current_page=info.current_page,
        total_pages=info.total_pages,
        page_size=info.page_size,
        total_count=info.total_count,
        has_previous_page=info.has_previous_page,
        has_next_page=info.has_next_page,
    )


def role_to_response(role: Role) -> RoleResponse:
    return RoleResponse(id=role.id, name=role.name)


def _log_response(method: str, path: str, status_code: int) -> None:
    if status_code >= 500:
        level = logging.ERROR
    elif status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(level, "Response: HTTP %s %s -> %s", method, path, status_code)


def create_app(
    *,
    database: Database | None = None,
    role_priority: RolePriority | None = None,
    initialize_database: bool = False,
    seed_demo_data: Optional[bool] = None,
) -> FastAPI:
    if database is None:
        db_path = resolve_database_path(os.getenv("USER_SERVICE_DB_PATH"))
        database = Database(db_path)
        database.initialize()
    elif initialize_database:
        database.initialize()

    if seed_demo_data is None:
        seed_demo_data = env_flag(os.getenv("USER_SERVICE_SEED_DEMO_DATA"))
    if seed_demo_data:
        database.seed_defaults()

    if role_priority is None:
        role_priority = load_role_priority(resolve_config_path(os.getenv("USER_SERVICE_ROLE_CONFIG")))

    directory = UserDirectory(database, role_priority=role_priority)

    app = FastAPI(
        title="User Directory Service",
        description="Query and maintain users and their role assignments",
        version="1.0.0",
    )
    app.state.database = database
    app.state.directory = directory

    def get_directory() -> UserDirectory:
        return directory

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("Request: HTTP %s %s", request.method, request.url.path)
        response = await call_next(request)
        _log_response(request.method, request.url.path, response.status_code)
        return response

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/users", response_model=UserListResponse)
    def list_users(
        role: str = "",
        name: str = "",
        email: str = "",
        age_from: Optional[int] = None,
        age_to: Optional[int] = None,
        page: int = DEFAULT_PAGE,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort: str = "id-ascending",
        users: UserDirectory = Depends(get_directory),
    ) -> UserListResponse:
        criteria = FilterCriteria(role=role, name=name, email=email, age_from=age_from, age_to=age_to)
        result = users.list_users(criteria, page=page, page_size=page_size, sort=sort)
        return UserListResponse(
            users=[user_to_response(user) for user in result.users],
            pages=pagination_to_response(result.pages),
        )

    @app.get("/users/{user_id}", response_model=UserResponse)
    def read_user(user_id: int, users: UserDirectory = Depends(get_directory)) -> UserResponse:
        return user_to_response(users.get_user(user_id))

    @app.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
    def create_user(
        payload: UserWriteRequest,
        response: Response,
        users: UserDirectory = Depends(get_directory),
    ) -> UserResponse:
        user = users.create_user(payload.name, payload.age, str(payload.email))
        response.headers["Location"] = app.url_path_for("read_user", user_id=str(user.id))
        return user_to_response(user)

    @app.put("/users/{user_id}", response_model=UserResponse)
    def edit_user(
        user_id: int,
        payload: UserWriteRequest,
        users: UserDirectory = Depends(get_directory),
    ) -> UserResponse:
        user = users.edit_user(user_id, name=payload.name, age=payload.age, email=str(payload.email))
        return user_to_response(user)

    @app.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_user(user_id: int, users: UserDirectory = Depends(get_directory)) -> Response:
        users.delete_user(user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.put("/users/{user_id}/roles", response_model=RoleChangeResponse)
    def change_user_roles(
        user_id: int,
        role_names: List[str] = Body(..., examples=[["User", "Admin"]]),
        users: UserDirectory = Depends(get_directory),
    ) -> RoleChangeResponse:
        result = users.change_roles(user_id, role_names)
        return RoleChangeResponse(
            user_id=result.user.id,
            added=list(result.changes.to_add),
            removed=list(result.changes.to_remove),
            roles=list(result.user.roles),
        )

    @app.get("/roles", response_model=List[RoleResponse])
    def list_roles(users: UserDirectory = Depends(get_directory)) -> List[RoleResponse]:
        return [role_to_response(role) for role in users.list_roles()]

    @app.exception_handler(UserServiceError)
    async def handle_user_service_error(_: Request, exc: UserServiceError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        for error_type, mapped in _ERROR_STATUS.items():
            if isinstance(exc, error_type):
                status_code = mapped
                break
        if status_code >= 500:
            logger.error("Request failed: %s", exc, exc_info=exc)
            return JSONResponse(status_code=status_code, content={"detail": "Internal server error"})
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return app


__all__ = ["create_app", "pagination_to_response", "role_to_response", "user_to_response"]
