"""In-memory users API for local development of the dashboard.

The application implements the same routes the dashboard client calls, so the
client, the views and the CLI can be exercised without the real backend.
"""
from __future__ import annotations

import logging
import os
import secrets
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

import anyio
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, Field

from .tokens import TokenProvider

logger = logging.getLogger("usersdashboard.sandbox")

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
SANDBOX_TOKENS_ENV = "USERS_DASHBOARD_SANDBOX_TOKENS"


class UserIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    status: Optional[str] = Field(default=None, max_length=32)


class StatusChangeRequest(BaseModel):
    status: str = Field(..., min_length=1, max_length=32)


class UserStore:
    """Thread-safe, insertion-ordered user storage."""

    def __init__(self, users: Iterable[Mapping[str, Any]] = ()) -> None:
        self._users: Dict[int, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self._next_id = 1
        for index, user in enumerate(users):
            if not isinstance(user, Mapping):
                raise ValueError(f"Seed user #{index} must be an object")
            record = dict(user)
            try:
                user_id = int(record["id"])
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"Seed user #{index} needs an integer 'id'") from exc
            record["id"] = user_id
            self._users[user_id] = record
            self._next_id = max(self._next_id, user_id + 1)

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(user) for user in self._users.values()]

    def get(self, user_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            user = self._users.get(user_id)
            return dict(user) if user is not None else None

    def create(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        with self._lock:
            user_id = self._next_id
            self._next_id += 1
            record = {key: value for key, value in data.items() if key != "id"}
            record.setdefault("status", STATUS_ACTIVE)
            record["id"] = user_id
            self._users[user_id] = record
            return dict(record)

    def replace(self, user_id: int, data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            if user_id not in self._users:
                return None
            record = {key: value for key, value in data.items() if key != "id"}
            record["id"] = user_id
            self._users[user_id] = record
            return dict(record)

    def delete(self, user_id: int) -> bool:
        with self._lock:
            return self._users.pop(user_id, None) is not None

    def set_status(self, user_id: int, new_status: Optional[str]) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._users.get(user_id)
            if record is None:
                return None
            if new_status is None:
                current = record.get("status", STATUS_ACTIVE)
                new_status = STATUS_INACTIVE if current == STATUS_ACTIVE else STATUS_ACTIVE
            record["status"] = new_status
            return dict(record)


class BearerGuard:
    """Accept requests whose bearer token matches a configured one.

    Fixed tokens are checked first. When a token provider is given, its
    current token is read on every request, so rotating the dashboard's stored
    token is honored by a running sandbox without a restart.
    """

    def __init__(
        self,
        tokens: Iterable[str] = (),
        *,
        provider: Optional[TokenProvider] = None,
    ) -> None:
        self._tokens = [token.strip() for token in tokens if token and token.strip()]
        self._provider = provider
        if not self._tokens and provider is None:
            raise ValueError("The sandbox needs at least one bearer token or a token provider")
        self._bearer = HTTPBearer(auto_error=False)

    async def accepted(self) -> List[str]:
        tokens = list(self._tokens)
        if self._provider is not None:
            current = await anyio.to_thread.run_sync(self._provider.get_token)
            if current:
                tokens.append(current)
        return tokens

    async def __call__(self, request: Request) -> None:
        credentials: Optional[HTTPAuthorizationCredentials] = await self._bearer(request)
        if credentials is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

        provided = credentials.credentials.encode("utf-8")
        matched = False
        for token in await self.accepted():
            matched |= secrets.compare_digest(provided, token.encode("utf-8"))
        if not matched:
            logger.debug("Rejected request to %s with an unknown bearer token", request.url.path)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid bearer token")


def tokens_from_env() -> List[str]:
    """Comma-separated sandbox tokens from ``USERS_DASHBOARD_SANDBOX_TOKENS``."""

    raw = os.getenv(SANDBOX_TOKENS_ENV, "")
    return [token.strip() for token in raw.split(",") if token.strip()]


def create_app(
    *,
    tokens: Iterable[str] = (),
    users: Iterable[Mapping[str, Any]] = (),
    token_provider: Optional[TokenProvider] = None,
) -> FastAPI:
    """Create the sandbox users API.

    Requests under ``/users`` must carry one of ``tokens`` or the current token
    of ``token_provider`` as a bearer token.
    """

    auth = BearerGuard(tokens, provider=token_provider)
    store = UserStore(users)

    app = FastAPI(
        title="Users Dashboard Sandbox API",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.store = store

    def _require(user: Optional[Dict[str, Any]], user_id: int) -> Dict[str, Any]:
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")
        return user

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    router = APIRouter(dependencies=[Depends(auth)])

    @router.get("/users")
    async def list_users() -> List[Dict[str, Any]]:
        return store.list()

    @router.post("/users/", status_code=status.HTTP_201_CREATED)
    async def create_user(payload: UserIn) -> Dict[str, Any]:
        user = store.create(payload.model_dump(exclude_unset=True))
        logger.info("Created sandbox user #%s", user["id"])
        return user

    @router.get("/users/{user_id}")
    async def read_user(user_id: int) -> Dict[str, Any]:
        return _require(store.get(user_id), user_id)

    @router.put("/users/{user_id}")
    async def update_user(user_id: int, payload: UserIn) -> Dict[str, Any]:
        return _require(store.replace(user_id, payload.model_dump(exclude_unset=True)), user_id)

    @router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_user(user_id: int) -> Response:
        if not store.delete(user_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")
        logger.info("Deleted sandbox user #%s", user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @router.patch("/users/{user_id}/status")
    async def change_user_status(
        user_id: int,
        payload: Optional[StatusChangeRequest] = Body(default=None),
    ) -> Dict[str, Any]:
        new_status = payload.status if payload is not None else None
        return _require(store.set_status(user_id, new_status), user_id)

    app.include_router(router)
    return app


__all__ = ["BearerGuard", "SANDBOX_TOKENS_ENV", "UserStore", "create_app", "tokens_from_env"]
