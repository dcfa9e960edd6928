"""HTTP client for the ``users`` resource of the dashboard backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import anyio
import httpx

from .config import DashboardSettings, normalize_base_url
from .errors import HttpFailure, NetworkFailure, ResponseDecodeError, http_failure_message
from .models import UserPayload, UserRecord, parse_user, parse_users, payload_to_dict
from .tokens import TokenProvider

logger = logging.getLogger("usersdashboard.client")

USERS_PATH = "users"


@dataclass
class _ClientConfig:
    base_url: str
    timeout: float
    verify: str | bool


@dataclass(frozen=True)
class _PreparedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[Dict[str, Any]]

    def as_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"headers": self.headers}
        if self.body is not None:
            kwargs["json"] = self.body
        return kwargs


def _build_endpoint(base_url: str, path: str) -> str:
    return f"{base_url}{path}"


def _map_request_error(exc: httpx.RequestError) -> NetworkFailure:
    message = str(exc).strip() or exc.__class__.__name__
    return NetworkFailure(message)


def _map_status_error(url: str, response: httpx.Response) -> HttpFailure:
    message = http_failure_message(url, response.status_code, response.reason_phrase)
    return HttpFailure(response.status_code, message)


def _decode_body(response: httpx.Response) -> object | None:
    if response.status_code == 204 or not response.content.strip():
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise ResponseDecodeError("Users API returned an invalid response") from exc


class _UserResourceBase:
    """Request construction and response mapping shared by both clients."""

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        timeout: float = 30.0,
        verify: str | bool = True,
    ) -> None:
        self._config = _ClientConfig(
            base_url=normalize_base_url(base_url),
            timeout=timeout,
            verify=verify,
        )
        self._token_provider = token_provider

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def _headers(self, token: Optional[str], *, with_body: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning("No bearer token available; sending unauthenticated request")
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _prepare(
        self,
        token: Optional[str],
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> _PreparedRequest:
        url = _build_endpoint(self._config.base_url, path)
        logger.debug("%s %s", method, url)
        return _PreparedRequest(
            method=method,
            url=url,
            headers=self._headers(token, with_body=body is not None),
            body=body,
        )

    def _handle(self, prepared: _PreparedRequest, response: httpx.Response) -> object | None:
        if not response.is_success:
            error = _map_status_error(prepared.url, response)
            logger.warning(
                "Users API request %s %s failed with status %s",
                prepared.method,
                prepared.url,
                response.status_code,
            )
            raise error
        return _decode_body(response)

    def _network_failure(self, prepared: _PreparedRequest, exc: httpx.RequestError) -> NetworkFailure:
        logger.warning("Users API request %s %s did not complete: %s", prepared.method, prepared.url, exc)
        return _map_request_error(exc)

    # Route table shared by both clients: (method, path, body)
    @staticmethod
    def _list_route() -> Tuple[str, str, None]:
        return "GET", USERS_PATH, None

    @staticmethod
    def _create_route(record: UserPayload) -> Tuple[str, str, Dict[str, Any]]:
        return "POST", f"{USERS_PATH}/", payload_to_dict(record)

    @staticmethod
    def _find_route(user_id: int) -> Tuple[str, str, None]:
        return "GET", f"{USERS_PATH}/{user_id}", None

    @staticmethod
    def _update_route(user_id: int, record: UserPayload) -> Tuple[str, str, Dict[str, Any]]:
        return "PUT", f"{USERS_PATH}/{user_id}", payload_to_dict(record)

    @staticmethod
    def _delete_route(user_id: int) -> Tuple[str, str, None]:
        return "DELETE", f"{USERS_PATH}/{user_id}", None

    @staticmethod
    def _status_route(user_id: int, status: Optional[str]) -> Tuple[str, str, Optional[Dict[str, Any]]]:
        body = {"status": status} if status is not None else None
        return "PATCH", f"{USERS_PATH}/{user_id}/status", body


def _optional_user(data: object | None) -> Optional[UserRecord]:
    if data is None:
        return None
    return parse_user(data)


def _users(data: object | None) -> List[UserRecord]:
    if data is None:
        raise ResponseDecodeError("Users API returned an empty collection response")
    return parse_users(data)


class UserResourceClient(_UserResourceBase):
    """Blocking client for the users resource."""

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        timeout: float = 30.0,
        verify: str | bool = True,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(base_url, token_provider, timeout=timeout, verify=verify)
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout, verify=verify)

    @classmethod
    def from_settings(
        cls,
        settings: DashboardSettings,
        token_provider: TokenProvider,
        *,
        http_client: Optional[httpx.Client] = None,
    ) -> "UserResourceClient":
        return cls(
            settings.base_url,
            token_provider,
            timeout=settings.timeout,
            verify=settings.verify,
            http_client=http_client,
        )

    def _send(self, route: Tuple[str, str, Optional[Dict[str, Any]]]) -> object | None:
        prepared = self._prepare(self._token_provider.get_token(), *route)
        try:
            response = self._http.request(prepared.method, prepared.url, **prepared.as_kwargs())
        except httpx.RequestError as exc:
            raise self._network_failure(prepared, exc) from exc
        return self._handle(prepared, response)

    def list_all(self) -> List[UserRecord]:
        return _users(self._send(self._list_route()))

    def create(self, record: UserPayload) -> Optional[UserRecord]:
        return _optional_user(self._send(self._create_route(record)))

    def find(self, user_id: int) -> Optional[UserRecord]:
        return _optional_user(self._send(self._find_route(user_id)))

    def update(self, user_id: int, record: UserPayload) -> Optional[UserRecord]:
        return _optional_user(self._send(self._update_route(user_id, record)))

    def delete(self, user_id: int) -> None:
        body = self._send(self._delete_route(user_id))
        if body is not None:
            logger.debug("Delete of user %s returned %r", user_id, body)

    def change_status(self, user_id: int, status: Optional[str] = None) -> Optional[UserRecord]:
        return _optional_user(self._send(self._status_route(user_id, status)))

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "UserResourceClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class AsyncUserResourceClient(_UserResourceBase):
    """Non-blocking client for the users resource, built on ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        *,
        timeout: float = 30.0,
        verify: str | bool = True,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(base_url, token_provider, timeout=timeout, verify=verify)
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout, verify=verify)

    async def _send(self, route: Tuple[str, str, Optional[Dict[str, Any]]]) -> object | None:
        # Token providers may read from disk.
        token = await anyio.to_thread.run_sync(self._token_provider.get_token)
        prepared = self._prepare(token, *route)
        try:
            response = await self._http.request(prepared.method, prepared.url, **prepared.as_kwargs())
        except httpx.RequestError as exc:
            raise self._network_failure(prepared, exc) from exc
        return self._handle(prepared, response)

    async def list_all(self) -> List[UserRecord]:
        return _users(await self._send(self._list_route()))

    async def create(self, record: UserPayload) -> Optional[UserRecord]:
        return _optional_user(await self._send(self._create_route(record)))

    async def find(self, user_id: int) -> Optional[UserRecord]:
        return _optional_user(await self._send(self._find_route(user_id)))

    async def update(self, user_id: int, record: UserPayload) -> Optional[UserRecord]:
        return _optional_user(await self._send(self._update_route(user_id, record)))

    async def delete(self, user_id: int) -> None:
        body = await self._send(self._delete_route(user_id))
        if body is not None:
            logger.debug("Delete of user %s returned %r", user_id, body)

    async def change_status(self, user_id: int, status: Optional[str] = None) -> Optional[UserRecord]:
        return _optional_user(await self._send(self._status_route(user_id, status)))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "AsyncUserResourceClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["AsyncUserResourceClient", "UserResourceClient", "USERS_PATH"]
