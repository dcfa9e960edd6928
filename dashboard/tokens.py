"""Local credential storage for the dashboard client."""

from __future__ import annotations

import json
import logging
import os
import threading
from contextlib import suppress
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger("usersdashboard.tokens")

TOKEN_KEY = "token"
TOKEN_ENV = "USERS_DASHBOARD_TOKEN"


class TokenProvider(Protocol):
    """Anything that can hand out the current bearer token."""

    def get_token(self) -> Optional[str]:
        ...


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


class LocalStorage:
    """A small persistent key/value store backed by a JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable storage file at %s", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items() if value is not None}

    def _write(self, data: Dict[str, str]) -> None:
        _ensure_directory(self._path)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        # Owner-only from the moment it exists.
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2, sort_keys=True)
        os.replace(tmp_path, self._path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)


class StoredTokenProvider:
    """Read the bearer token from local storage on every call.

    Nothing is cached, so a token rotated while the dashboard is running is
    picked up by the next request.
    """

    def __init__(self, storage: LocalStorage, *, key: str = TOKEN_KEY) -> None:
        self._storage = storage
        self._key = key

    def get_token(self) -> Optional[str]:
        token = self._storage.get_item(self._key)
        if token is None:
            return None
        return token.strip() or None

    def set_token(self, token: str) -> None:
        cleaned = token.strip()
        if not cleaned:
            raise ValueError("Token must not be empty")
        self._storage.set_item(self._key, cleaned)
        logger.info("Stored bearer token in %s", self._storage.path)

    def clear(self) -> None:
        self._storage.remove_item(self._key)
        logger.info("Removed bearer token from %s", self._storage.path)


class StaticTokenProvider:
    """Return a fixed token; used by tests and one-off scripts."""

    def __init__(self, token: Optional[str]) -> None:
        self._token = token.strip() if token else None

    def get_token(self) -> Optional[str]:
        return self._token or None


class EnvironmentTokenProvider:
    """Prefer a token from the environment, falling back to another provider."""

    def __init__(self, fallback: Optional[TokenProvider] = None, *, env_name: str = TOKEN_ENV) -> None:
        self._fallback = fallback
        self._env_name = env_name

    def get_token(self) -> Optional[str]:
        value = os.getenv(self._env_name, "").strip()
        if value:
            return value
        if self._fallback is not None:
            return self._fallback.get_token()
        return None


__all__ = [
    "EnvironmentTokenProvider",
    "LocalStorage",
    "StaticTokenProvider",
    "StoredTokenProvider",
    "TOKEN_KEY",
    "TokenProvider",
]
