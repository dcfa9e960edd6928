"""View state for the users list, detail and form screens."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from .client import UserResourceClient
from .models import UserPayload, UserRecord
from .result import Result

logger = logging.getLogger("usersdashboard.views")


class UserListView:
    """Holds the users collection shown on the list screen.

    The collection is fetched once on activation. Deletes and status changes
    only filter the local copy after the remote call succeeds; the list is not
    fetched again.
    """

    def __init__(self, client: UserResourceClient) -> None:
        self._client = client
        self.users: List[UserRecord] = []
        self.error: Optional[str] = None
        self._activation: Optional[Result[List[UserRecord]]] = None

    @property
    def activated(self) -> bool:
        return self._activation is not None

    def activate(self) -> Result[List[UserRecord]]:
        if self._activation is None:
            self._activation = self._load()
        return self._activation

    def refresh(self) -> Result[List[UserRecord]]:
        self._activation = self._load()
        return self._activation

    def _load(self) -> Result[List[UserRecord]]:
        outcome = Result.capture(self._client.list_all)
        if outcome.is_ok:
            self.users = list(outcome.value or [])
            self.error = None
            logger.info("Loaded %d user(s)", len(self.users))
        else:
            self._record_failure("load users", outcome)
        return outcome

    def remove(self, user_id: int) -> None:
        self.users = [user for user in self.users if user.id != user_id]

    def change_status(self, user_id: int, status: Optional[str] = None) -> Result[Optional[UserRecord]]:
        outcome = Result.capture(self._client.change_status, user_id, status)
        if outcome.is_ok:
            self.remove(user_id)
            self.error = None
        else:
            self._record_failure(f"change status of user {user_id}", outcome)
        return outcome

    def delete(self, user_id: int) -> Result[None]:
        outcome = Result.capture(self._client.delete, user_id)
        if outcome.is_ok:
            self.remove(user_id)
            self.error = None
            logger.info("User %s deleted", user_id)
        else:
            self._record_failure(f"delete user {user_id}", outcome)
        return outcome

    def _record_failure(self, action: str, outcome: Result[Any]) -> None:
        self.error = outcome.message
        logger.warning("Failed to %s: %s", action, outcome.message)


class UserDetailView:
    """Read-only screen for a single user."""

    def __init__(self, client: UserResourceClient, user_id: int) -> None:
        self._client = client
        self.user_id = user_id
        self.record: Optional[UserRecord] = None
        self.error: Optional[str] = None

    def load(self) -> Result[Optional[UserRecord]]:
        outcome = Result.capture(self._client.find, self.user_id)
        if outcome.is_ok:
            self.record = outcome.value
            self.error = None
        else:
            self.error = outcome.message
            logger.warning("Failed to load user %s: %s", self.user_id, outcome.message)
        return outcome


class UserFormView:
    """Create screen when ``user_id`` is ``None``, edit screen otherwise."""

    def __init__(self, client: UserResourceClient, *, user_id: Optional[int] = None) -> None:
        self._client = client
        self.user_id = user_id
        self.initial: Optional[UserRecord] = None
        self.saved: Optional[UserRecord] = None
        self.error: Optional[str] = None

    @property
    def is_edit(self) -> bool:
        return self.user_id is not None

    def load(self) -> Result[Optional[UserRecord]]:
        if self.user_id is None:
            return Result.ok(None)
        outcome = Result.capture(self._client.find, self.user_id)
        if outcome.is_ok:
            self.initial = outcome.value
        else:
            self.error = outcome.message
        return outcome

    def submit(self, payload: UserPayload) -> Result[Optional[UserRecord]]:
        if self.user_id is None:
            outcome = Result.capture(self._client.create, payload)
        else:
            outcome = Result.capture(self._client.update, self.user_id, _merge(self.initial, payload))

        if outcome.is_ok:
            self.saved = outcome.value
            self.error = None
            logger.info("User %s saved", self.saved.id if self.saved else self.user_id)
        else:
            self.error = outcome.message
            logger.warning("Failed to save user: %s", outcome.message)
        return outcome


def _merge(initial: Optional[UserRecord], payload: UserPayload) -> UserPayload:
    """Overlay form values on the loaded record so untouched fields survive the PUT."""

    if initial is None or not isinstance(payload, Mapping):
        return payload
    merged = initial.to_payload()
    merged.update(payload)
    return merged


__all__ = ["UserDetailView", "UserFormView", "UserListView"]
