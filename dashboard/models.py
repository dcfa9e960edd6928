"""Schema for the records exchanged with the users API."""

from __future__ import annotations

from typing import Any, List, Mapping, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ResponseDecodeError


class UserRecord(BaseModel):
    """A user as returned by the backend.

    Only ``id`` is validated. ``name``, ``email`` and ``status`` are accepted in
    whatever shape the server sends, and undeclared fields are kept untouched so
    they round-trip on update.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    name: Any = None
    email: Any = None
    status: Any = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


UserPayload = Union[Mapping[str, Any], UserRecord]


def payload_to_dict(payload: UserPayload) -> dict[str, Any]:
    """Return the JSON-serializable body for a create or update call."""

    if isinstance(payload, UserRecord):
        return payload.to_payload()
    if isinstance(payload, Mapping):
        return dict(payload)
    raise TypeError(f"Unsupported user payload type: {type(payload).__name__}")


def parse_user(data: object) -> UserRecord:
    if not isinstance(data, Mapping):
        raise ResponseDecodeError("Users API returned an unexpected response payload")
    try:
        return UserRecord.model_validate(data)
    except ValidationError as exc:
        raise ResponseDecodeError(f"Users API returned an invalid user record: {exc}") from exc


def parse_users(data: object) -> List[UserRecord]:
    """Decode a collection response, preserving server order."""

    if not isinstance(data, list):
        raise ResponseDecodeError("Users API returned a non-list payload for the collection")
    return [parse_user(item) for item in data]


__all__ = ["UserPayload", "UserRecord", "parse_user", "parse_users", "payload_to_dict"]
