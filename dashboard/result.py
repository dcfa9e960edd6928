"""Explicit success/failure outcome for dashboard actions."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from .errors import UserResourceError

T = TypeVar("T")


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or the :class:`UserResourceError` that prevented it."""

    value: Optional[T] = None
    error: Optional[UserResourceError] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: UserResourceError) -> "Result[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    @classmethod
    def capture(cls, func: Callable[..., T], *args: Any, **kwargs: Any) -> "Result[T]":
        """Run ``func`` and wrap a failed request instead of raising it."""

        try:
            return cls.ok(func(*args, **kwargs))
        except UserResourceError as exc:
            return cls.fail(exc)

    @classmethod
    async def capture_async(
        cls, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> "Result[T]":
        try:
            return cls.ok(await func(*args, **kwargs))
        except UserResourceError as exc:
            return cls.fail(exc)


__all__ = ["Result"]
