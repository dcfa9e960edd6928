"""Admin dashboard client for the users resource."""

from __future__ import annotations

from typing import Any

from .client import AsyncUserResourceClient, UserResourceClient
from .config import DashboardSettings, load_settings
from .errors import HttpFailure, NetworkFailure, ResponseDecodeError, UserResourceError
from .models import UserRecord
from .result import Result
from .views import UserDetailView, UserFormView, UserListView


def create_sandbox_app(*args: Any, **kwargs: Any):
    """Factory function for the in-memory users API."""

    from .sandbox import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "AsyncUserResourceClient",
    "DashboardSettings",
    "HttpFailure",
    "NetworkFailure",
    "ResponseDecodeError",
    "Result",
    "UserDetailView",
    "UserFormView",
    "UserListView",
    "UserRecord",
    "UserResourceClient",
    "UserResourceError",
    "create_sandbox_app",
    "load_settings",
]
