"""Configuration management for the users dashboard."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional
from urllib.parse import urlsplit

import yaml

from .errors import ConfigurationError

DEFAULT_BASE_URL = "http://localhost:8000/"
DEFAULT_TIMEOUT = 30.0
CONFIG_ENV = "USERS_DASHBOARD_CONFIG"
BASE_URL_ENV = "USERS_DASHBOARD_BASE_URL"
TIMEOUT_ENV = "USERS_DASHBOARD_TIMEOUT"
STORAGE_ENV = "USERS_DASHBOARD_STORAGE"
VERIFY_ENV = "USERS_DASHBOARD_VERIFY"


def resolve_storage_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path of the local token storage."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path.home() / ".config" / "users-dashboard" / "storage.json").resolve(strict=False)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the YAML configuration file."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path.cwd() / "users_dashboard.yaml").resolve(strict=False)


def normalize_base_url(base_url: str) -> str:
    cleaned = (base_url or "").strip()
    if not cleaned:
        raise ConfigurationError("Base URL must not be empty")
    parts = urlsplit(cleaned)
    if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
        raise ConfigurationError(f"Base URL must be an absolute http(s) URL: {cleaned!r}")
    if not cleaned.endswith("/"):
        cleaned += "/"
    return cleaned


def _parse_timeout(value: object) -> float:
    try:
        timeout = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout value: {value!r}") from exc
    if timeout <= 0:
        raise ConfigurationError("Timeout must be greater than zero")
    return timeout


def _parse_verify_setting(value: object) -> str | bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"", "1", "true", "yes", "on", "default"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return str(Path(str(value)).expanduser())


def _or_default(value: object, default: object) -> object:
    # An empty YAML key loads as None.
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return value


@dataclass(frozen=True)
class DashboardSettings:
    """Runtime settings shared by the client, the views and the CLI."""

    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    storage_path: Path = field(default_factory=lambda: resolve_storage_path(None))
    verify: str | bool = True

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "DashboardSettings":
        """Create :class:`DashboardSettings` from raw dictionary data."""

        unknown = set(data) - {"base_url", "timeout", "storage_path", "verify"}
        if unknown:
            raise ConfigurationError(
                f"Unknown dashboard configuration fields: {', '.join(sorted(unknown))}"
            )

        storage_raw = data.get("storage_path")
        if storage_raw:
            storage = Path(str(storage_raw)).expanduser()
            if not storage.is_absolute() and base_path is not None:
                storage = base_path / storage
            storage_path = storage.resolve(strict=False)
        else:
            storage_path = resolve_storage_path(None)

        return DashboardSettings(
            base_url=normalize_base_url(str(_or_default(data.get("base_url"), DEFAULT_BASE_URL))),
            timeout=_parse_timeout(_or_default(data.get("timeout"), DEFAULT_TIMEOUT)),
            storage_path=storage_path,
            verify=_parse_verify_setting(data.get("verify", True)),
        )


def _load_yaml(config_path: Path) -> Dict[str, object]:
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError("Unable to read configuration file", source=str(config_path)) from exc

    if not isinstance(raw, dict):
        raise ConfigurationError("Configuration file must contain a mapping", source=str(config_path))
    section = raw.get("dashboard", {})
    if not isinstance(section, dict):
        raise ConfigurationError(
            "The 'dashboard' key must contain a mapping", source=str(config_path)
        )
    return section


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, object]] = None,
) -> DashboardSettings:
    """Merge defaults, the YAML file, the environment and explicit overrides."""

    explicit = config_path is not None
    path = config_path or resolve_config_path(os.getenv(CONFIG_ENV))
    data: Dict[str, object] = {}
    base_path: Path | None = None
    if path.exists():
        data.update(_load_yaml(path))
        base_path = path.parent
    elif explicit:
        raise ConfigurationError("Configuration file not found", source=str(path))

    env_fields = {
        "base_url": BASE_URL_ENV,
        "timeout": TIMEOUT_ENV,
        "storage_path": STORAGE_ENV,
        "verify": VERIFY_ENV,
    }
    for field_name, env_name in env_fields.items():
        value = os.getenv(env_name)
        if value:
            data[field_name] = value

    if overrides:
        data.update({key: value for key, value in overrides.items() if value is not None})

    return DashboardSettings.from_dict(data, base_path=base_path)


__all__ = [
    "DashboardSettings",
    "load_settings",
    "normalize_base_url",
    "resolve_config_path",
    "resolve_storage_path",
]
