"""Command-line interface for the users admin dashboard."""

from __future__ import annotations
import argparse
import json
import logging
import secrets
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import httpx

from dashboard.client import UserResourceClient
from dashboard.config import DashboardSettings, load_settings
from dashboard.errors import ConfigurationError
from dashboard.models import UserRecord
from dashboard.tokens import EnvironmentTokenProvider, LocalStorage, StoredTokenProvider, TokenProvider
from dashboard.views import UserDetailView, UserFormView, UserListView

logger = logging.getLogger("usersdashboard.main")

KNOWN_COMMANDS = {"list", "show", "create", "update", "delete", "status", "token", "sandbox"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Users admin dashboard")
    parser.add_argument("--base-url", default=None, help="Root URL of the users API")
    parser.add_argument("--config", default=None, help="Path to a YAML configuration file")
    parser.add_argument("--timeout", type=float, default=None, help="Request timeout in seconds")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log each request")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="list")

    subparsers.add_parser("list", help="List all users")

    show_parser = subparsers.add_parser("show", help="Show a single user")
    show_parser.add_argument("user_id", type=int)

    create_parser = subparsers.add_parser("create", help="Create a user")
    _add_payload_arguments(create_parser)

    update_parser = subparsers.add_parser("update", help="Update a user")
    update_parser.add_argument("user_id", type=int)
    _add_payload_arguments(update_parser)

    delete_parser = subparsers.add_parser("delete", help="Delete a user")
    delete_parser.add_argument("user_id", type=int)

    status_parser = subparsers.add_parser("status", help="Change the status of a user")
    status_parser.add_argument("user_id", type=int)
    status_parser.add_argument(
        "--value",
        default=None,
        help="New status; the server toggles the current one when omitted",
    )

    token_parser = subparsers.add_parser("token", help="Manage the stored bearer token")
    token_parser.add_argument("action", choices=("set", "show", "clear"))
    token_parser.add_argument("token", nargs="?", default=None)

    sandbox_parser = subparsers.add_parser("sandbox", help="Serve an in-memory users API")
    sandbox_parser.add_argument("--host", default="127.0.0.1", help="Bind address")
    sandbox_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    sandbox_parser.add_argument(
        "--token",
        action="append",
        default=None,
        help=(
            "Accepted bearer token (repeatable); defaults to USERS_DASHBOARD_SANDBOX_TOKENS, "
            "then the dashboard's own stored token"
        ),
    )
    sandbox_parser.add_argument(
        "--seed",
        default=None,
        help="Path to a JSON file with an initial list of users",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    if not any(arg in KNOWN_COMMANDS for arg in args_list):
        if not any(flag in args_list for flag in ("-h", "--help")):
            args_list = [*args_list, "list"]

    return parser.parse_args(args_list)


def _add_payload_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--field",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Field to send (repeatable); values are parsed as JSON when possible",
    )
    parser.add_argument("--json", dest="json_body", default=None, help="Full JSON object to send")


def _parse_field_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _build_payload(fields: Sequence[str], json_body: Optional[str]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if json_body:
        try:
            parsed = json.loads(json_body)
        except ValueError as exc:
            raise ValueError(f"--json is not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ValueError("--json must be a JSON object")
        payload.update(parsed)

    for item in fields:
        key, separator, value = item.partition("=")
        key = key.strip()
        if not separator or not key:
            raise ValueError(f"Invalid field '{item}'; expected KEY=VALUE")
        payload[key] = _parse_field_value(value)

    if not payload:
        raise ValueError("Provide at least one --field or --json")
    return payload


def _load_settings(args: argparse.Namespace) -> DashboardSettings:
    config_path = Path(args.config).expanduser() if args.config else None
    return load_settings(
        config_path,
        overrides={"base_url": args.base_url, "timeout": args.timeout},
    )


def _token_store(settings: DashboardSettings) -> StoredTokenProvider:
    return StoredTokenProvider(LocalStorage(settings.storage_path))


def _display(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return str(value)


def _print_users(users: List[UserRecord]) -> None:
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  Status")
    print("-" * 72)
    for user in users:
        name = _display(user.name, "<no name>")
        email = _display(user.email, "<no email>")
        status = _display(user.status, "-")
        print(f"{user.id:>4}  {name:<24}  {email:<32}  {status}")


def _print_user(user: Optional[UserRecord]) -> None:
    if user is None:
        print("The server returned no user data.")
        return
    for key, value in user.model_dump().items():
        print(f"{key:>12}: {value}")


def _fail(message: Optional[str]) -> int:
    print(message or "Request failed.", file=sys.stderr)
    return 1


def _run_token_command(args: argparse.Namespace, store: StoredTokenProvider) -> int:
    if args.action == "set":
        if not args.token:
            return _fail("Provide the token to store: token set TOKEN")
        try:
            store.set_token(args.token)
        except ValueError as exc:
            return _fail(str(exc))
        print("Token stored.")
    elif args.action == "show":
        token = store.get_token()
        if token is None:
            print("No token stored.")
        else:
            print(f"{token[:6]}... ({len(token)} characters)")
    else:
        store.clear()
        print("Token cleared.")
    return 0


def _load_seed(path: Optional[str]) -> List[Dict[str, Any]]:
    if not path:
        return []
    seed_path = Path(path).expanduser()
    try:
        with seed_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise ValueError(f"Unable to read seed file {seed_path}: {exc.strerror or exc}") from exc
    except ValueError as exc:
        raise ValueError(f"Seed file {seed_path} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ValueError("Seed file must contain a JSON list of users")
    return data


def _serve_sandbox(args: argparse.Namespace, store: StoredTokenProvider) -> int:
    from dashboard.sandbox import create_app, tokens_from_env
    import uvicorn

    tokens = args.token or tokens_from_env()
    provider: Optional[TokenProvider] = None
    if not tokens:
        # Accept whatever token the dashboard itself would send.
        provider = EnvironmentTokenProvider(store)
        if provider.get_token() is None:
            generated = secrets.token_urlsafe(24)
            store.set_token(generated)
            print(f"Generated sandbox token and stored it for the dashboard: {generated}")

    try:
        app = create_app(tokens=tokens, users=_load_seed(args.seed), token_provider=provider)
    except ValueError as exc:
        return _fail(f"Cannot start sandbox: {exc}")

    logger.info("Starting sandbox users API on http://%s:%s", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


def _run_resource_command(args: argparse.Namespace, client: UserResourceClient) -> int:
    if args.command == "list":
        view = UserListView(client)
        outcome = view.activate()
        if not outcome.is_ok:
            return _fail(view.error)
        _print_users(view.users)
    elif args.command == "show":
        detail = UserDetailView(client, args.user_id)
        if not detail.load().is_ok:
            return _fail(detail.error)
        _print_user(detail.record)
    elif args.command in {"create", "update"}:
        try:
            payload = _build_payload(args.field, args.json_body)
        except ValueError as exc:
            return _fail(str(exc))
        form = UserFormView(client, user_id=getattr(args, "user_id", None))
        if not form.load().is_ok:
            return _fail(form.error)
        if not form.submit(payload).is_ok:
            return _fail(form.error)
        verb = "Updated" if form.is_edit else "Created"
        if form.saved is not None:
            print(f"{verb} user #{form.saved.id}.")
        else:
            print(f"{verb} user.")
    elif args.command == "delete":
        view = UserListView(client)
        if not view.delete(args.user_id).is_ok:
            return _fail(view.error)
        print(f"Deleted user #{args.user_id}.")
    elif args.command == "status":
        view = UserListView(client)
        outcome = view.change_status(args.user_id, args.value)
        if not outcome.is_ok:
            return _fail(view.error)
        record = outcome.value
        if record is not None and record.status is not None:
            print(f"User #{args.user_id} status changed to {record.status}.")
        else:
            print(f"User #{args.user_id} status changed.")
    return 0


def main(argv: Sequence[str] | None = None, *, http_client: Optional[httpx.Client] = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        settings = _load_settings(args)
    except ConfigurationError as exc:
        return _fail(f"Configuration error: {exc}")

    store = _token_store(settings)
    if args.command == "token":
        return _run_token_command(args, store)
    if args.command == "sandbox":
        return _serve_sandbox(args, store)

    with UserResourceClient.from_settings(
        settings,
        EnvironmentTokenProvider(store),
        http_client=http_client,
    ) as client:
        return _run_resource_command(args, client)


if __name__ == "__main__":
    raise SystemExit(main())
