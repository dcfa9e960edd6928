import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dashboard.sandbox import create_app
from main import _build_payload, _parse_args, main


TOKEN = "cli-token"


@pytest.fixture
def cli_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("USERS_DASHBOARD_STORAGE", str(tmp_path / "storage.json"))
    monkeypatch.delenv("USERS_DASHBOARD_CONFIG", raising=False)
    monkeypatch.delenv("USERS_DASHBOARD_BASE_URL", raising=False)
    monkeypatch.delenv("USERS_DASHBOARD_TOKEN", raising=False)
    return tmp_path


@pytest.fixture
def sandbox_client():
    app = create_app(tokens=[TOKEN], users=[{"id": 1, "name": "Ada", "email": "ada@example.com"}])
    with TestClient(app) as client:
        yield client


def test_default_command_lists_users() -> None:
    args = _parse_args([])
    assert args.command == "list"


def test_global_options_without_subcommand_default_to_list() -> None:
    args = _parse_args(["--base-url", "http://api/", "--timeout", "3"])
    assert args.command == "list"
    assert args.base_url == "http://api/"
    assert args.timeout == 3.0


def test_status_subcommand_parses_optional_value() -> None:
    args = _parse_args(["status", "4", "--value", "inactive"])
    assert args.command == "status"
    assert args.user_id == 4
    assert args.value == "inactive"


def test_build_payload_merges_json_and_fields() -> None:
    payload = _build_payload(["age=30", "name=Ada", "admin=true"], '{"email": "a@example.com"}')
    assert payload == {"email": "a@example.com", "age": 30, "name": "Ada", "admin": True}

    with pytest.raises(ValueError):
        _build_payload(["missing-separator"], None)
    with pytest.raises(ValueError):
        _build_payload([], None)


def test_token_then_list_against_sandbox(cli_env, sandbox_client, capsys) -> None:
    assert main(["token", "set", TOKEN]) == 0
    assert main(["--base-url", "http://testserver/", "list"], http_client=sandbox_client) == 0

    output = capsys.readouterr().out
    assert "1 user(s) found:" in output
    assert "ada@example.com" in output


def test_crud_commands_against_sandbox(cli_env, sandbox_client, capsys, monkeypatch) -> None:
    monkeypatch.setenv("USERS_DASHBOARD_TOKEN", TOKEN)
    base = ["--base-url", "http://testserver/"]

    assert main([*base, "create", "--field", "name=Grace"], http_client=sandbox_client) == 0
    assert main([*base, "update", "2", "--field", "email=grace@example.com"], http_client=sandbox_client) == 0
    assert main([*base, "show", "2"], http_client=sandbox_client) == 0
    assert main([*base, "status", "2"], http_client=sandbox_client) == 0
    assert main([*base, "delete", "2"], http_client=sandbox_client) == 0

    output = capsys.readouterr().out
    assert "Created user #2." in output
    assert "Updated user #2." in output
    assert "grace@example.com" in output
    assert "User #2 status changed to inactive." in output
    assert "Deleted user #2." in output


def test_failures_print_mapped_message_and_exit_nonzero(cli_env, sandbox_client, capsys) -> None:
    assert main(["--base-url", "http://testserver/", "show", "1"], http_client=sandbox_client) == 1
    assert "Error Code: 401\n" in capsys.readouterr().err


def test_token_set_rejects_blank_token(cli_env, capsys) -> None:
    assert main(["token", "set", "   "]) == 1
    assert "Token must not be empty" in capsys.readouterr().err
    assert main(["token", "show"]) == 0
    assert "No token stored." in capsys.readouterr().out


def test_list_prints_non_string_fields(cli_env, capsys, monkeypatch) -> None:
    app = create_app(tokens=[TOKEN], users=[{"id": 1, "status": 1}, {"id": 2, "name": 7, "email": ""}])
    monkeypatch.setenv("USERS_DASHBOARD_TOKEN", TOKEN)

    with TestClient(app) as client:
        assert main(["--base-url", "http://testserver/", "list"], http_client=client) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "2 user(s) found:"
    assert lines[3].split() == ["1", "<no", "name>", "<no", "email>", "1"]
    assert lines[4].split() == ["2", "7", "<no", "email>", "-"]


@pytest.fixture
def served(monkeypatch):
    import uvicorn

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.delenv("USERS_DASHBOARD_SANDBOX_TOKENS", raising=False)
    return calls


@pytest.mark.parametrize(
    "content",
    [None, "{not json", '{"id": 1}', '[{"name": "no id"}]', '[{"id": "x"}]'],
)
def test_sandbox_reports_unusable_seed_file(cli_env, served, capsys, content) -> None:
    seed = cli_env / "seed.json"
    if content is not None:
        seed.write_text(content, encoding="utf-8")

    assert main(["sandbox", "--token", TOKEN, "--seed", str(seed)]) == 1
    assert "Cannot start sandbox:" in capsys.readouterr().err
    assert served == []


def test_sandbox_accepts_the_stored_dashboard_token(cli_env, served, capsys) -> None:
    seed = cli_env / "seed.json"
    seed.write_text('[{"id": 5, "name": "Ada"}]', encoding="utf-8")
    assert main(["token", "set", "stored-token"]) == 0

    assert main(["sandbox", "--seed", str(seed), "--port", "9001"]) == 0

    (app, kwargs), = served
    assert kwargs["port"] == 9001
    assert "Generated sandbox token" not in capsys.readouterr().out

    with TestClient(app) as client:
        assert main(["--base-url", "http://testserver/", "show", "5"], http_client=client) == 0
        assert main(["token", "set", "rotated-token"]) == 0
        assert main(["--base-url", "http://testserver/", "show", "5"], http_client=client) == 0


def test_sandbox_generates_and_stores_a_token_when_none_exists(cli_env, served, capsys) -> None:
    assert main(["sandbox"]) == 0

    output = capsys.readouterr().out
    assert "Generated sandbox token" in output
    assert main(["token", "show"]) == 0
    assert "No token stored." not in capsys.readouterr().out
    assert len(served) == 1
