from __future__ import annotations

import json
import sys
from pathlib import Path

import httpx
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dashboard.client import UserResourceClient
from dashboard.errors import HttpFailure
from dashboard.tokens import StaticTokenProvider
from dashboard.views import UserDetailView, UserFormView, UserListView


class FakeUsersBackend:
    """Answer list/status/delete calls and count them per route."""

    def __init__(self, users, *, fail_with: int | None = None) -> None:
        self.users = users
        self.fail_with = fail_with
        self.calls: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.method, request.url.path))
        if self.fail_with is not None:
            return httpx.Response(self.fail_with)
        if request.method == "GET" and request.url.path == "/users":
            return httpx.Response(200, json=self.users)
        if request.method == "PATCH":
            return httpx.Response(200, json={"id": int(request.url.path.split("/")[2]), "status": "inactive"})
        if request.method == "DELETE":
            return httpx.Response(204)
        if request.method == "GET":
            user_id = int(request.url.path.rsplit("/", 1)[-1])
            return httpx.Response(200, json={"id": user_id, "name": "Ada", "email": "ada@example.com"})
        if request.method in {"POST", "PUT"}:
            body = json.loads(request.content)
            body.setdefault("id", 10)
            return httpx.Response(200, json=body)
        return httpx.Response(405)


@pytest.fixture
def backend() -> FakeUsersBackend:
    return FakeUsersBackend([{"id": 1}, {"id": 2}])


def _client(backend: FakeUsersBackend) -> UserResourceClient:
    http_client = httpx.Client(transport=httpx.MockTransport(backend))
    return UserResourceClient("http://backend/", StaticTokenProvider("t"), http_client=http_client)


def test_activate_populates_collection_in_order_and_remove_filters(backend):
    view = UserListView(_client(backend))

    outcome = view.activate()

    assert outcome.is_ok
    assert [user.model_dump(exclude_unset=True) for user in view.users] == [{"id": 1}, {"id": 2}]

    view.remove(1)
    assert [user.model_dump(exclude_unset=True) for user in view.users] == [{"id": 2}]


def test_activate_fetches_only_once(backend):
    view = UserListView(_client(backend))

    view.activate()
    view.activate()

    assert backend.calls == [("GET", "/users")]
    view.refresh()
    assert backend.calls.count(("GET", "/users")) == 2


def test_activation_failure_is_recorded_instead_of_swallowed():
    backend = FakeUsersBackend([], fail_with=500)
    view = UserListView(_client(backend))

    outcome = view.activate()

    assert not outcome.is_ok
    assert isinstance(outcome.error, HttpFailure)
    assert view.users == []
    assert view.error is not None and view.error.startswith("Error Code: 500\n")
    with pytest.raises(HttpFailure):
        outcome.unwrap()


def test_change_status_removes_user_after_success(backend):
    view = UserListView(_client(backend))
    view.activate()

    outcome = view.change_status(2)

    assert outcome.is_ok
    assert ("PATCH", "/users/2/status") in backend.calls
    assert [user.id for user in view.users] == [1]


def test_failed_delete_leaves_collection_untouched(backend):
    view = UserListView(_client(backend))
    view.activate()
    backend.fail_with = 403

    outcome = view.delete(1)

    assert not outcome.is_ok
    assert [user.id for user in view.users] == [1, 2]
    assert view.error is not None and view.error.startswith("Error Code: 403")


def test_delete_removes_locally_without_refetch(backend):
    view = UserListView(_client(backend))
    view.activate()

    assert view.delete(1).is_ok
    assert [user.id for user in view.users] == [2]
    assert backend.calls.count(("GET", "/users")) == 1


def test_detail_view_loads_record(backend):
    detail = UserDetailView(_client(backend), 5)

    assert detail.load().is_ok
    assert detail.record is not None
    assert detail.record.name == "Ada"
    assert backend.calls == [("GET", "/users/5")]


def test_form_view_creates_when_no_id(backend):
    form = UserFormView(_client(backend))

    assert form.load().is_ok
    outcome = form.submit({"name": "Grace"})

    assert outcome.is_ok
    assert not form.is_edit
    assert form.saved is not None and form.saved.name == "Grace"
    assert backend.calls == [("POST", "/users/")]


def test_form_view_edit_keeps_untouched_fields(backend):
    form = UserFormView(_client(backend), user_id=5)

    form.load()
    outcome = form.submit({"name": "Ada Lovelace"})

    assert outcome.is_ok
    assert backend.calls == [("GET", "/users/5"), ("PUT", "/users/5")]
    assert form.saved is not None
    assert form.saved.name == "Ada Lovelace"
    assert form.saved.email == "ada@example.com"


def test_activate_keeps_records_with_non_string_fields():
    backend = FakeUsersBackend(
        [
            {"id": 1, "status": 1},
            {"id": 2, "name": 7, "email": None, "status": {"code": "locked"}},
        ]
    )
    view = UserListView(_client(backend))

    outcome = view.activate()

    assert outcome.is_ok
    assert view.error is None
    assert [user.id for user in view.users] == [1, 2]
    assert view.users[0].status == 1
    assert view.users[1].name == 7
    assert view.users[1].status == {"code": "locked"}
