from __future__ import annotations

import pytest

from apunto.db.session import create_session_factory
from apunto.schemas import HistoryItemCreate
from apunto.services.history.remote import RemoteHistoryClient, RemoteHistoryError
from apunto.services.history.storage import SqlKeyValueStorage
from apunto.services.history.store import HistoryStore


class _FakeResponse:
    def __init__(self, status_code: int, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class _FakeHttp:
    def __init__(self, response):
        self.response = response
        self.calls: list[tuple] = []

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self.response

    def delete(self, url, **kwargs):
        self.calls.append(("DELETE", url, kwargs))
        return self.response


@pytest.fixture
def sql_storage(tmp_path):
    return SqlKeyValueStorage(create_session_factory(f"sqlite:///{tmp_path / 'history.db'}"))


def test_fetch_maps_remote_records():
    http = _FakeHttp(
        _FakeResponse(
            200,
            {
                "history": [
                    {
                        "id": "a1",
                        "description": "factura",
                        "extracted_text": "Total 10",
                        "summary": "Factura",
                        "label": "Factura",
                        "created_at": "2024-01-01T00:00:01+00:00",
                    }
                ]
            },
        )
    )
    client = RemoteHistoryClient("http://backend.test/api/", http=http, timeout_seconds=2)

    items = client.fetch("user-1")

    method, url, kwargs = http.calls[0]
    assert (method, url) == ("GET", "http://backend.test/api/history")
    assert kwargs["params"] == {"userId": "user-1"}
    assert kwargs["timeout"] == 2
    assert items[0].id == "a1"
    assert items[0].extracted_text == "Total 10"
    assert items[0].timestamp == 1704067201000
    assert items[0].image_uri == ""


def test_fetch_without_user_sends_no_params():
    http = _FakeHttp(_FakeResponse(200, {"history": None}))
    assert RemoteHistoryClient("http://b", http=http).fetch() == []
    assert http.calls[0][2]["params"] == {}


@pytest.mark.parametrize(
    "response",
    [
        _FakeResponse(500, {"error": "boom"}),
        _FakeResponse(200, None),
        _FakeResponse(200, ["not", "an", "object"]),
        _FakeResponse(200, {"history": [{"description": "missing id"}]}),
    ],
)
def test_fetch_rejects_bad_responses(response):
    with pytest.raises(RemoteHistoryError):
        RemoteHistoryClient("http://b", http=_FakeHttp(response)).fetch()


def test_delete_targets_item_url():
    http = _FakeHttp(_FakeResponse(204))
    RemoteHistoryClient("http://b/api", http=http).delete("a/1", "u")
    method, url, kwargs = http.calls[0]
    assert (method, url) == ("DELETE", "http://b/api/history/a%2F1")
    assert kwargs["params"] == {"userId": "u"}


def test_delete_failure_raises():
    with pytest.raises(RemoteHistoryError):
        RemoteHistoryClient("http://b", http=_FakeHttp(_FakeResponse(404))).delete("x")


def test_sql_storage_slots(sql_storage):
    assert sql_storage.get_item("k") is None
    sql_storage.set_item("k", "[1]")
    sql_storage.set_item("k", "[2]")
    assert sql_storage.get_item("k") == "[2]"
    sql_storage.remove_item("k")
    sql_storage.remove_item("k")
    assert sql_storage.get_item("k") is None


@pytest.mark.asyncio
async def test_history_store_on_sql_storage(sql_storage):
    store = HistoryStore(sql_storage, clock=lambda: 1234)
    await store.save(HistoryItemCreate(description="recibo", extracted_text="t", summary="s"))

    reopened = HistoryStore(sql_storage)
    items = await reopened.list()
    assert [(item.id, item.description) for item in items] == [("1234", "recibo")]
