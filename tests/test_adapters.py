"""
Tests for the persistence adapters.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import pytest
import requests

from appointmentplanner.adapters import HttpStore, InMemoryStore, JsonFileStore, build_store
from appointmentplanner.config import StorageConfig
from appointmentplanner.domain.exceptions import NotFoundError, TransportError


def _response(status_code: int, payload: Any = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    return response


class FakeSession:
    """Records requests and replays canned responses in order."""

    def __init__(self, responses: List[Any]):
        self._responses = list(responses)
        self.calls: List[dict] = []

    def request(self, method: str, url: str, headers=None, json: Optional[dict] = None, timeout=None):
        self.calls.append({"method": method, "url": url, "json": json, "timeout": timeout})
        outcome = self._responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestInMemoryStore:
    """Tests for InMemoryStore."""

    def test_create_assigns_id_and_timestamp(self):
        store = InMemoryStore()

        record = asyncio.run(store.create_participant({"name": "Alice"}))

        assert record["id"]
        assert record["created_at"]
        assert asyncio.run(store.list_participants()) == [record]

    def test_returned_records_are_copies(self):
        store = InMemoryStore(appointments=[{"id": "a1", "participants": ["p1"]}])

        listed = asyncio.run(store.list_appointments())
        listed[0]["participants"].append("p2")

        assert asyncio.run(store.list_appointments())[0]["participants"] == ["p1"]

    def test_update_unknown_record(self):
        with pytest.raises(NotFoundError, match="Participant not found: p9"):
            asyncio.run(InMemoryStore().update_participant("p9", {"name": "x"}))


class TestJsonFileStore:
    """Tests for JsonFileStore."""

    def test_missing_file_is_created(self, tmp_path: Path):
        path = tmp_path / "data" / "calendar.json"
        store = JsonFileStore(path)

        assert asyncio.run(store.list_appointments()) == []
        assert json.loads(path.read_text(encoding="utf-8")) == {"appointments": [], "participants": []}

    def test_records_survive_a_new_store(self, tmp_path: Path):
        path = tmp_path / "calendar.json"
        created = asyncio.run(JsonFileStore(path).create_appointment({"title": "Standup"}))

        reopened = JsonFileStore(path)
        asyncio.run(reopened.update_appointment(created["id"], {"title": "Daily"}))

        assert [r["title"] for r in asyncio.run(JsonFileStore(path).list_appointments())] == ["Daily"]

    def test_delete_unknown_id_is_ignored(self, tmp_path: Path):
        store = JsonFileStore(tmp_path / "calendar.json")
        asyncio.run(store.create_participant({"name": "Alice"}))

        asyncio.run(store.delete_participant("nobody"))

        assert len(asyncio.run(store.list_participants())) == 1

    def test_corrupt_file(self, tmp_path: Path):
        path = tmp_path / "calendar.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(TransportError, match="Could not read calendar data"):
            asyncio.run(JsonFileStore(path).list_appointments())


class TestHttpStore:
    """Tests for HttpStore against a fake session."""

    def test_list_unwraps_data_envelope(self):
        session = FakeSession([_response(200, {"data": [{"id": "a1", "title": "Standup"}]})])
        store = HttpStore("https://calendar.example.com/api/", timeout=5, session=session)

        records = asyncio.run(store.list_appointments())

        assert records == [{"id": "a1", "title": "Standup"}]
        assert session.calls[0]["method"] == "GET"
        assert session.calls[0]["url"] == "https://calendar.example.com/api/appointments"
        assert session.calls[0]["timeout"] == 5

    def test_create_posts_payload(self):
        session = FakeSession([_response(201, {"id": "p1", "name": "Alice"})])
        store = HttpStore("https://calendar.example.com/api", session=session)

        created = asyncio.run(store.create_participant({"name": "Alice"}))

        assert created["id"] == "p1"
        assert session.calls[0]["method"] == "POST"
        assert session.calls[0]["json"] == {"name": "Alice"}

    def test_update_missing_record(self):
        session = FakeSession([_response(404, {"error": "missing"})])
        store = HttpStore("https://calendar.example.com/api", session=session)

        with pytest.raises(NotFoundError, match="Appointment not found: a9"):
            asyncio.run(store.update_appointment("a9", {"title": "x"}))

        assert session.calls[0]["url"].endswith("/appointments/a9")

    def test_delete_missing_record_is_ignored(self):
        session = FakeSession([_response(404)])
        store = HttpStore("https://calendar.example.com/api", session=session)

        asyncio.run(store.delete_participant("p9"))

        assert session.calls[0]["method"] == "DELETE"

    def test_server_error(self):
        session = FakeSession([_response(500, {"error": "boom"})])
        store = HttpStore("https://calendar.example.com/api", session=session)

        with pytest.raises(TransportError):
            asyncio.run(store.list_participants())

    def test_connection_error(self):
        session = FakeSession([requests.exceptions.ConnectionError("refused")])
        store = HttpStore("https://calendar.example.com/api", session=session)

        with pytest.raises(TransportError, match="refused"):
            asyncio.run(store.list_appointments())


class TestBuildStore:
    """Tests for backend selection."""

    def test_backends(self, tmp_path: Path):
        assert isinstance(build_store(StorageConfig(backend="memory")), InMemoryStore)

        json_store = build_store(StorageConfig(backend="json", path=tmp_path / "c.json"))
        assert isinstance(json_store, JsonFileStore)
        assert json_store.path == tmp_path / "c.json"

        http_store = build_store(StorageConfig(backend="http", api_url="https://calendar.example.com/api"))
        assert isinstance(http_store, HttpStore)
