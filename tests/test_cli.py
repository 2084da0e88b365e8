"""
Tests for the Typer command line.
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from appointmentplanner.adapters.memory_store import InMemoryStore
from appointmentplanner.cli.app import app

runner = CliRunner()


class CountingStore(InMemoryStore):
    """In-memory store that counts appointment reads."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.appointment_reads = 0

    async def list_appointments(self):
        self.appointment_reads += 1
        return await super().list_appointments()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Config pointing the JSON store into the test directory."""
    path = tmp_path / "config.yaml"
    path.write_text(
        "storage:\n"
        "  backend: json\n"
        f"  path: {tmp_path / 'calendar.json'}\n",
        encoding="utf-8",
    )
    return path


def _invoke(config_file: Path, *args: str):
    return runner.invoke(app, [*args, "--config", str(config_file)])


def _stored(config_file: Path) -> dict:
    return json.loads((config_file.parent / "calendar.json").read_text(encoding="utf-8"))


class TestCli:
    """End-to-end command tests against a JSON file store."""

    def test_add_participant(self, config_file):
        result = _invoke(config_file, "add-participant", "Alice Smith", "alice@example.com")

        assert result.exit_code == 0
        assert "Participant created" in result.output
        assert _stored(config_file)["participants"][0]["name"] == "Alice Smith"

    def test_add_participant_with_invalid_email(self, config_file):
        result = _invoke(config_file, "add-participant", "Alice", "not-an-email")

        assert result.exit_code == 1
        assert "Email is invalid" in result.output

    def test_book_and_block_double_booking(self, config_file):
        _invoke(config_file, "add-participant", "Alice Smith", "alice@example.com")

        booked = _invoke(
            config_file, "book", "Planning", "--date", "2030-06-10", "--start", "09:00", "--with", "alice@example.com"
        )
        clash = _invoke(
            config_file, "book", "Clash", "--date", "2030-06-10", "--start", "09:30", "--with", "Alice Smith"
        )

        assert booked.exit_code == 0
        assert "Appointment booked" in booked.output
        assert clash.exit_code == 1
        assert "scheduling conflicts" in clash.output

        stored = _stored(config_file)["appointments"]
        assert len(stored) == 1
        assert stored[0]["end_time"] == "10:00"

    def test_book_with_unknown_participant(self, config_file):
        result = _invoke(config_file, "book", "Planning", "--date", "2030-06-10", "--start", "09:00", "--with", "nobody")

        assert result.exit_code == 1
        assert "Unknown participant" in result.output

    def test_book_without_participants_fails_validation(self, config_file):
        result = _invoke(config_file, "book", "Planning", "--date", "2030-06-10", "--start", "09:00")

        assert result.exit_code == 1
        assert "At least one participant is required" in result.output

    def test_check_reports_conflicts(self, config_file):
        _invoke(config_file, "add-participant", "Alice Smith", "alice@example.com")
        _invoke(config_file, "book", "Planning", "--date", "2030-06-10", "--start", "09:00", "--with", "alice@example.com")

        busy = _invoke(
            config_file, "check", "--date", "2030-06-10", "--start", "09:30", "--end", "10:30", "--with", "alice@example.com"
        )
        free = _invoke(
            config_file, "check", "--date", "2030-06-10", "--start", "10:00", "--end", "11:00", "--with", "alice@example.com"
        )

        assert busy.exit_code == 1
        assert "1 conflict(s)" in busy.output
        assert free.exit_code == 0
        assert "No conflicts" in free.output

    def test_reschedule_and_cancel(self, config_file):
        _invoke(config_file, "add-participant", "Alice Smith", "alice@example.com")
        _invoke(config_file, "book", "Planning", "--date", "2030-06-10", "--start", "09:00", "--with", "alice@example.com")
        appointment_id = _stored(config_file)["appointments"][0]["id"]

        moved = _invoke(config_file, "reschedule", appointment_id, "--start", "14:00")
        assert moved.exit_code == 0
        assert _stored(config_file)["appointments"][0]["end_time"] == "15:00"

        cancelled = _invoke(config_file, "cancel", appointment_id)
        assert cancelled.exit_code == 0
        assert _stored(config_file)["appointments"] == []

    def test_reschedule_unknown_appointment(self, config_file):
        result = _invoke(config_file, "reschedule", "missing", "--start", "14:00")

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_week_shows_booked_title(self, config_file):
        _invoke(config_file, "add-participant", "Alice Smith", "alice@example.com")
        _invoke(config_file, "book", "Sync", "--date", "2030-06-10", "--start", "09:00", "--with", "alice@example.com")

        result = _invoke(config_file, "week", "--date", "2030-06-12")

        assert result.exit_code == 0
        assert "Week of 10.06.2030" in result.output
        assert "Sync" in result.output

    def test_missing_explicit_config(self, tmp_path: Path):
        result = runner.invoke(app, ["participants", "--config", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_check_rejects_end_before_start(self, config_file):
        """A misordered range is invalid rather than conflict-free."""
        _invoke(config_file, "add-participant", "Alice Smith", "alice@example.com")
        _invoke(config_file, "book", "Planning", "--date", "2030-06-10", "--start", "09:00", "--with", "alice@example.com")

        result = _invoke(
            config_file, "check", "--date", "2030-06-10", "--start", "10:30", "--end", "09:30", "--with", "alice@example.com"
        )

        assert result.exit_code == 1
        assert "End time must be after start time" in result.output
        assert "No conflicts" not in result.output

    def test_add_participant_with_unknown_color(self, config_file):
        _invoke(config_file, "add-participant", "Alice", "alice@example.com", "--color", "#6366f1")

        result = _invoke(config_file, "add-participant", "Bob", "bob@example.com", "--color", "banana")

        assert result.exit_code == 1
        assert "Color must be one of the palette colors" in result.output
        assert [p["name"] for p in _stored(config_file)["participants"]] == ["Alice"]

    def test_participants_reads_appointments_once(self, config_file, monkeypatch):
        store = CountingStore(
            participants=[
                {"id": "p1", "name": "Alice", "email": "alice@example.com"},
                {"id": "p2", "name": "Bob", "email": "bob@example.com"},
            ],
            appointments=[
                {"id": "a1", "title": "Sync", "date": "2030-06-10", "start_time": "09:00", "end_time": "10:00",
                 "participants": ["p1", "p2"]},
                {"id": "a2", "title": "Review", "date": "2030-06-10", "start_time": "11:00", "end_time": "12:00",
                 "participants": ["p1"]},
            ],
        )
        monkeypatch.setattr("appointmentplanner.cli.app.build_store", lambda storage: store)

        result = _invoke(config_file, "participants")

        assert result.exit_code == 0
        assert "Alice" in result.output
        assert "Bob" in result.output
        assert store.appointment_reads == 1
