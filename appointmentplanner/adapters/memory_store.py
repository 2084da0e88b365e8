"""
In-memory store for appointments and participants.
"""

import copy
import uuid
from typing import Any, Dict, Iterable, List, Optional

import pendulum

from ..domain.exceptions import NotFoundError

Record = Dict[str, Any]

APPOINTMENTS = "appointments"
PARTICIPANTS = "participants"

_KIND_NAMES = {APPOINTMENTS: "Appointment", PARTICIPANTS: "Participant"}


def generate_id() -> str:
    """Short opaque record id."""
    return uuid.uuid4().hex[:9]


class InMemoryStore:
    """
    Keeps both collections as lists of plain records.

    Records are copied on the way in and out so callers never share state
    with the store. Subclasses persist the collections by overriding
    ``_load`` and ``_save``.
    """

    def __init__(
        self,
        appointments: Optional[Iterable[Record]] = None,
        participants: Optional[Iterable[Record]] = None,
    ):
        self._collections: Dict[str, List[Record]] = {
            APPOINTMENTS: [dict(record) for record in appointments or []],
            PARTICIPANTS: [dict(record) for record in participants or []],
        }

    def _load(self) -> None:
        """Refresh collections from the backing medium (nothing to do here)."""

    def _save(self) -> None:
        """Write collections to the backing medium (nothing to do here)."""

    def _list(self, kind: str) -> List[Record]:
        self._load()
        return copy.deepcopy(self._collections[kind])

    def _create(self, kind: str, data: Record) -> Record:
        self._load()
        record = {
            "id": generate_id(),
            **copy.deepcopy(data),
            "created_at": pendulum.now("UTC").to_iso8601_string(),
        }
        self._collections[kind].append(record)
        self._save()
        return copy.deepcopy(record)

    def _update(self, kind: str, record_id: str, data: Record) -> Record:
        self._load()
        for index, record in enumerate(self._collections[kind]):
            if record.get("id") == record_id:
                merged = {**record, **copy.deepcopy(data), "id": record_id}
                self._collections[kind][index] = merged
                self._save()
                return copy.deepcopy(merged)
        raise NotFoundError(_KIND_NAMES[kind], record_id)

    def _delete(self, kind: str, record_id: str) -> None:
        self._load()
        remaining = [record for record in self._collections[kind] if record.get("id") != record_id]
        if len(remaining) != len(self._collections[kind]):
            self._collections[kind] = remaining
            self._save()

    async def list_appointments(self) -> List[Record]:
        return self._list(APPOINTMENTS)

    async def create_appointment(self, data: Record) -> Record:
        return self._create(APPOINTMENTS, data)

    async def update_appointment(self, appointment_id: str, data: Record) -> Record:
        return self._update(APPOINTMENTS, appointment_id, data)

    async def delete_appointment(self, appointment_id: str) -> None:
        self._delete(APPOINTMENTS, appointment_id)

    async def list_participants(self) -> List[Record]:
        return self._list(PARTICIPANTS)

    async def create_participant(self, data: Record) -> Record:
        return self._create(PARTICIPANTS, data)

    async def update_participant(self, participant_id: str, data: Record) -> Record:
        return self._update(PARTICIPANTS, participant_id, data)

    async def delete_participant(self, participant_id: str) -> None:
        self._delete(PARTICIPANTS, participant_id)
