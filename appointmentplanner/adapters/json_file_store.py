"""
Store keeping appointments and participants in a local JSON file.
"""

import json
import logging
from pathlib import Path

from ..domain.exceptions import TransportError
from .memory_store import APPOINTMENTS, PARTICIPANTS, InMemoryStore

logger = logging.getLogger(__name__)


class JsonFileStore(InMemoryStore):
    """
    File-backed store.

    The file holds one mapping with an ``appointments`` and a
    ``participants`` list. It is created with empty collections when
    missing and re-read before every operation, so edits made by another
    process are picked up.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)

    def _load(self) -> None:
        if not self.path.exists():
            logger.info("Creating empty calendar data file at %s", self.path)
            self._save()
            return

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise TransportError(f"Could not read calendar data from {self.path}: {exc}") from exc

        if not isinstance(data, dict):
            raise TransportError(f"Calendar data in {self.path} must be a JSON object")

        self._collections = {
            APPOINTMENTS: list(data.get(APPOINTMENTS) or []),
            PARTICIPANTS: list(data.get(PARTICIPANTS) or []),
        }

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._collections, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            raise TransportError(f"Could not write calendar data to {self.path}: {exc}") from exc
