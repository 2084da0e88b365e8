"""
REST API client for the appointment and participant collections.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests

from ..domain.exceptions import NotFoundError, TransportError

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class HttpStore:
    """
    Client for a calendar backend exposing plain CRUD endpoints.

    Endpoints:
        GET/POST        {api_url}/appointments
        PUT/DELETE      {api_url}/appointments/{id}
        GET/POST        {api_url}/participants
        PUT/DELETE      {api_url}/participants/{id}

    Responses may wrap their payload as ``{"data": ...}``. Blocking
    ``requests`` calls run in a worker thread so callers can await them.
    """

    def __init__(
        self,
        api_url: str,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the API client.

        Args:
            api_url: Base URL of the calendar backend
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, path: str, payload: Optional[Record] = None) -> Any:
        """
        Perform one API call.

        Raises:
            NotFoundError: On HTTP 404 for a record URL
            TransportError: On any other network or HTTP failure
        """
        url = f"{self.api_url}/{path}"

        try:
            response = self.session.request(
                method,
                url,
                headers=self.headers,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if response.status_code == 404:
            kind, _, record_id = path.partition("/")
            if record_id:
                raise NotFoundError(kind[:-1].capitalize(), record_id)

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        if not response.content:
            return None

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"{method} {url} returned invalid JSON: {e}") from e

        if isinstance(data, dict) and "data" in data:
            return data["data"]
        return data

    async def _call(self, method: str, path: str, payload: Optional[Record] = None) -> Any:
        return await asyncio.to_thread(self._request, method, path, payload)

    async def _delete(self, path: str) -> None:
        try:
            await self._call("DELETE", path)
        except NotFoundError:
            logger.debug("Nothing to delete at %s", path)

    async def list_appointments(self) -> List[Record]:
        return await self._call("GET", "appointments") or []

    async def create_appointment(self, data: Record) -> Record:
        return await self._call("POST", "appointments", data)

    async def update_appointment(self, appointment_id: str, data: Record) -> Record:
        return await self._call("PUT", f"appointments/{appointment_id}", data)

    async def delete_appointment(self, appointment_id: str) -> None:
        await self._delete(f"appointments/{appointment_id}")

    async def list_participants(self) -> List[Record]:
        return await self._call("GET", "participants") or []

    async def create_participant(self, data: Record) -> Record:
        return await self._call("POST", "participants", data)

    async def update_participant(self, participant_id: str, data: Record) -> Record:
        return await self._call("PUT", f"participants/{participant_id}", data)

    async def delete_participant(self, participant_id: str) -> None:
        await self._delete(f"participants/{participant_id}")
