"""
Guest-side room poller.

Guests never write race state; they short-poll /api/rooms/{code}/state
with the last state_version they saw and only get a full snapshot back
when something changed.
"""
import asyncio
import logging
from typing import AsyncIterator, Optional

import httpx

from core.exceptions import RoomNotFound
from database import get_settings
from models import RaceStatus
from schemas import RoomStateResponse

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (RaceStatus.ENDED, RaceStatus.ABORTED)


class RoomPoller:
    def __init__(
        self,
        base_url: str,
        code: str,
        interval: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.code = code.strip().upper()
        self.interval = interval if interval is not None else get_settings().poll_interval_seconds
        self.version: Optional[int] = None
        self._transport = transport

    async def poll_once(self, client: httpx.AsyncClient) -> Optional[RoomStateResponse]:
        """One request; returns the snapshot if it changed, else None."""
        params = {}
        if self.version is not None:
            params["since_version"] = self.version

        resp = await client.get(f"{self.base_url}/api/rooms/{self.code}/state", params=params)
        if resp.status_code == 404:
            raise RoomNotFound(self.code)
        resp.raise_for_status()

        state = RoomStateResponse.model_validate(resp.json())
        if not state.changed:
            return None
        self.version = state.state_version
        return state

    async def watch(self, stop_when_finished: bool = True) -> AsyncIterator[RoomStateResponse]:
        """Yield every changed snapshot until the race ends (or forever)."""
        async with httpx.AsyncClient(transport=self._transport) as client:
            while True:
                try:
                    state = await self.poll_once(client)
                except httpx.HTTPError as e:
                    # stale view is acceptable, try again next interval
                    logger.warning(f"Polling room {self.code} failed: {e}")
                    state = None

                if state is not None:
                    yield state
                    if stop_when_finished and state.status in TERMINAL_STATUSES:
                        return

                await asyncio.sleep(self.interval)
