"""Tests for the guest-side poller."""

import asyncio

import httpx
import pytest

from core.exceptions import RoomNotFound
from services.room_poller import RoomPoller


def _state(version, status="RUNNING", **extra):
    body = {
        "changed": True,
        "code": "ABCDEF",
        "state_version": version,
        "status": status,
        "started": status != "IDLE",
        "players": [{"name": "A", "prediction": 100.0, "is_host": True}],
        "samples": [],
    }
    body.update(extra)
    return body


def _unchanged(version):
    return {"changed": False, "code": "ABCDEF", "state_version": version}


class TestRoomPoller:
    def test_yields_only_changes_until_race_ends(self):
        script = [
            _state(3, time_left=60),
            _unchanged(3),
            _state(4, time_left=59),
            _state(9, status="ENDED", time_left=0,
                   winner={"name": "A", "prediction": 100.0, "final_price": 101.0}),
        ]
        seen_versions = []

        def handler(request):
            seen_versions.append(request.url.params.get("since_version"))
            return httpx.Response(200, json=script.pop(0))

        poller = RoomPoller("http://race.test/", "abcdef", interval=0,
                            transport=httpx.MockTransport(handler))

        async def collect():
            return [s async for s in poller.watch()]

        states = asyncio.run(collect())
        assert [s.state_version for s in states] == [3, 4, 9]
        assert states[-1].winner.name == "A"
        assert seen_versions == [None, "3", "3", "4"]
        assert poller.version == 9

    def test_missing_room(self):
        poller = RoomPoller("http://race.test", "NOPE00", interval=0,
                            transport=httpx.MockTransport(lambda r: httpx.Response(404)))

        async def first():
            async with httpx.AsyncClient(transport=poller._transport) as client:
                return await poller.poll_once(client)

        with pytest.raises(RoomNotFound):
            asyncio.run(first())

    def test_server_errors_are_retried(self):
        responses = [httpx.Response(503), _state(2, status="ABORTED", last_error="quotes down")]

        def handler(request):
            item = responses.pop(0)
            return item if isinstance(item, httpx.Response) else httpx.Response(200, json=item)

        poller = RoomPoller("http://race.test", "ABCDEF", interval=0,
                            transport=httpx.MockTransport(handler))

        async def collect():
            return [s async for s in poller.watch()]

        states = asyncio.run(collect())
        assert len(states) == 1
        assert states[0].last_error == "quotes down"
