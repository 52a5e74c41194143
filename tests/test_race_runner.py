"""Tests for the background race runner."""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from conftest import ScriptedQuoteSource
from core.exceptions import InvalidStateTransition, QuoteFetchError
from core.race_lifecycle import RaceLifecycle
from core.room_manager import RoomManager
from models import RaceStatus
from services.race_runner import RaceRunner


def _status(session_factory, code):
    db = session_factory()
    try:
        return RoomManager.get_room_by_code(db, code).status
    finally:
        db.close()


class TestRaceRunner:
    def test_drives_race_to_the_end(self, session_factory, room):
        code, token = room
        lc = RaceLifecycle(
            code, ScriptedQuoteSource([100, 101, 102, 103]),
            session_factory=session_factory, duration=2,
        )
        runner = RaceRunner(tick_interval=0)

        async def race():
            await lc.start(token)
            task = runner.launch(lc)
            assert runner.is_running(code)
            await asyncio.wait_for(task, timeout=5)

        asyncio.run(race())
        assert _status(session_factory, code) == RaceStatus.ENDED
        assert not runner.is_running(code)

    def test_stops_on_abort(self, session_factory, room):
        code, token = room
        failures = [QuoteFetchError("BTC", "down") for _ in range(3)]
        lc = RaceLifecycle(
            code, ScriptedQuoteSource([100] + failures),
            session_factory=session_factory, duration=60, max_failures=3,
        )
        runner = RaceRunner(tick_interval=0)

        async def race():
            await lc.start(token)
            await asyncio.wait_for(runner.launch(lc), timeout=5)

        asyncio.run(race())
        assert _status(session_factory, code) == RaceStatus.ABORTED

    def test_one_task_per_room(self, session_factory, room):
        code, token = room
        lc = RaceLifecycle(
            code, ScriptedQuoteSource([100] + [100] * 100),
            session_factory=session_factory, duration=60,
        )
        runner = RaceRunner(tick_interval=10)

        async def race():
            await lc.start(token)
            runner.launch(lc)
            with pytest.raises(InvalidStateTransition):
                runner.launch(lc)
            await runner.shutdown()
            assert not runner.is_running(code)

        asyncio.run(race())
        assert _status(session_factory, code) == RaceStatus.RUNNING

    def test_crash_marks_room_aborted(self, session_factory, room):
        code, token = room
        calls = {"n": 0}

        def flaky_factory():
            # start() opens two sessions, the first tick reads then writes
            calls["n"] += 1
            if calls["n"] == 4:
                raise OperationalError("UPDATE rooms", {}, Exception("database is locked"))
            return session_factory()

        lc = RaceLifecycle(
            code, ScriptedQuoteSource([100, 101, 102]),
            session_factory=flaky_factory, duration=60,
        )
        runner = RaceRunner(tick_interval=0)

        async def race():
            await lc.start(token)
            task = runner.launch(lc)
            await asyncio.wait_for(task, timeout=5)
            assert task.exception() is None

        asyncio.run(race())
        assert not runner.is_running(code)
        db = session_factory()
        try:
            crashed = RoomManager.get_room_by_code(db, code)
            assert crashed.status == RaceStatus.ABORTED
            assert "database is locked" in crashed.last_error
        finally:
            db.close()
