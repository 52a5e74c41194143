"""
Race runner: one background asyncio task per running room.

The task is the single writer for its room. It calls RaceLifecycle.tick()
every tick interval until the lifecycle reports ENDED or ABORTED.
"""
import asyncio
import logging
from typing import Dict, Optional

from core.exceptions import InvalidStateTransition, RaceAborted
from core.race_lifecycle import RaceLifecycle
from database import get_settings

logger = logging.getLogger(__name__)


class RaceRunner:
    def __init__(self, tick_interval: Optional[float] = None):
        if tick_interval is None:
            tick_interval = get_settings().tick_interval_seconds
        self.tick_interval = tick_interval
        self._tasks: Dict[str, asyncio.Task] = {}

    def is_running(self, code: str) -> bool:
        task = self._tasks.get(code)
        return task is not None and not task.done()

    def launch(self, lifecycle: RaceLifecycle) -> asyncio.Task:
        """Start ticking `lifecycle` on the running event loop."""
        if self.is_running(lifecycle.code):
            raise InvalidStateTransition(
                f"Room {lifecycle.code} already has a race task"
            )

        task = asyncio.create_task(self._drive(lifecycle), name=f"race-{lifecycle.code}")
        self._tasks[lifecycle.code] = task
        task.add_done_callback(lambda t, code=lifecycle.code: self._forget(code, t))
        logger.info(f"Race task launched for room {lifecycle.code}")
        return task

    async def _drive(self, lifecycle: RaceLifecycle) -> None:
        try:
            while not lifecycle.finished:
                await asyncio.sleep(self.tick_interval)
                await lifecycle.tick()
        except RaceAborted as e:
            logger.error(str(e))
        except asyncio.CancelledError:
            logger.info(f"Race task for room {lifecycle.code} cancelled")
            raise
        except Exception as e:
            # this task is the only writer for the room
            logger.error(f"Race task for room {lifecycle.code} crashed: {e}", exc_info=True)
            await self._abort(lifecycle, f"Race task crashed: {e}")

    async def _abort(self, lifecycle: RaceLifecycle, reason: str) -> None:
        try:
            await lifecycle.abort(reason)
        except Exception as e:
            logger.error(
                f"Could not mark room {lifecycle.code} as aborted: {e}", exc_info=True
            )

    def _forget(self, code: str, task: asyncio.Task) -> None:
        if self._tasks.get(code) is task:
            self._tasks.pop(code, None)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Race task for room {code} exited with {task.exception()!r}")

    async def shutdown(self) -> None:
        """Cancel every race task (application shutdown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
