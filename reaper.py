import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from backend import RoomRegistry
from constants import EMPTY_ROOM_CLEANUP_SECONDS, IDLE_ROOM_THRESHOLD_SECONDS, IDLE_SWEEP_INTERVAL_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)


class CleanupScheduler:
    """Deletes a room some time after it became empty, if it is still empty then.

    At most one pending task per room; scheduling again replaces it.
    """

    def __init__(self, registry: RoomRegistry, delay_seconds: float = EMPTY_ROOM_CLEANUP_SECONDS):
        self.registry = registry
        self.delay_seconds = delay_seconds
        self.tasks: Dict[str, asyncio.Task] = {}

    def schedule(self, room_id: str) -> asyncio.Task:
        self.cancel(room_id)
        task = asyncio.create_task(self._cleanup_later(room_id))
        self.tasks[room_id] = task
        logger.debug(f"Scheduled cleanup check for room {room_id} in {self.delay_seconds}s")
        return task

    def cancel(self, room_id: str):
        task = self.tasks.pop(room_id, None)
        if task is not None and not task.done():
            task.cancel()
            logger.debug(f"Cancelled pending cleanup for room {room_id}")

    def pending(self, room_id: str) -> bool:
        task = self.tasks.get(room_id)
        return task is not None and not task.done()

    async def _cleanup_later(self, room_id: str):
        try:
            await asyncio.sleep(self.delay_seconds)
        except asyncio.CancelledError:
            return
        if self.tasks.get(room_id) is asyncio.current_task():
            del self.tasks[room_id]
        if self.registry.delete_if_empty(room_id):
            logger.info(f"Room {room_id} cleaned up due to inactivity")
        else:
            logger.debug(f"Room {room_id} not cleaned up: gone or occupied again")

    async def shutdown(self):
        tasks = list(self.tasks.values())
        self.tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class IdleReaper:
    """Periodic safety net that drops empty rooms idle past a threshold."""

    def __init__(self, registry: RoomRegistry,
                 threshold_seconds: float = IDLE_ROOM_THRESHOLD_SECONDS,
                 interval_seconds: float = IDLE_SWEEP_INTERVAL_SECONDS):
        self.registry = registry
        self.threshold = timedelta(seconds=threshold_seconds)
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    def sweep(self, now: Optional[datetime] = None) -> List[str]:
        now = now or self.registry.clock()
        removed = []
        for room in self.registry.rooms():
            if room.is_empty() and now - room.last_activity_at > self.threshold:
                self.registry.delete(room.room_id)
                removed.append(room.room_id)
                logger.info(f"Cleaned up inactive room: {room.room_id}")
        return removed

    async def _run(self):
        logger.info(f"Idle reaper started (interval {self.interval_seconds}s, threshold {self.threshold})")
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    self.sweep()
                except Exception as e:
                    logger.error(f"Error during idle room sweep: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.info("Idle reaper stopped")

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
