import asyncio
import time
from typing import Callable, Optional

from config.constants import ARTIFACT_AGE_SAFETY_MULTIPLIER
from config.logger import get_logger
from services.artifact_store import LocalArtifactStore
from utils.exceptions import ArtifactError

logger = get_logger(__name__)


class Reaper:
    """Deletes artifacts nobody has touched for longer than the retention window"""

    def __init__(
        self,
        store: LocalArtifactStore,
        max_age: int,
        interval: int,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_age = max_age
        self.interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def threshold(self) -> float:
        return self.max_age * ARTIFACT_AGE_SAFETY_MULTIPLIER

    def run_once(self) -> int:
        """Sweep the artifact root once, returning how many entries were removed"""
        now = self._clock()
        removed = 0

        for entry in self.store.entries():
            try:
                age = now - self.store.last_access(entry)
                if age <= self.threshold:
                    continue
                self.store.delete(entry)
                removed += 1
                logger.info(
                    "Deleted stale artifact", entry=entry.name, age_hours=round(age / 3600, 1)
                )
            except ArtifactError as e:
                logger.error("Failed to reap artifact", entry=entry.name, error=str(e))

        if removed:
            logger.info("Artifact cleanup finished", removed=removed)
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await asyncio.to_thread(self.run_once)

    async def start(self) -> None:
        """Sweep immediately, then keep sweeping every interval in the background"""
        await asyncio.to_thread(self.run_once)
        self._task = asyncio.create_task(self._loop())
        logger.info("Artifact cleanup scheduled", interval_hours=round(self.interval / 3600, 2))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
