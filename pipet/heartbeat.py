"""
Autosave — the pet's periodic persistence heartbeat.

Every ``interval`` seconds the pet state is written to disk atomically, and
once more on stop. A failed periodic save is logged and retried on the next
beat; the pet keeps living in memory either way.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Union

import structlog

from pipet.config import PipetConfig
from pipet.pet.state import PersistenceError, PetState

logger = structlog.get_logger(__name__)


class Autosave:
    """Background task that saves a PetState on a fixed cadence."""

    def __init__(
        self,
        state: PetState,
        path: Union[str, Path],
        interval: float = 300.0,
    ) -> None:
        self._state = state
        self._path = Path(path)
        self._interval = max(0.01, float(interval))
        self._task: Optional[asyncio.Task[None]] = None
        self._running = False
        self._save_count = 0
        self._failure_count = 0

    async def start(self) -> None:
        if self._running:
            logger.warning("autosave.already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info("autosave.started", interval=self._interval, path=str(self._path))

    async def stop(self) -> bool:
        """Stop the loop and write one final snapshot. Returns whether it was saved."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        saved = self.save_now()
        logger.info("autosave.stopped", saves=self._save_count, failures=self._failure_count)
        return saved

    def save_now(self) -> bool:
        """Save immediately. Returns False (and logs) when the save failed."""
        try:
            self._state.save(self._path)
        except PersistenceError as e:
            self._failure_count += 1
            logger.error("autosave.save_failed", path=str(self._path), error=str(e))
            return False
        self._save_count += 1
        return True

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            self.save_now()

    @property
    def stats(self) -> dict[str, int]:
        return {"saves": self._save_count, "failures": self._failure_count}

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def path(self) -> Path:
        return self._path


def create_autosave(config: PipetConfig, state: PetState) -> Autosave:
    """Build an Autosave for ``state`` at the configured path and cadence."""
    return Autosave(
        state,
        config.pet.state_path,
        interval=config.pet.save_interval_seconds,
    )
