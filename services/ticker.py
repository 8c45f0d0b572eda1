"""Fixed-cadence display sampling for a session surface"""

import asyncio
import logging
from collections.abc import Callable

from core.config import get_settings

logger = logging.getLogger(__name__)

TickListener = Callable[[float], None]


class Ticker:
    """
    Sample the remaining time of a store's running slot every interval.

    Displays get the sampled value through ``on_tick``. When
    ``drive_completion`` is set the ticker also calls ``store.tick()``, which
    completes the slot the first time remaining time reaches zero; only one
    surface per session should drive completion.
    """

    def __init__(
        self,
        store,
        interval_ms: int | None = None,
        on_tick: TickListener | None = None,
        drive_completion: bool = True,
    ) -> None:
        self.store = store
        self.interval_ms = interval_ms or get_settings().display_tick_ms
        self.on_tick = on_tick
        self.drive_completion = drive_completion
        self._stopped = asyncio.Event()

    def sample(self) -> float:
        """Take one sample: drive completion if enabled, then report."""
        if self.drive_completion and self.store.tick():
            logger.debug(f"Slot completed, store now at v{self.store.version}")

        remaining = self.store.remaining_seconds()
        if self.on_tick is not None:
            try:
                self.on_tick(remaining)
            except Exception as e:
                logger.error(f"Tick listener failed: {e}", exc_info=True)
        return remaining

    async def run(self) -> None:
        """Sample until ``stop()`` is called or the task is cancelled."""
        self._stopped.clear()
        interval = self.interval_ms / 1000
        logger.debug(f"Ticker running every {self.interval_ms}ms")
        while not self._stopped.is_set():
            self.sample()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        self._stopped.set()
