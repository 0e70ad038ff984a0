"""
Hold Expiry Scheduler

Background task (started in the app lifespan task group) that fires hold
deadlines. It sleeps without holding any lock until the earliest deadline,
the next storage sweep, or a newly armed deadline, whichever comes first.
"""

from datetime import datetime
from typing import Optional

import anyio

from src.platform.clock import Clock, utc_now
from src.platform.logging.loguru_io import Logger
from src.platform.state.deadline_queue import DeadlineQueue
from src.service.reservation.app.service.hold_manager import HoldManager


class HoldExpiryScheduler:
    def __init__(
        self,
        *,
        hold_manager: HoldManager,
        expiry_queue: DeadlineQueue,
        sweep_interval: float = 30.0,
        clock: Clock = utc_now,
    ) -> None:
        self.hold_manager = hold_manager
        self.expiry_queue = expiry_queue
        self.sweep_interval = sweep_interval
        self.clock = clock
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Loop until cancelled."""
        self._running = True
        Logger.base.info(
            f'⏰ [EXPIRY] Scheduler started (sweep every {self.sweep_interval:g}s)'
        )
        last_sweep = anyio.current_time()
        try:
            while True:
                await self._sleep_until_due(self.expiry_queue.next_deadline())
                await self.tick()
                if anyio.current_time() - last_sweep >= self.sweep_interval:
                    await self.sweep()
                    last_sweep = anyio.current_time()
        finally:
            self._running = False
            Logger.base.info('⏰ [EXPIRY] Scheduler stopped')

    async def tick(self) -> int:
        """Expire every hold whose deadline has passed. One failure does not stop the loop."""
        try:
            return await self.hold_manager.expire_due_holds(now=self.clock())
        except Exception as e:
            Logger.base.opt(exception=e).error(f'❌ [EXPIRY] Failed to expire due holds: {e}')
            return 0

    async def sweep(self) -> int:
        try:
            return await self.hold_manager.sweep_expired_holds()
        except Exception as e:
            Logger.base.opt(exception=e).error(f'❌ [EXPIRY] Storage sweep failed: {e}')
            return 0

    async def _sleep_until_due(self, deadline: Optional[datetime]) -> None:
        timeout = self.sweep_interval
        if deadline is not None:
            timeout = min(timeout, max((deadline - self.clock()).total_seconds(), 0.0))
        if timeout <= 0:
            # Yield so a tight run of due holds cannot starve the event loop
            await anyio.sleep(0)
            return
        with anyio.move_on_after(timeout):
            await self.expiry_queue.wait_changed()
