"""
Presentation-only countdown for a verification record.

The countdown tells the user how long the current proof remains usable and
resets the owning flow when it reaches zero. It never authorizes anything:
flows re-check the record's expiry immediately before each protected call.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from app.core.verification import Clock, VerificationRecord, utc_now

logger = logging.getLogger(__name__)

TICK_INTERVAL_SECONDS = 1.0


class Countdown:
    def __init__(
        self,
        record: VerificationRecord,
        on_expire: Callable[[], None],
        clock: Clock = utc_now,
        on_tick: Optional[Callable[[int], None]] = None,
    ):
        self.record = record
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.clock = clock
        self.remaining_seconds = record.remaining_seconds(clock())
        self.stopped = False

    @property
    def expires_at(self) -> datetime:
        return self.record.expires_at

    def tick(self) -> int:
        """Recompute the remaining seconds; fires on_expire once at zero."""
        if self.stopped:
            return self.remaining_seconds

        self.remaining_seconds = self.record.remaining_seconds(self.clock())
        if self.on_tick:
            self.on_tick(self.remaining_seconds)

        if self.remaining_seconds <= 0:
            self.stopped = True
            self.on_expire()
        return self.remaining_seconds

    def stop(self) -> None:
        self.stopped = True

    async def run(self, interval: float = TICK_INTERVAL_SECONDS) -> None:
        """Tick once per interval until expired or stopped."""
        while not self.stopped:
            await asyncio.sleep(interval)
            self.tick()
