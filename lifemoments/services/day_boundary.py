"""Day Boundary Refresher — cancellable timer that fires once per new calendar day.

Invariants:
    - At most one timer task per refresher: start() while running is a no-op
    - stop() cancels and awaits the task; calling it again (or before start) is a no-op
    - on_new_day fires only when today() actually changed since the last firing,
      so an early wake-up (clock adjustment, DST) just sleeps again
    - A failing on_new_day is logged and the timer keeps running

Design Decisions:
    - Sleep until the next midnight of the calendar that defines "today" (local,
      or the reference zone via zone_clock) instead of polling
    - Clock, calendar and sleep are injectable so tests run without waiting
"""

import asyncio
import logging
from contextlib import suppress
from datetime import date, datetime, time, timedelta, timezone
from typing import Awaitable, Callable
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

MIDNIGHT_GRACE_SECONDS: float = 1.0


def zone_clock(timezone_name: str | None = None) -> Callable[[], datetime]:
    """Clock reading the current time in the named IANA zone (local if None)."""
    if not timezone_name:
        return datetime.now
    zone = ZoneInfo(timezone_name)
    return lambda: datetime.now(zone)


def seconds_until_next_midnight(now: datetime) -> float:
    """Seconds from now until the next midnight of now's timezone (local if naive)."""
    aware = now if now.tzinfo is not None else now.astimezone()
    midnight = datetime.combine(
        aware.date() + timedelta(days=1), time.min, tzinfo=aware.tzinfo,
    )
    delta = midnight.astimezone(timezone.utc) - aware.astimezone(timezone.utc)
    return max(delta.total_seconds(), 0.0)


class DayBoundaryRefresher:
    """Calls on_new_day(today) right after each midnight."""

    def __init__(
        self,
        on_new_day: Callable[[date], Awaitable[None]],
        today: Callable[[], date],
        now: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._on_new_day = on_new_day
        self._today = today
        self._now = now
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._last_day: date | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._last_day = self._today()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Day boundary timer started")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.debug("Day boundary timer stopped")

    async def _run(self) -> None:
        while True:
            delay = seconds_until_next_midnight(self._now()) + MIDNIGHT_GRACE_SECONDS
            await self._sleep(delay)
            day = self._today()
            if day == self._last_day:
                continue
            self._last_day = day
            logger.info(f"New day {day.isoformat()}, refreshing live queries")
            try:
                await self._on_new_day(day)
            except Exception:
                logger.exception("Day boundary refresh failed")
