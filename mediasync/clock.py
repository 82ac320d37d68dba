"""Time source used for timestamps, eligibility windows and retry backoff."""

import asyncio
import time
from datetime import date

MS_PER_SECOND = 1000
MS_PER_DAY = 24 * 60 * 60 * MS_PER_SECOND


class Clock:
    """Wall-clock time source.

    Timestamps throughout mediasync are integer epoch milliseconds.
    Subclasses can override every method, which is how tests drive
    eligibility windows and backoff without real waiting.
    """

    def now_ms(self) -> int:
        return int(time.time() * MS_PER_SECOND)

    def today(self) -> date:
        return date.today()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def days_to_ms(days: float) -> int:
    """Convert a number of days to milliseconds."""
    return int(days * MS_PER_DAY)
