"""Time source abstraction so scheduling and expiry can be driven in tests"""

import asyncio
from datetime import datetime
from typing import Protocol, runtime_checkable

from .models import utc_now


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall clock in UTC"""

    def now(self) -> datetime:
        return utc_now()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
