"""
Injectable time sources for the runtime loop.
"""

import asyncio
import time


class SystemClock:
    """Wall clock in epoch milliseconds."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class IntervalFrameSource:
    """Frame ticks at a fixed interval; next_frame() returns monotonic ms."""

    def __init__(self, interval_ms: float = 1000.0 / 30.0):
        self.interval_ms = max(1.0, float(interval_ms))

    async def next_frame(self) -> float:
        await asyncio.sleep(self.interval_ms / 1000.0)
        return time.monotonic() * 1000.0
