import asyncio
from dataclasses import dataclass


@dataclass
class Clock:
    """Explicit time model for poll deadlines and offline gaps.

    All waiting in solflow goes through here, so tests can substitute a
    manual clock and run minutes of simulated waiting instantly.
    """

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)


SYSTEM_CLOCK = Clock()
