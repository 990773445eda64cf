"""
status_poller.py - Bounded-time polling over one asynchronously updated status

Used by single-signature confirmation and by bundle landing. The loop is the
only retry layer: nothing here re-submits a transaction or bundle.

Fetch errors:
- default: a FetchError from the fetch call aborts the poll immediately.
  An ambiguous transport failure must not be mistaken for "still pending"
  when a later irreversible step depends on the answer.
- tolerate_fetch_errors=True (bundle landing): the FetchError is logged and
  the loop keeps polling until the deadline. Landing is monitoring only,
  so this path gives a weaker guarantee than signature confirmation.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from loguru import logger

from ..domain.errors import FetchError, PollTimeout, ReportedFailure
from ..domain.models import SYSTEM_CLOCK, Clock, PollVerdict

T = TypeVar("T")


class StatusPoller(Generic[T]):
    """Repeatedly fetch and classify a status until terminal or out of time."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SYSTEM_CLOCK

    async def poll(
        self,
        fetch: Callable[[], Awaitable[Optional[T]]],
        classify: Callable[[Optional[T]], PollVerdict],
        *,
        timeout: float,
        interval: float,
        initial_delay: float = 0.0,
        tolerate_fetch_errors: bool = False,
        label: str = "status",
        failure_cause: Optional[Callable[[T], Any]] = None,
    ) -> T:
        """
        Poll until classify() reports a terminal verdict.

        Returns the value classified SUCCESS. Raises ReportedFailure on a
        FAILURE verdict (no further polling), PollTimeout once `timeout`
        seconds have elapsed since the first fetch, FetchError as described
        in the module docstring.

        `initial_delay` is waited out before the deadline clock starts.
        """
        if initial_delay > 0:
            logger.debug(f"POLL_DELAY | {label} | {initial_delay:.1f}s")
            await self.clock.sleep(initial_delay)

        start = self.clock.now()
        attempts = 0
        last_value: Optional[T] = None

        while self.clock.now() - start < timeout:
            attempts += 1
            try:
                value = await fetch()
            except FetchError as e:
                if not tolerate_fetch_errors:
                    logger.error(f"POLL_FETCH_ERROR | {label} | attempt={attempts} | {e}")
                    raise
                logger.warning(f"POLL_FETCH_ERROR | {label} | attempt={attempts} | {e} | continuing")
                await self.clock.sleep(interval)
                continue

            last_value = value
            verdict = classify(value)

            if verdict is PollVerdict.SUCCESS:
                logger.debug(f"POLL_DONE | {label} | attempts={attempts}")
                return value  # type: ignore[return-value]

            if verdict is PollVerdict.FAILURE:
                cause = failure_cause(value) if failure_cause else value
                logger.error(f"POLL_FAILED | {label} | cause={cause}")
                raise ReportedFailure(f"{label} failed: {cause}", cause=cause)

            await self.clock.sleep(interval)

        elapsed = self.clock.now() - start
        logger.warning(f"POLL_TIMEOUT | {label} | elapsed={elapsed:.1f}s | attempts={attempts}")
        raise PollTimeout(label, timeout, attempts, last_value)
