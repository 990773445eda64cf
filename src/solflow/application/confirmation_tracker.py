"""
confirmation_tracker.py - Wait for one signature to reach a commitment level

Classification per poll:
    not seen by the node      -> pending
    err present               -> failure (even if a level is also reported)
    level == desired          -> success
    level == finalized        -> success (finalized satisfies any weaker level)
    anything else             -> pending

Funding and nonce-account creation use desired=FINALIZED: a later stage spends
that state, and anything weaker may still be rolled back.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, List, Optional, Sequence

from loguru import logger

from ..domain.errors import FetchError
from ..domain.models import Clock, ConfirmationLevel, PollVerdict, SignatureStatus
from ..ports import LedgerPort
from .status_poller import StatusPoller

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0


async def gather_or_cancel(*aws: Awaitable[Any]) -> List[Any]:
    """
    asyncio.gather, except the first failure cancels the siblings and waits
    for them to unwind before it propagates.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


def classify_signature_status(
    status: Optional[SignatureStatus],
    desired: ConfirmationLevel,
) -> PollVerdict:
    if status is None:
        return PollVerdict.PENDING
    if status.failed:
        return PollVerdict.FAILURE
    level = status.confirmation_status
    if level is not None and (level == desired or level == ConfirmationLevel.FINALIZED):
        return PollVerdict.SUCCESS
    return PollVerdict.PENDING


class ConfirmationTracker:
    """Applies StatusPoller to transaction signatures."""

    def __init__(
        self,
        ledger: LedgerPort,
        clock: Optional[Clock] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ):
        self.ledger = ledger
        self.poller: StatusPoller[SignatureStatus] = StatusPoller(clock)
        self.timeout = timeout
        self.poll_interval = poll_interval

    async def _fetch_one(self, signature: str, search_history: bool) -> Optional[SignatureStatus]:
        statuses = await self.ledger.get_signature_statuses(
            [signature],
            search_transaction_history=search_history,
        )
        if not statuses:
            raise FetchError("getSignatureStatuses", f"empty response for {signature}")
        return statuses[0]

    async def await_signature(
        self,
        signature: str,
        desired: ConfirmationLevel = ConfirmationLevel.CONFIRMED,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        search_history: bool = False,
    ) -> SignatureStatus:
        """
        Block until `signature` reaches `desired` (or finalized).

        Raises:
            ReportedFailure: the status carries an err (cause = err)
            PollTimeout: no terminal status within timeout
            FetchError: the status query itself failed (not retried)
        """
        desired = ConfirmationLevel.parse(desired) or ConfirmationLevel.CONFIRMED
        timeout = self.timeout if timeout is None else timeout
        poll_interval = self.poll_interval if poll_interval is None else poll_interval

        logger.debug(f"CONFIRM_WAIT | sig={signature} | desired={desired.value} | timeout={timeout}s")
        status = await self.poller.poll(
            lambda: self._fetch_one(signature, search_history),
            lambda s: classify_signature_status(s, desired),
            timeout=timeout,
            interval=poll_interval,
            label=f"transaction {signature}",
            failure_cause=lambda s: s.err,
        )
        logger.info(f"TX_{(status.confirmation_status or desired).value.upper()} | sig={signature}")
        return status

    async def await_all(
        self,
        signatures: Sequence[str],
        desired: ConfirmationLevel = ConfirmationLevel.CONFIRMED,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
    ) -> List[SignatureStatus]:
        """Join on every signature; the first failure cancels the rest and propagates."""
        return await gather_or_cancel(
            *(self.await_signature(sig, desired, timeout, poll_interval) for sig in signatures)
        )
