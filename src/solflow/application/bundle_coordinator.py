"""
bundle_coordinator.py - Assemble, simulate, submit and track a Jito bundle

Flow:
    1. pick a tip account at random from the relay's pool
    2. build N signed transactions on one blockhash + payer; only the LAST one
       carries the tip transfer (fixed policy)
    3. simulate; anything but summary == "succeeded" is rejected before send
    4. sendBundle -> bundle id
    5. poll getInflightBundleStatuses: Landed = done, Failed = failure,
       Invalid/Pending keep polling until the deadline

Landing polls absorb per-poll transport errors (see status_poller). A relay
that stops answering therefore ends in PollTimeout, never in a false Failed.
"""

from __future__ import annotations

import random
import uuid
from typing import List, Optional, Sequence

from loguru import logger
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from ..domain.errors import PollTimeout, ReportedFailure, SimulationFailed, ValidationError
from ..domain.models import (
    BundleRun,
    BundleState,
    Clock,
    InflightBundleStatus,
    InflightStatus,
    LandedBundleStatus,
    PollVerdict,
    SimulationResult,
)
from ..ports import BundleRelayPort, BundleTransactionBuilder, LedgerPort
from .bundle_state_machine import BundleStateMachine
from .confirmation_tracker import gather_or_cancel
from .status_poller import StatusPoller

DEFAULT_TRANSACTION_COUNT = 5
POLL_TIMEOUT_SECONDS = 30.0
POLL_INTERVAL_SECONDS = 3.0
WAIT_BEFORE_POLL_SECONDS = 5.0


def classify_inflight_status(status: Optional[InflightBundleStatus]) -> PollVerdict:
    if status is None:
        return PollVerdict.PENDING
    if status.status is InflightStatus.LANDED:
        return PollVerdict.SUCCESS
    if status.status is InflightStatus.FAILED:
        return PollVerdict.FAILURE
    return PollVerdict.PENDING


def validate_simulation(result: SimulationResult) -> None:
    """Raise SimulationFailed unless the summary is exactly "succeeded"."""
    if result.succeeded:
        return
    error, tx_signature = result.failure()
    raise SimulationFailed(error, tx_signature)


class BundleCoordinator:
    """Drives bundles through BUILT -> SIMULATED -> SUBMITTED -> landing verdict."""

    def __init__(
        self,
        relay: BundleRelayPort,
        builder: BundleTransactionBuilder,
        ledger: LedgerPort,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        poll_timeout: float = POLL_TIMEOUT_SECONDS,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        initial_delay: float = WAIT_BEFORE_POLL_SECONDS,
    ):
        self.relay = relay
        self.builder = builder
        self.ledger = ledger
        self.rng = rng or random.Random()
        self.poller: StatusPoller[InflightBundleStatus] = StatusPoller(clock)
        self.poll_timeout = poll_timeout
        self.poll_interval = poll_interval
        self.initial_delay = initial_delay
        self.fsm = BundleStateMachine()

    # =========================================================================
    # TIP ACCOUNT
    # =========================================================================

    @staticmethod
    def select_tip_account(pool: Sequence[str], rng: Optional[random.Random] = None) -> str:
        """Uniform random pick from the relay's tip accounts."""
        if not pool:
            raise ValidationError("No tip accounts found")
        return (rng or random).choice(list(pool))

    async def resolve_tip_account(self) -> str:
        pool = await self.relay.get_tip_accounts()
        tip = self.select_tip_account(pool, self.rng)
        logger.info(f"BUNDLE_TIP | account={tip} | pool={len(pool)}")
        return tip

    # =========================================================================
    # BUILD / SIMULATE / SUBMIT
    # =========================================================================

    async def build_signed_set(
        self,
        count: int,
        blockhash: Hash,
        payer: Keypair,
        tip_account: Pubkey,
    ) -> List[VersionedTransaction]:
        """Build `count` transactions concurrently; the last one pays the tip."""
        if count < 1:
            raise ValidationError(f"bundle needs at least one transaction, got {count}")

        transactions = await gather_or_cancel(
            *(
                self.builder.build(
                    i + 1,
                    blockhash,
                    payer,
                    tip_account if i == count - 1 else None,
                )
                for i in range(count)
            )
        )
        logger.info(f"BUNDLE_BUILT | count={count} | payer={payer.pubkey()} | blockhash={blockhash}")
        return list(transactions)

    async def simulate(self, signed_set: Sequence[VersionedTransaction]) -> SimulationResult:
        result = await self.relay.simulate_bundle(signed_set)
        logger.info(f"BUNDLE_SIMULATED | summary={result.summary}")
        return result

    validate_simulation = staticmethod(validate_simulation)

    async def submit(self, signed_set: Sequence[VersionedTransaction]) -> str:
        try:
            bundle_id = await self.relay.send_bundle(signed_set)
        except Exception as e:
            logger.error(f"BUNDLE_SEND | error | {e}")
            raise
        logger.info(f"BUNDLE_SENT | id={bundle_id}")
        return bundle_id

    # =========================================================================
    # LANDING
    # =========================================================================

    async def _fetch_inflight(self, bundle_id: str) -> Optional[InflightBundleStatus]:
        statuses = await self.relay.get_inflight_bundle_statuses([bundle_id])
        status = statuses[0] if statuses else InflightBundleStatus(bundle_id, InflightStatus.UNKNOWN)
        logger.debug(f"BUNDLE_POLL | id={bundle_id} | status={status.status.value}")
        return status

    async def poll_landing(
        self,
        bundle_id: str,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        initial_delay: Optional[float] = None,
    ) -> InflightBundleStatus:
        """
        Wait for the bundle to land.

        Raises ReportedFailure on status Failed, PollTimeout at the deadline.
        Transport errors on individual polls are logged and polling continues.
        """
        return await self.poller.poll(
            lambda: self._fetch_inflight(bundle_id),
            classify_inflight_status,
            timeout=self.poll_timeout if timeout is None else timeout,
            interval=self.poll_interval if poll_interval is None else poll_interval,
            initial_delay=self.initial_delay if initial_delay is None else initial_delay,
            tolerate_fetch_errors=True,
            label=f"bundle {bundle_id}",
            failure_cause=lambda s: f"Bundle failed with status: {s.status.value}",
        )

    async def fetch_landed_status(self, bundle_id: str) -> Optional[LandedBundleStatus]:
        statuses = await self.relay.get_bundle_statuses([bundle_id])
        return statuses[0] if statuses else None

    # =========================================================================
    # FULL PIPELINE
    # =========================================================================

    async def run(
        self,
        payer: Keypair,
        count: int = DEFAULT_TRANSACTION_COUNT,
        simulate_only: bool = False,
    ) -> BundleRun:
        logger.info(f"BUNDLE_START | count={count} | payer={payer.pubkey()} | simulate_only={simulate_only}")

        tip_account = await self.resolve_tip_account()
        try:
            tip_pubkey = Pubkey.from_string(tip_account)
        except Exception as e:
            raise ValidationError(f"tip account {tip_account!r} is not a valid address") from e

        latest = await self.ledger.get_latest_blockhash()
        signed_set = await self.build_signed_set(count, latest.blockhash, payer, tip_pubkey)

        run = BundleRun(
            run_id=uuid.uuid4().hex,
            state=BundleState.BUILT,
            transaction_count=count,
            tip_account=tip_account,
            blockhash=str(latest.blockhash),
            signatures=[str(tx.signatures[0]) for tx in signed_set],
        )
        self.fsm.add_run(run)

        run.simulation = await self.simulate(signed_set)
        try:
            validate_simulation(run.simulation)
        except SimulationFailed as e:
            self.fsm.transition(run.run_id, BundleState.REJECTED)
            run.error = str(e)
            logger.error(f"BUNDLE_REJECTED | {e}")
            raise
        self.fsm.transition(run.run_id, BundleState.SIMULATED)

        if simulate_only:
            logger.info("BUNDLE_DONE | simulation only, not sending")
            return run

        run.bundle_id = await self.submit(signed_set)
        self.fsm.transition(run.run_id, BundleState.SUBMITTED)

        try:
            run.final_status = await self.poll_landing(run.bundle_id)
        except ReportedFailure as e:
            self.fsm.transition(run.run_id, BundleState.FAILED)
            run.error = str(e)
            raise
        except PollTimeout as e:
            self.fsm.transition(run.run_id, BundleState.TIMED_OUT)
            run.error = str(e)
            raise

        self.fsm.transition(run.run_id, BundleState.LANDED)
        logger.info(f"BUNDLE_LANDED | id={run.bundle_id} | slot={run.final_status.landed_slot}")
        return run
