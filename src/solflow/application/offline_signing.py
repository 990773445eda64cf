"""
offline_signing.py - Durable-nonce offline signing pipeline

Five stages, each a separate method so they can run in separate process
invocations:

    1. fund          airdrop to nonce authority + sender, wait FINALIZED
    2. create_nonce  create + initialize the nonce account, wait FINALIZED
    3. build_unsigned  transfer tx, lifetime = current nonce or recent blockhash,
                       written to the UNSIGNED slot without signatures
    4. sign_offline  wait (the offline gap), sign, write the SIGNED slot
    5. submit        send the SIGNED slot raw, report the signature

Nothing is held in memory between stages: progress lives on the ledger and in
the artifact store. A nonce-mode transaction stays valid until someone
advances the nonce; a blockhash-mode transaction dies once its blockhash ages
out (~150 slots). The wait in stage 4 makes that difference observable.

Failures abort the pipeline. Funding and nonce creation are never rolled back,
and a stale nonce at submission is reported, not refetched and retried.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger
from solders.hash import Hash
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import (
    AdvanceNonceAccountParams,
    TransferParams,
    advance_nonce_account,
    create_nonce_account,
    transfer,
)
from solders.transaction import Transaction

from ..config.identities import SigningIdentities
from ..domain.errors import FetchError, MalformedArtifact, StaleNonceError, ValidationError
from ..domain.models import (
    NONCE_ACCOUNT_LENGTH,
    SYSTEM_CLOCK,
    ArtifactSlot,
    Clock,
    ConfirmationLevel,
    NonceAccountState,
)
from ..ports import ArtifactStore, LedgerPort
from .confirmation_tracker import ConfirmationTracker, gather_or_cancel

LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_AIRDROP_LAMPORTS = LAMPORTS_PER_SOL
DEFAULT_TRANSFER_LAMPORTS = LAMPORTS_PER_SOL // 100  # 0.01 SOL
DEFAULT_WAIT_SECONDS = 120.0

# system program AdvanceNonceAccount, u32 LE instruction tag
_ADVANCE_NONCE_TAG = (4).to_bytes(4, "little")


@dataclass
class UnsignedArtifact:
    """What stage 3 persisted."""

    encoded: str
    lifetime: str  # nonce value or recent blockhash
    use_nonce: bool


@dataclass
class WorkflowReport:
    use_nonce: bool
    wait_seconds: float
    funding_signatures: List[str] = field(default_factory=list)
    nonce_signature: Optional[str] = None
    lifetime: Optional[str] = None
    signed_artifact: Optional[str] = None
    submitted_signature: Optional[str] = None


def decode_transaction(raw: bytes, slot: ArtifactSlot) -> Transaction:
    try:
        return Transaction.from_bytes(raw)
    except Exception as e:
        raise MalformedArtifact(slot.value, f"not a serialized transaction: {e}") from e


def uses_durable_nonce(tx: Transaction) -> bool:
    """True when instruction 0 advances a nonce account, i.e. the lifetime is a nonce value."""
    message = tx.message
    if not message.instructions:
        return False
    first = message.instructions[0]
    program = message.account_keys[first.program_id_index]
    return program == SYSTEM_PROGRAM_ID and bytes(first.data)[:4] == _ADVANCE_NONCE_TAG


class OfflineSigningWorkflow:
    """Runs the fund -> create-nonce -> build -> sign -> submit pipeline."""

    def __init__(
        self,
        ledger: LedgerPort,
        store: ArtifactStore,
        identities: SigningIdentities,
        tracker: Optional[ConfirmationTracker] = None,
        clock: Optional[Clock] = None,
        airdrop_lamports: int = DEFAULT_AIRDROP_LAMPORTS,
        transfer_lamports: int = DEFAULT_TRANSFER_LAMPORTS,
        finality_timeout: Optional[float] = None,
    ):
        self.ledger = ledger
        self.store = store
        self.identities = identities
        self.clock = clock or SYSTEM_CLOCK
        self.tracker = tracker or ConfirmationTracker(ledger, clock=self.clock)
        self.airdrop_lamports = airdrop_lamports
        self.transfer_lamports = transfer_lamports
        self.finality_timeout = finality_timeout

    # =========================================================================
    # NONCE ACCOUNT
    # =========================================================================

    async def fetch_nonce_state(self) -> NonceAccountState:
        """Read the nonce account fresh from the ledger."""
        pubkey = self.identities.nonce_account.pubkey()
        data = await self.ledger.get_account_data(pubkey)
        if data is None:
            raise FetchError("getAccountInfo", f"no account info found for nonce account {pubkey}")
        state = NonceAccountState.from_account_data(data)
        logger.info(f"NONCE_STATE | auth={state.authorized_signer} | nonce={state.nonce_value}")
        return state

    # =========================================================================
    # STAGE 1: FUND
    # =========================================================================

    async def fund(self, accounts: Optional[Sequence[Pubkey]] = None) -> List[str]:
        """Airdrop into each account concurrently, then wait for all at FINALIZED."""
        if accounts is None:
            accounts = [self.identities.nonce_authority.pubkey(), self.identities.sender.pubkey()]
        logger.info(f"OFFLINE_STEP | 1/5 fund | accounts={len(accounts)} | lamports={self.airdrop_lamports}")

        try:
            signatures = await gather_or_cancel(
                *(self.ledger.request_airdrop(pk, self.airdrop_lamports) for pk in accounts)
            )
        except Exception as e:
            logger.error(f"AIRDROP_REQUEST | error | {e}")
            raise

        try:
            await self.tracker.await_all(signatures, ConfirmationLevel.FINALIZED, timeout=self.finality_timeout)
        except Exception as e:
            logger.error(f"AIRDROP_CONFIRM | error | {e}")
            raise

        return list(signatures)

    # =========================================================================
    # STAGE 2: CREATE NONCE
    # =========================================================================

    async def create_nonce(self) -> str:
        """Create and initialize the nonce account; both new account and authority sign."""
        logger.info("OFFLINE_STEP | 2/5 create nonce account")
        authority = self.identities.nonce_authority
        nonce_kp = self.identities.nonce_account

        rent = await self.ledger.get_minimum_balance_for_rent_exemption(NONCE_ACCOUNT_LENGTH)
        latest = await self.ledger.get_latest_blockhash()

        instructions = list(
            create_nonce_account(authority.pubkey(), nonce_kp.pubkey(), authority.pubkey(), rent)
        )
        message = Message.new_with_blockhash(instructions, authority.pubkey(), latest.blockhash)
        tx = Transaction([nonce_kp, authority], message, latest.blockhash)

        try:
            signature = await self.ledger.send_raw_transaction(bytes(tx))
            await self.tracker.await_signature(
                signature,
                ConfirmationLevel.FINALIZED,
                timeout=self.finality_timeout,
            )
        except Exception as e:
            logger.error(f"NONCE_CREATE | error | {e}")
            raise

        logger.info(f"NONCE_CREATED | sig={signature} | account={nonce_kp.pubkey()}")
        return signature

    # =========================================================================
    # STAGE 3: BUILD UNSIGNED
    # =========================================================================

    async def build_unsigned(self, use_nonce: bool = False) -> UnsignedArtifact:
        """Build the transfer and persist it unsigned."""
        logger.info(f"OFFLINE_STEP | 3/5 build unsigned | mode={'nonce' if use_nonce else 'blockhash'}")
        ids = self.identities
        sender = ids.sender.pubkey()

        transfer_ix = transfer(
            TransferParams(from_pubkey=sender, to_pubkey=ids.destination_pubkey, lamports=self.transfer_lamports)
        )

        if use_nonce:
            # Fetched fresh: the value may have moved since the account was created
            state = await self.fetch_nonce_state()
            advance_ix = advance_nonce_account(
                AdvanceNonceAccountParams(
                    nonce_pubkey=ids.nonce_account.pubkey(),
                    authorized_pubkey=ids.nonce_authority.pubkey(),
                )
            )
            instructions = [advance_ix, transfer_ix]
            lifetime: Hash = state.nonce
        else:
            instructions = [transfer_ix]
            lifetime = (await self.ledger.get_latest_blockhash()).blockhash

        message = Message.new_with_blockhash(instructions, sender, lifetime)
        tx = Transaction.new_unsigned(message)
        encoded = self.store.write(ArtifactSlot.UNSIGNED, bytes(tx))

        logger.info(f"TX_WRITTEN | slot=unsigned | lifetime={lifetime}")
        return UnsignedArtifact(encoded=encoded, lifetime=str(lifetime), use_nonce=use_nonce)

    # =========================================================================
    # STAGE 4: SIGN OFFLINE
    # =========================================================================

    async def sign_offline(self, wait_seconds: float = DEFAULT_WAIT_SECONDS, use_nonce: bool = False) -> str:
        """Wait out the offline gap, then sign the UNSIGNED slot into the SIGNED slot."""
        logger.info(f"OFFLINE_STEP | 4/5 sign offline | wait={wait_seconds:.1f}s")
        await self.clock.sleep(wait_seconds)

        tx = decode_transaction(self.store.read(ArtifactSlot.UNSIGNED), ArtifactSlot.UNSIGNED)

        ids = self.identities
        signers = [ids.nonce_authority, ids.sender] if use_nonce else [ids.sender]
        try:
            tx.sign(signers, tx.message.recent_blockhash)
        except Exception as e:
            logger.error(f"TX_SIGN | error | {e}")
            raise ValidationError(f"cannot sign unsigned artifact with {len(signers)} signer(s): {e}") from e

        encoded = self.store.write(ArtifactSlot.SIGNED, bytes(tx))
        logger.info("TX_WRITTEN | slot=signed")
        return encoded

    # =========================================================================
    # STAGE 5: SUBMIT
    # =========================================================================

    async def submit(self, use_nonce: bool = False) -> str:
        """
        Send the SIGNED slot. Confirmation is left to the caller.

        The nonce check runs whenever the artifact advances a nonce, whatever
        `use_nonce` says.
        """
        logger.info("OFFLINE_STEP | 5/5 submit")
        tx = decode_transaction(self.store.read(ArtifactSlot.SIGNED), ArtifactSlot.SIGNED)

        try:
            tx.verify()
        except Exception as e:
            raise MalformedArtifact(ArtifactSlot.SIGNED.value, f"signatures do not verify: {e}") from e

        if use_nonce or uses_durable_nonce(tx):
            expected = tx.message.recent_blockhash
            state = await self.fetch_nonce_state()
            if state.nonce != expected:
                logger.error(f"NONCE_STALE | tx={expected} | account={state.nonce_value}")
                raise StaleNonceError(str(expected), state.nonce_value)

        try:
            signature = await self.ledger.send_raw_transaction(bytes(tx))
        except Exception as e:
            logger.error(f"TX_SEND | error | {e}")
            raise

        logger.info(f"TX_SENT | sig={signature}")
        return signature

    # =========================================================================
    # FULL PIPELINE
    # =========================================================================

    async def run(self, use_nonce: bool = False, wait_seconds: float = DEFAULT_WAIT_SECONDS) -> WorkflowReport:
        logger.info(
            f"OFFLINE_START | mode={'nonce' if use_nonce else 'recent blockhash'} | wait={wait_seconds:.1f}s"
        )
        report = WorkflowReport(use_nonce=use_nonce, wait_seconds=wait_seconds)

        report.funding_signatures = await self.fund()
        report.nonce_signature = await self.create_nonce()
        unsigned = await self.build_unsigned(use_nonce)
        report.lifetime = unsigned.lifetime
        report.signed_artifact = await self.sign_offline(wait_seconds, use_nonce)
        report.submitted_signature = await self.submit(use_nonce)

        logger.info(f"OFFLINE_DONE | sig={report.submitted_signature}")
        return report
