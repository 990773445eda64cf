import asyncio

import pytest
from solders.signature import Signature
from solders.transaction import Transaction

from fakes import FakeClock, FakeLedger, MemoryArtifactStore
from solflow.application import OfflineSigningWorkflow
from solflow.application.offline_signing import DEFAULT_TRANSFER_LAMPORTS, uses_durable_nonce
from solflow.config import SigningIdentities
from solflow.domain.errors import (
    FetchError,
    MalformedArtifact,
    ReportedFailure,
    StaleNonceError,
    ValidationError,
)
from solflow.domain.models import ArtifactSlot, ConfirmationLevel


@pytest.fixture
def env():
    clock = FakeClock()
    ledger = FakeLedger(clock, blockhash_ttl=60.0)
    store = MemoryArtifactStore()
    ids = SigningIdentities.generate()
    workflow = OfflineSigningWorkflow(ledger, store, ids, clock=clock)
    return workflow, ledger, store, ids, clock


async def prepare(workflow):
    await workflow.fund()
    await workflow.create_nonce()


@pytest.mark.anyio
async def test_blockhash_transaction_expires_during_offline_wait(env):
    workflow, ledger, _, ids, clock = env

    with pytest.raises(ReportedFailure) as exc:
        await workflow.run(use_nonce=False, wait_seconds=120)

    assert "Blockhash not found" in str(exc.value)
    assert 120 in clock.sleeps
    assert ledger.balances.get(ids.destination_pubkey, 0) == 0


@pytest.mark.anyio
async def test_nonce_transaction_survives_offline_wait(env):
    workflow, ledger, _, ids, clock = env

    report = await workflow.run(use_nonce=True, wait_seconds=120)

    assert report.submitted_signature
    assert 120 in clock.sleeps
    assert ledger.balances[ids.destination_pubkey] == DEFAULT_TRANSFER_LAMPORTS
    # landing the transfer consumed the nonce
    assert str(ledger.nonces[ids.nonce_account.pubkey()].nonce) != report.lifetime

    status = await workflow.tracker.await_signature(report.submitted_signature, ConfirmationLevel.CONFIRMED)
    assert status.err is None


@pytest.mark.anyio
async def test_blockhash_transaction_within_validity_window_lands(env):
    workflow, ledger, _, ids, _ = env

    report = await workflow.run(use_nonce=False, wait_seconds=10)

    assert report.submitted_signature == str(ledger.sent[-1].signatures[0])
    assert ledger.balances[ids.destination_pubkey] == DEFAULT_TRANSFER_LAMPORTS


@pytest.mark.anyio
async def test_stale_nonce_is_rejected_before_sending(env):
    workflow, ledger, _, ids, _ = env
    await prepare(workflow)
    await workflow.build_unsigned(use_nonce=True)
    await workflow.sign_offline(0, use_nonce=True)
    sent_before = len(ledger.sent)

    ledger.advance_nonce(ids.nonce_account.pubkey())

    with pytest.raises(StaleNonceError):
        await workflow.submit(use_nonce=True)
    assert len(ledger.sent) == sent_before


@pytest.mark.anyio
async def test_nonce_artifact_is_checked_even_without_nonce_flag(env):
    workflow, ledger, store, ids, _ = env
    await prepare(workflow)
    await workflow.build_unsigned(use_nonce=True)
    await workflow.sign_offline(0, use_nonce=True)
    sent_before = len(ledger.sent)

    assert uses_durable_nonce(Transaction.from_bytes(store.read(ArtifactSlot.SIGNED)))
    ledger.advance_nonce(ids.nonce_account.pubkey())

    with pytest.raises(StaleNonceError):
        await workflow.submit()
    assert len(ledger.sent) == sent_before


@pytest.mark.anyio
async def test_blockhash_artifact_is_not_a_nonce_artifact(env):
    workflow, _, store, _, _ = env

    await workflow.build_unsigned(use_nonce=False)

    assert not uses_durable_nonce(Transaction.from_bytes(store.read(ArtifactSlot.UNSIGNED)))


@pytest.mark.anyio
async def test_fund_waits_for_finalized_airdrops(env):
    workflow, ledger, _, ids, _ = env

    signatures = await workflow.fund()

    assert len(signatures) == 2
    assert ledger.balances[ids.sender.pubkey()] == workflow.airdrop_lamports
    assert ledger.balances[ids.nonce_authority.pubkey()] == workflow.airdrop_lamports
    # None -> processed -> confirmed -> finalized for both, polled together
    assert ledger.status_queries == 8


@pytest.mark.anyio
async def test_fund_surfaces_status_fetch_errors(env):
    workflow, ledger, _, _, _ = env
    ledger.status_error = FetchError("getSignatureStatuses", "connection refused")

    with pytest.raises(FetchError):
        await workflow.fund()


@pytest.mark.anyio
async def test_create_nonce_initializes_account_for_authority(env):
    workflow, _, _, ids, _ = env
    await prepare(workflow)

    state = await workflow.fetch_nonce_state()

    assert state.authorized_signer == ids.nonce_authority.pubkey()


@pytest.mark.anyio
async def test_nonce_state_before_creation_is_fetch_error(env):
    workflow, _, _, _, _ = env

    with pytest.raises(FetchError):
        await workflow.fetch_nonce_state()


@pytest.mark.anyio
async def test_unsigned_artifact_has_no_signatures_and_uses_nonce(env):
    workflow, _, store, _, _ = env
    await prepare(workflow)

    artifact = await workflow.build_unsigned(use_nonce=True)
    state = await workflow.fetch_nonce_state()
    tx = Transaction.from_bytes(store.read(ArtifactSlot.UNSIGNED))

    assert artifact.lifetime == state.nonce_value
    assert tx.message.recent_blockhash == state.nonce
    assert all(sig == Signature.default() for sig in tx.signatures)
    assert len(tx.message.instructions) == 2


@pytest.mark.anyio
async def test_signed_artifact_verifies(env):
    workflow, _, store, _, _ = env
    await prepare(workflow)
    await workflow.build_unsigned(use_nonce=True)

    await workflow.sign_offline(0, use_nonce=True)

    Transaction.from_bytes(store.read(ArtifactSlot.SIGNED)).verify()


@pytest.mark.anyio
async def test_signing_nonce_artifact_without_authority_fails(env):
    workflow, _, store, _, _ = env
    await prepare(workflow)
    await workflow.build_unsigned(use_nonce=True)

    with pytest.raises(ValidationError):
        await workflow.sign_offline(0, use_nonce=False)
    assert not store.exists(ArtifactSlot.SIGNED)


@pytest.mark.anyio
async def test_submit_without_signed_artifact(env):
    workflow, _, _, _, _ = env

    with pytest.raises(MalformedArtifact):
        await workflow.submit()


@pytest.mark.anyio
async def test_submit_rejects_garbage_artifact(env):
    workflow, ledger, store, _, _ = env
    store.write(ArtifactSlot.SIGNED, b"\x01\x02\x03")

    with pytest.raises(MalformedArtifact):
        await workflow.submit()
    assert ledger.sent == []


@pytest.mark.anyio
async def test_fund_stops_waiting_on_other_airdrops_after_a_failure(env):
    workflow, ledger, _, ids, _ = env
    ledger.schedule = [ConfirmationLevel.PROCESSED]
    first = ledger.request_airdrop

    async def failing_first_airdrop(pubkey, lamports):
        signature = await first(pubkey, lamports)
        if pubkey == ids.nonce_authority.pubkey():
            ledger.track(signature, err="InsufficientFundsForRent")
        return signature

    ledger.request_airdrop = failing_first_airdrop

    with pytest.raises(ReportedFailure):
        await workflow.fund()

    queries = ledger.status_queries
    for _ in range(20):
        await asyncio.sleep(0)
    assert ledger.status_queries == queries
