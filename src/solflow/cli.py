"""
cli.py - solflow command line

    solflow keys init [--force]
    solflow offline run [--nonce] [--wait SECONDS] [--confirm]
    solflow offline fund | create-nonce | build [--nonce] | sign [--nonce] [--wait SECONDS] | submit [--nonce] [--confirm]
    solflow bundle [--count N] [--send]

The offline stages can run as separate invocations: the keys directory and the
artifact directory are the only state they share.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger
from solana.rpc.commitment import Commitment

from .adapters import FileArtifactStore, JitoBundleRelay, MemoTipTransactionBuilder, SolanaRpcLedger
from .application import BundleCoordinator, ConfirmationTracker, OfflineSigningWorkflow
from .config import Settings, SigningIdentities, load_keypair, load_settings
from .domain.errors import ConfigurationError, SolflowError
from .domain.models import ConfirmationLevel
from .utils import configure_logging


def _ledger(settings: Settings) -> SolanaRpcLedger:
    return SolanaRpcLedger(
        settings.rpc.url,
        commitment=Commitment(settings.rpc.commitment),
        timeout=settings.rpc.http_timeout,
        skip_preflight=settings.rpc.skip_preflight,
    )


def _workflow(settings: Settings, ledger: SolanaRpcLedger) -> OfflineSigningWorkflow:
    tracker = ConfirmationTracker(
        ledger,
        timeout=settings.offline.confirm_timeout,
        poll_interval=settings.offline.confirm_interval,
    )
    return OfflineSigningWorkflow(
        ledger,
        FileArtifactStore(settings.offline.artifact_dir),
        SigningIdentities.load(settings.offline.keys_dir),
        tracker=tracker,
        airdrop_lamports=settings.offline.airdrop_lamports,
        transfer_lamports=settings.offline.transfer_lamports,
        finality_timeout=settings.offline.finality_timeout,
    )


# =============================================================================
# COMMANDS
# =============================================================================


def cmd_keys_init(settings: Settings, args: argparse.Namespace) -> int:
    keys_dir = settings.offline.keys_dir
    existing = [p for p in ("sender.json", "nonce_account.json") if (Path(keys_dir).expanduser() / p).exists()]
    if existing and not args.force:
        raise ConfigurationError(f"Keys already present in {keys_dir} ({', '.join(existing)}); use --force")

    identities = SigningIdentities.generate()
    identities.save(keys_dir)
    for role, pubkey in identities.describe().items():
        print(f"{role:<16} {pubkey}")
    return 0


async def _offline(settings: Settings, args: argparse.Namespace) -> int:
    ledger = _ledger(settings)
    try:
        workflow = _workflow(settings, ledger)
        stage = args.stage
        wait = settings.offline.wait_seconds if getattr(args, "wait", None) is None else args.wait
        use_nonce = getattr(args, "nonce", False)

        if stage == "run":
            report = await workflow.run(use_nonce=use_nonce, wait_seconds=wait)
            signature = report.submitted_signature
        elif stage == "fund":
            for sig in await workflow.fund():
                print(sig)
            return 0
        elif stage == "create-nonce":
            print(await workflow.create_nonce())
            return 0
        elif stage == "build":
            artifact = await workflow.build_unsigned(use_nonce)
            print(artifact.encoded)
            return 0
        elif stage == "sign":
            print(await workflow.sign_offline(wait, use_nonce))
            return 0
        else:
            signature = await workflow.submit(use_nonce)

        print(f"Transaction Signature: {signature}")
        if getattr(args, "confirm", False):
            await workflow.tracker.await_signature(signature, ConfirmationLevel.CONFIRMED)
            print("Transaction confirmed")
        return 0
    finally:
        await ledger.close()


async def _bundle(settings: Settings, args: argparse.Namespace) -> int:
    payer = load_keypair(settings.payer_keypair_path)
    ledger = _ledger(settings)
    relay = JitoBundleRelay(settings.bundle_endpoint, http_timeout=settings.rpc.http_timeout)
    try:
        coordinator = BundleCoordinator(
            relay,
            MemoTipTransactionBuilder(settings.bundle.tip_lamports),
            ledger,
            poll_timeout=settings.bundle.poll_timeout,
            poll_interval=settings.bundle.poll_interval,
            initial_delay=settings.bundle.initial_delay,
        )
        count = args.count or settings.bundle.transaction_count
        simulate_only = settings.bundle.simulate_only and not args.send
        run = await coordinator.run(payer, count=count, simulate_only=simulate_only)

        print(f"Simulation: {run.simulation.summary if run.simulation else None}")
        if run.bundle_id:
            print(f"Bundle ID: {run.bundle_id}")
            landed = await coordinator.fetch_landed_status(run.bundle_id)
            if landed is not None:
                print(f"Landed in slot {landed.slot} ({landed.confirmation_status})")
        print(f"State: {run.state.value}")
        return 0
    finally:
        await relay.close()
        await ledger.close()


# =============================================================================
# ENTRY POINT
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solflow",
        description="Solana transaction lifecycle: offline durable-nonce signing and Jito bundles",
    )
    parser.add_argument("--config", help="TOML config file (default: ./solflow.toml if present)")
    parser.add_argument("--log-level", help="Override logging.level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    keys = subparsers.add_parser("keys", help="Manage signing identities")
    keys_sub = keys.add_subparsers(dest="keys_command", required=True)
    keys_init = keys_sub.add_parser("init", help="Generate nonce authority, nonce account, sender and destination keys")
    keys_init.add_argument("--force", action="store_true", help="Overwrite existing keypair files")

    offline = subparsers.add_parser("offline", help="Offline signing workflow")
    offline_sub = offline.add_subparsers(dest="stage", required=True)

    run = offline_sub.add_parser("run", help="All five stages in one process")
    run.add_argument("--nonce", action="store_true", help="Use the durable nonce instead of a recent blockhash")
    run.add_argument("--wait", type=float, help="Seconds to wait before signing")
    run.add_argument("--confirm", action="store_true", help="Wait for CONFIRMED after submitting")

    offline_sub.add_parser("fund", help="Airdrop to nonce authority and sender")
    offline_sub.add_parser("create-nonce", help="Create and initialize the nonce account")

    build = offline_sub.add_parser("build", help="Write the unsigned transfer")
    build.add_argument("--nonce", action="store_true")

    sign = offline_sub.add_parser("sign", help="Sign the unsigned transfer")
    sign.add_argument("--nonce", action="store_true")
    sign.add_argument("--wait", type=float, help="Seconds to wait before signing")

    submit = offline_sub.add_parser("submit", help="Send the signed transfer")
    submit.add_argument("--nonce", action="store_true")
    submit.add_argument("--confirm", action="store_true")

    bundle = subparsers.add_parser("bundle", help="Build, simulate and optionally send a Jito bundle")
    bundle.add_argument("--count", type=int, help="Transactions in the bundle")
    bundle.add_argument("--send", action="store_true", help="Send after a successful simulation")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.config)
        configure_logging(args.log_level or settings.logging.level, settings.logging.file)

        if args.command == "keys":
            return cmd_keys_init(settings, args)
        if args.command == "offline":
            return asyncio.run(_offline(settings, args))
        return asyncio.run(_bundle(settings, args))
    except SolflowError as e:
        logger.error(f"FATAL | {type(e).__name__} | {e}")
        print(f"FATAL: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
