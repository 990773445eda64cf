"""
solana_rpc.py - LedgerPort over solana-py's AsyncClient

Error mapping:
- transport failures (SolanaRpcException, httpx errors) and responses without
  a value -> FetchError
- RPCException while sending a transaction (preflight rejection, e.g.
  "Blockhash not found") -> ReportedFailure: the node answered, and the
  answer was no
"""

from __future__ import annotations

from typing import Any, Awaitable, List, Optional, Sequence

import httpx
from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature

from ..domain.errors import FetchError, ReportedFailure
from ..domain.models import BlockhashInfo, ConfirmationLevel, SignatureStatus
from ..ports import LedgerPort

_TRANSPORT_ERRORS = (SolanaRpcException, httpx.HTTPError, OSError)


class SolanaRpcLedger(LedgerPort):
    """Solana JSON-RPC ledger."""

    def __init__(
        self,
        rpc_url: str,
        commitment: Commitment = Confirmed,
        timeout: float = 30.0,
        skip_preflight: bool = False,
    ):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self.timeout = timeout
        self.skip_preflight = skip_preflight
        self._client: Optional[AsyncClient] = None

    async def _get_client(self) -> AsyncClient:
        """Get or create RPC client."""
        if self._client is None:
            self._client = AsyncClient(self.rpc_url, commitment=self.commitment, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close RPC client."""
        if self._client:
            await self._client.close()
            self._client = None

    async def _value(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            resp = await call
        except _TRANSPORT_ERRORS as e:
            logger.error(f"RPC | {operation} | error | {type(e).__name__}: {e}")
            raise FetchError(operation, str(e), cause=e) from e
        except RPCException as e:
            logger.error(f"RPC | {operation} | error | {e}")
            raise FetchError(operation, f"rpc error: {e}", cause=e) from e

        if not hasattr(resp, "value"):
            raise FetchError(operation, f"unexpected response: {resp!r}")
        return resp.value

    async def request_airdrop(self, pubkey: Pubkey, lamports: int) -> str:
        client = await self._get_client()
        signature = await self._value("requestAirdrop", client.request_airdrop(pubkey, lamports))
        logger.info(f"AIRDROP_REQUESTED | to={pubkey} | lamports={lamports} | sig={signature}")
        return str(signature)

    async def get_signature_statuses(
        self,
        signatures: Sequence[str],
        search_transaction_history: bool = False,
    ) -> List[Optional[SignatureStatus]]:
        client = await self._get_client()
        value = await self._value(
            "getSignatureStatuses",
            client.get_signature_statuses(
                [Signature.from_string(s) for s in signatures],
                search_transaction_history=search_transaction_history,
            ),
        )
        return [
            None
            if status is None
            else SignatureStatus(
                slot=status.slot,
                confirmations=status.confirmations,
                err=status.err,
                confirmation_status=ConfirmationLevel.parse(status.confirmation_status),
            )
            for status in (value or [])
        ]

    async def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        client = await self._get_client()
        account = await self._value("getAccountInfo", client.get_account_info(pubkey))
        return None if account is None else bytes(account.data)

    async def get_latest_blockhash(self) -> BlockhashInfo:
        client = await self._get_client()
        value = await self._value("getLatestBlockhash", client.get_latest_blockhash(self.commitment))
        return BlockhashInfo(blockhash=value.blockhash, last_valid_block_height=value.last_valid_block_height)

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        client = await self._get_client()
        return int(
            await self._value(
                "getMinimumBalanceForRentExemption",
                client.get_minimum_balance_for_rent_exemption(size),
            )
        )

    async def send_raw_transaction(self, raw: bytes) -> str:
        client = await self._get_client()
        opts = TxOpts(skip_preflight=self.skip_preflight, preflight_commitment=self.commitment)
        try:
            resp = await client.send_raw_transaction(raw, opts=opts)
        except RPCException as e:
            logger.error(f"TX_SEND | rejected | {e}")
            raise ReportedFailure(f"Transaction rejected: {e}", cause=e) from e
        except _TRANSPORT_ERRORS as e:
            logger.error(f"TX_SEND | error | {type(e).__name__}: {e}")
            raise FetchError("sendTransaction", str(e), cause=e) from e

        if not hasattr(resp, "value"):
            raise FetchError("sendTransaction", "no_signature_returned")
        return str(resp.value)

    async def get_balance(self, pubkey: Pubkey) -> int:
        client = await self._get_client()
        return int(await self._value("getBalance", client.get_balance(pubkey)))
