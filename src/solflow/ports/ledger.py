from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from solders.pubkey import Pubkey

from ..domain.models import BlockhashInfo, SignatureStatus


class LedgerPort(ABC):
    """Remote ledger RPC as seen by the lifecycle coordinators.

    Implementations raise FetchError when a call cannot produce an answer and
    ReportedFailure when the node rejects a submitted transaction.
    """

    @abstractmethod
    async def request_airdrop(self, pubkey: Pubkey, lamports: int) -> str:
        ...

    @abstractmethod
    async def get_signature_statuses(
        self,
        signatures: Sequence[str],
        search_transaction_history: bool = False,
    ) -> List[Optional[SignatureStatus]]:
        """One slot per requested signature, in input order; None if not yet seen."""
        ...

    @abstractmethod
    async def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        ...

    @abstractmethod
    async def get_latest_blockhash(self) -> BlockhashInfo:
        ...

    @abstractmethod
    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        ...

    @abstractmethod
    async def send_raw_transaction(self, raw: bytes) -> str:
        ...

    @abstractmethod
    async def get_balance(self, pubkey: Pubkey) -> int:
        ...

    async def close(self) -> None:
        return None
