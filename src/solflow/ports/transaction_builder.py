from abc import ABC, abstractmethod
from typing import Optional

from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction


class BundleTransactionBuilder(ABC):
    """Builds one fully-signed member transaction of a bundle."""

    @abstractmethod
    async def build(
        self,
        index: int,
        blockhash: Hash,
        payer: Keypair,
        tip_account: Optional[Pubkey] = None,
    ) -> VersionedTransaction:
        ...
