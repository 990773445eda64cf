from abc import ABC, abstractmethod
from typing import List, Sequence

from solders.transaction import VersionedTransaction

from ..domain.models import InflightBundleStatus, LandedBundleStatus, SimulationResult


class BundleRelayPort(ABC):
    """Block-engine relay accepting atomic bundles."""

    @abstractmethod
    async def get_tip_accounts(self) -> List[str]:
        ...

    @abstractmethod
    async def simulate_bundle(self, transactions: Sequence[VersionedTransaction]) -> SimulationResult:
        ...

    @abstractmethod
    async def send_bundle(self, transactions: Sequence[VersionedTransaction]) -> str:
        ...

    @abstractmethod
    async def get_inflight_bundle_statuses(self, bundle_ids: Sequence[str]) -> List[InflightBundleStatus]:
        ...

    @abstractmethod
    async def get_bundle_statuses(self, bundle_ids: Sequence[str]) -> List[LandedBundleStatus]:
        ...

    async def close(self) -> None:
        return None
