from .artifact_store import ArtifactStore
from .bundle_relay import BundleRelayPort
from .ledger import LedgerPort
from .transaction_builder import BundleTransactionBuilder

__all__ = [
    "ArtifactStore",
    "BundleRelayPort",
    "LedgerPort",
    "BundleTransactionBuilder",
]
