from .artifact import ArtifactSlot
from .bundle import (
    BundleRun,
    BundleState,
    InflightBundleStatus,
    InflightStatus,
    LandedBundleStatus,
    SimulationResult,
    TransactionSimulation,
)
from .clock import Clock, SYSTEM_CLOCK
from .lifetime import BlockhashInfo
from .nonce import NONCE_ACCOUNT_LENGTH, NonceAccountState
from .status import ConfirmationLevel, PollVerdict, SignatureStatus

__all__ = [
    "ArtifactSlot",
    "BundleRun",
    "BundleState",
    "InflightBundleStatus",
    "InflightStatus",
    "LandedBundleStatus",
    "SimulationResult",
    "TransactionSimulation",
    "Clock",
    "SYSTEM_CLOCK",
    "BlockhashInfo",
    "NONCE_ACCOUNT_LENGTH",
    "NonceAccountState",
    "ConfirmationLevel",
    "PollVerdict",
    "SignatureStatus",
]
