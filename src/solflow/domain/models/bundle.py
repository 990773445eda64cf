"""
Bundle relay records.

Two status vocabularies exist for a bundle:
- inflight (getInflightBundleStatuses): Invalid | Pending | Landed | Failed
- landed   (getBundleStatuses): per-slot record with confirmation_status and err

Only Landed and Failed are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .status import ConfirmationLevel


class InflightStatus(str, Enum):
    INVALID = "Invalid"
    PENDING = "Pending"
    LANDED = "Landed"
    FAILED = "Failed"
    UNKNOWN = "Unknown"  # relay returned no entry for the id

    @classmethod
    def parse(cls, value: Any) -> "InflightStatus":
        try:
            return cls(str(value))
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class InflightBundleStatus:
    bundle_id: str
    status: InflightStatus
    landed_slot: Optional[int] = None

    @classmethod
    def from_rpc(cls, item: Dict[str, Any]) -> "InflightBundleStatus":
        return cls(
            bundle_id=str(item.get("bundle_id", "")),
            status=InflightStatus.parse(item.get("status")),
            landed_slot=item.get("landed_slot"),
        )


@dataclass(frozen=True)
class LandedBundleStatus:
    bundle_id: str
    transactions: Tuple[str, ...]
    slot: int
    confirmation_status: Optional[ConfirmationLevel]
    err: Any = None

    @classmethod
    def from_rpc(cls, item: Dict[str, Any]) -> "LandedBundleStatus":
        err = item.get("err")
        # Relay reports success as {"Ok": null}
        if isinstance(err, dict) and "Ok" in err:
            err = None
        return cls(
            bundle_id=str(item.get("bundle_id", "")),
            transactions=tuple(item.get("transactions") or ()),
            slot=int(item.get("slot") or 0),
            confirmation_status=ConfirmationLevel.parse(item.get("confirmation_status")),
            err=err,
        )


@dataclass(frozen=True)
class TransactionSimulation:
    err: Any = None
    logs: Tuple[str, ...] = ()
    units_consumed: int = 0


@dataclass(frozen=True)
class SimulationResult:
    """
    Result of simulateBundle.

    summary is exactly the string "succeeded" on success, otherwise
    {"failed": {"error": ..., "tx_signature": ...}}.
    """

    summary: Any
    transaction_results: Tuple[TransactionSimulation, ...] = ()
    slot: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.summary == "succeeded"

    def failure(self) -> Tuple[Any, Optional[str]]:
        """(error, tx_signature) of a failed summary; the raw summary if unrecognised."""
        if isinstance(self.summary, dict) and isinstance(self.summary.get("failed"), dict):
            failed = self.summary["failed"]
            return failed.get("error"), failed.get("tx_signature")
        return self.summary, None

    @classmethod
    def from_rpc(cls, result: Dict[str, Any]) -> "SimulationResult":
        value = result.get("value", result)
        context = result.get("context") or {}
        tx_results = tuple(
            TransactionSimulation(
                err=r.get("err"),
                logs=tuple(r.get("logs") or ()),
                units_consumed=int(r.get("unitsConsumed") or 0),
            )
            for r in (value.get("transactionResults") or [])
        )
        return cls(summary=value.get("summary"), transaction_results=tx_results, slot=context.get("slot"))


class BundleState(Enum):
    """
    Bundle lifecycle.

    BUILT -> SIMULATED -> SUBMITTED -> LANDED | FAILED | TIMED_OUT
    BUILT -> REJECTED when simulation does not succeed.

    TIMED_OUT is a client-side verdict, distinct from a relay-reported FAILED.
    """

    BUILT = "built"
    SIMULATED = "simulated"
    REJECTED = "rejected"
    SUBMITTED = "submitted"
    LANDED = "landed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass
class BundleRun:
    """Everything observed while driving one bundle through its lifecycle."""

    run_id: str
    state: BundleState
    transaction_count: int
    tip_account: Optional[str] = None
    blockhash: Optional[str] = None
    signatures: List[str] = field(default_factory=list)
    simulation: Optional[SimulationResult] = None
    bundle_id: Optional[str] = None
    final_status: Optional[InflightBundleStatus] = None
    error: Optional[str] = None
