from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ConfirmationLevel(str, Enum):
    """Commitment a transaction's inclusion has reached, least to most."""

    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"

    @classmethod
    def parse(cls, value: Any) -> Optional["ConfirmationLevel"]:
        """Accept "confirmed", "Confirmed" or solders' TransactionConfirmationStatus."""
        if value is None:
            return None
        if isinstance(value, ConfirmationLevel):
            return value
        # solders enum reprs as "TransactionConfirmationStatus.Confirmed"
        text = str(value).rsplit(".", 1)[-1].strip().lower()
        try:
            return cls(text)
        except ValueError:
            return None


@dataclass(frozen=True)
class SignatureStatus:
    """Status of one signature as reported by the queried node."""

    slot: Optional[int] = None
    confirmations: Optional[int] = None
    err: Any = None
    confirmation_status: Optional[ConfirmationLevel] = None

    @property
    def failed(self) -> bool:
        return self.err is not None


class PollVerdict(Enum):
    """Terminal classification of one polled value."""

    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"
