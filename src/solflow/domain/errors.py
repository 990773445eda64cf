"""
errors.py - Failure taxonomy for transaction lifecycle coordination

The key distinction: "the ledger told us it failed" vs "we could not ask" vs
"we ran out of time asking". Callers react differently to each, so they are
never collapsed into one exception type.

    FetchError          collaborator call itself failed (transport/protocol)
    ReportedFailure     collaborator reports the tracked action failed
    PollTimeout         deadline elapsed without a terminal answer
    ValidationError     local precondition violated (simulation, artifacts, nonce)
    ConfigurationError  bad or missing input, raised before any remote call
"""

from __future__ import annotations

from typing import Any, Optional


class SolflowError(Exception):
    """Base class for every error raised by solflow."""


class ConfigurationError(SolflowError):
    """Missing or invalid required input."""


class FetchError(SolflowError):
    """A ledger or relay call failed before producing an answer."""

    def __init__(self, operation: str, detail: str, cause: Optional[BaseException] = None):
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail
        self.cause = cause


class ReportedFailure(SolflowError):
    """The remote side explicitly reported that the tracked action failed."""

    def __init__(self, message: str, cause: Any = None):
        super().__init__(message)
        self.cause = cause


class PollTimeout(SolflowError):
    """No terminal status was observed before the deadline."""

    def __init__(self, label: str, timeout: float, attempts: int = 0, last_value: Any = None):
        super().__init__(f"{label} not terminal after {timeout:.1f}s ({attempts} polls)")
        self.label = label
        self.timeout = timeout
        self.attempts = attempts
        self.last_value = last_value


class ValidationError(SolflowError):
    """A local precondition on data or state does not hold."""


class SimulationFailed(ValidationError):
    """Bundle simulation summary was not "succeeded"."""

    def __init__(self, error: Any, tx_signature: Optional[str]):
        super().__init__(f"Simulation Failed: {_failure_text(error)} (tx={tx_signature})")
        self.error = error
        self.tx_signature = tx_signature


class StaleNonceError(ValidationError):
    """The transaction's nonce no longer matches the nonce account."""

    def __init__(self, expected: str, current: str):
        super().__init__(f"stale nonce: transaction uses {expected}, account holds {current}")
        self.expected = expected
        self.current = current


class MalformedArtifact(ValidationError):
    """A persisted transaction artifact is missing or cannot be decoded."""

    def __init__(self, slot: str, detail: str):
        super().__init__(f"artifact '{slot}': {detail}")
        self.slot = slot
        self.detail = detail


class InvalidTransition(SolflowError):
    """Raised when an invalid bundle state transition is attempted."""


def _failure_text(error: Any) -> str:
    # Relay encodes failures as {"TransactionFailure": [<bytes>, "<message>"]}
    if isinstance(error, dict):
        failure = error.get("TransactionFailure")
        if isinstance(failure, (list, tuple)) and len(failure) > 1:
            return str(failure[1])
    return str(error)
