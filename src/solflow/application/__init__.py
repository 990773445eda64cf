from .bundle_coordinator import BundleCoordinator, classify_inflight_status, validate_simulation
from .bundle_state_machine import BundleStateMachine
from .confirmation_tracker import ConfirmationTracker, classify_signature_status, gather_or_cancel
from .offline_signing import OfflineSigningWorkflow, UnsignedArtifact, WorkflowReport
from .status_poller import StatusPoller

__all__ = [
    "BundleCoordinator",
    "classify_inflight_status",
    "validate_simulation",
    "BundleStateMachine",
    "ConfirmationTracker",
    "classify_signature_status",
    "gather_or_cancel",
    "OfflineSigningWorkflow",
    "UnsignedArtifact",
    "WorkflowReport",
    "StatusPoller",
]
