from typing import Dict

from ..domain.errors import InvalidTransition
from ..domain.models import BundleRun, BundleState


class BundleStateMachine:
    """Tracks bundle lifecycle with explicit transition rules.

    Landing states are observed from the relay, never forced; TIMED_OUT is the
    client giving up, not a relay verdict.
    """

    def __init__(self):
        self.runs: Dict[str, BundleRun] = {}
        self._transitions = {
            BundleState.BUILT: {BundleState.SIMULATED, BundleState.REJECTED},
            BundleState.SIMULATED: {BundleState.SUBMITTED},
            BundleState.SUBMITTED: {
                BundleState.LANDED,
                BundleState.FAILED,
                BundleState.TIMED_OUT,
            },
        }

    def add_run(self, run: BundleRun):
        """Add bundle run to tracking."""
        self.runs[run.run_id] = run

    def can_transition(self, run_id: str, to_state: BundleState) -> bool:
        run = self.runs.get(run_id)
        if not run:
            return False
        valid_next = self._transitions.get(run.state, set())
        return to_state in valid_next

    def transition(self, run_id: str, to_state: BundleState) -> BundleRun:
        """Execute state transition."""
        if not self.can_transition(run_id, to_state):
            run = self.runs.get(run_id)
            current = run.state if run else "UNKNOWN"
            raise InvalidTransition(f"{current} -> {to_state}")

        run = self.runs[run_id]
        run.state = to_state
        return run

    def is_terminal(self, run_id: str) -> bool:
        run = self.runs.get(run_id)
        return run is not None and not self._transitions.get(run.state)
