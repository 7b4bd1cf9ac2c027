"""Stage tracker for a single deployment run.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Strict stage ordering: a stage may only start once every earlier stage passed
- Every transition recorded in the Run Ledger, when one is attached
"""

from __future__ import annotations

import logging
from typing import Any

from sitecast.core.run_ledger import RunLedger
from sitecast.models.ledger import LedgerEntry
from sitecast.models.stages import (
    STAGE_ORDER,
    VALID_TRANSITIONS,
    DeployStage,
    StageState,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class StageTracker:
    """Tracks stage states of one run and records transitions.

    Parameters
    ----------
    run_id:
        The deployment run being tracked.
    ledger:
        Optional Run Ledger to record transitions into.
    """

    def __init__(self, run_id: str, ledger: RunLedger | None = None) -> None:
        self.run_id = run_id
        self._ledger = ledger
        self._states: dict[DeployStage, StageState] = {
            stage: StageState.NOT_STARTED for stage in STAGE_ORDER
        }

    @property
    def states(self) -> dict[DeployStage, StageState]:
        """Snapshot of all stage states."""
        return dict(self._states)

    def state_of(self, stage: DeployStage) -> StageState:
        return self._states[stage]

    def transition(
        self,
        stage: DeployStage,
        target_state: StageState,
        details: dict[str, Any] | None = None,
    ) -> LedgerEntry:
        """Move *stage* to *target_state*, recording it in the ledger."""
        current = self._states[stage]

        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {stage.value} from {current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        if target_state == StageState.RUNNING:
            earlier = STAGE_ORDER[: STAGE_ORDER.index(stage)]
            pending = [s.value for s in earlier if self._states[s] != StageState.PASSED]
            if pending:
                raise InvalidTransitionError(
                    f"Cannot start {stage.value}: earlier stages not passed: "
                    + ", ".join(pending)
                )

        entry = LedgerEntry(
            run_id=self.run_id,
            stage_id=stage.value,
            state_transition=f"{current.value}->{target_state.value}",
            details=details or {},
        )
        if self._ledger is not None:
            entry = self._ledger.append(entry)

        self._states[stage] = target_state
        logger.info(
            "run %s: %s %s", self.run_id, stage.value, entry.state_transition
        )
        return entry

    def start(self, stage: DeployStage) -> LedgerEntry:
        return self.transition(stage, StageState.RUNNING)

    def passed(self, stage: DeployStage, **details: Any) -> LedgerEntry:
        return self.transition(stage, StageState.PASSED, details)

    def failed(self, stage: DeployStage, error: BaseException) -> LedgerEntry:
        return self.transition(
            stage,
            StageState.FAILED,
            {"error": str(error), "error_type": type(error).__name__},
        )

    @property
    def running_stage(self) -> DeployStage | None:
        """The stage currently RUNNING, if any."""
        for stage, state in self._states.items():
            if state == StageState.RUNNING:
                return stage
        return None
