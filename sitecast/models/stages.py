"""Deployment stage models: deterministic, strictly sequential transitions."""

from __future__ import annotations

from enum import Enum


class DeployStage(str, Enum):
    """Pipeline stages in execution order."""

    FETCH = "fetch"
    EXTRACT = "extract"
    BUILD = "build"
    UPLOAD = "upload"
    FINALIZE = "finalize"
    RELEASE = "release"


STAGE_ORDER: list[DeployStage] = list(DeployStage)


class StageState(str, Enum):
    """Strict state model for each pipeline stage."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    FAILED = "failed"
    PASSED = "passed"


# A failed run is never resumed stage-by-stage; the caller starts over.
VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.NOT_STARTED: {StageState.RUNNING},
    StageState.RUNNING: {StageState.PASSED, StageState.FAILED},
    StageState.FAILED: set(),
    StageState.PASSED: set(),
}
