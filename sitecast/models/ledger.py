"""Run ledger entry model (append-only, hash-chained).

One entry per stage transition of a deployment run. The ledger is what an
operator consults to find the version handle of a run that finalized but
never released.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntry(BaseModel):
    """A single entry in the append-only Run Ledger."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    stage_id: str
    state_transition: str  # "from_state->to_state", e.g. "not_started->running"
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    details: dict[str, Any] = {}  # stage outputs: version handle, manifest hash, error
    previous_entry_hash: str = ""
    entry_hash: str = ""  # computed on append, seals this entry
