import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


def new_log_id() -> str:
    """Return a unique identifier for a log entry."""
    return f"log_{uuid.uuid4()}"


class BaseLogEntry(BaseModel):
    """Common metadata for all log entries."""

    log_id: str = Field(default_factory=new_log_id)
    sim_time: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: Optional[str] = None


class TopologyChangePayload(BaseModel):
    i: int
    j: int
    action: str
    old_weight: float
    new_weight: float
    delta_action: float
    topology_version: int


class TopologyChangeLog(BaseLogEntry):
    event_type: str = "topology_change"
    payload: TopologyChangePayload


class LedgerRefusalPayload(BaseModel):
    requested: float
    available: float
    context: str


class LedgerRefusalLog(BaseLogEntry):
    event_type: str = "ledger_refusal"
    payload: LedgerRefusalPayload


class ColoringPayload(BaseModel):
    color_count: int
    class_sizes: List[int]
    topology_version: int


class ColoringLog(BaseLogEntry):
    event_type: str = "coloring"
    payload: ColoringPayload
