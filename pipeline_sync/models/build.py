"""CI build and monitor state data models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class BuildState(str, Enum):
    """State of a CI build."""

    QUEUED = "queued"
    BUILDING = "building"
    SUCCESS = "success"
    FAILED = "failed"
    UNSTABLE = "unstable"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self not in (BuildState.QUEUED, BuildState.BUILDING)


class StageResult(BaseModel):
    """Result of a single pipeline stage."""

    name: str
    status: str  # CI-reported status, e.g. 'SUCCESS', 'FAILED', 'IN_PROGRESS'
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status.upper() == "SUCCESS"


class BuildRecord(BaseModel):
    """Build tracked for the lifetime of one monitor run."""

    job_name: str
    build_number: int
    build_url: str = ""
    state: BuildState
    duration_ms: int = 0
    stages: List[StageResult] = []


class CITestReport(BaseModel):
    """Aggregate test counts reported by CI."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0


class MonitorPhase(str, Enum):
    """Phase of a build monitor run."""

    STARTING = "starting"
    POLLING = "polling"
    REPORTING = "reporting"
    DONE = "done"


class MonitorInfo(BaseModel):
    """Status snapshot of a build monitor run."""

    tracking_name: str
    job_name: str
    phase: MonitorPhase = MonitorPhase.STARTING
    build_number: Optional[int] = None
    build_state: Optional[BuildState] = None
    started_at: datetime
    updated_at: datetime
    error: Optional[str] = None
