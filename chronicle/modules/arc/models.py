from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import Field

from chronicle.modules.progress.models import Flexibility
from chronicle.utils.ids import new_id
from chronicle.utils.time import utc_now_aware
from chronicle.utils.wire import WireModel

ArcMode = Literal["simple", "advanced"]
ArcStepStatus = Literal["pending", "succeeded", "failed", "deviated"]

STATUS_PENDING = "pending"
STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"
STATUS_DEVIATED = "deviated"
RESOLVED_FAILURE_STATUSES = frozenset({STATUS_FAILED, STATUS_DEVIATED})


class BranchType(str, Enum):
    FAIL = "fail"
    SUCCESS = "success"


class ArcStep(WireModel):
    id: str = Field(default_factory=lambda: new_id("astep"))
    description: str = ""
    status: ArcStepStatus = STATUS_PENDING
    status_event_order: int = 0
    completed_at: datetime | None = None
    retry_of: str | None = None
    retry_count: int = 0
    failed_on_day: int | None = None
    permanently_failed: bool = False
    resistance_score: int = 0


class ArcBranch(WireModel):
    id: str = Field(default_factory=lambda: new_id("branch"))
    type: BranchType
    trigger_description: str = ""
    steps: list[ArcStep] = Field(default_factory=list)


class ArcPhase(WireModel):
    id: str = Field(default_factory=lambda: new_id("phase"))
    title: str = ""
    desired_outcome: str = ""
    flexibility: Flexibility = "normal"
    mode: ArcMode = "simple"
    branches: dict[BranchType, ArcBranch] = Field(default_factory=dict)
    status_event_counter: int = 0
    created_at: datetime = Field(default_factory=utc_now_aware)
    updated_at: datetime = Field(default_factory=utc_now_aware)
