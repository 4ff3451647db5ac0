from __future__ import annotations

from typing import Literal

from pydantic import Field

from chronicle.modules.arc.models import ArcPhase, BranchType
from chronicle.utils.wire import WireModel


class ArcToggleRequest(WireModel):
    phase: ArcPhase
    branch: BranchType
    step_id: str = Field(min_length=1)
    target_status: Literal["succeeded", "failed"]
    current_day: int = Field(default=0, ge=0)


class ActiveFlowOut(WireModel):
    source_id: str
    source_branch: BranchType
    target_id: str
    target_branch: BranchType


class ArcPhaseView(WireModel):
    phase: ArcPhase
    progress: int = Field(ge=0, le=100)
    active_flow: ActiveFlowOut | None = None
    fail_trigger: str = ""


class ArcEvaluateRequest(WireModel):
    phase: ArcPhase
    user_message: str
    ai_response: str = ""
    apply: bool = True


class StepEvaluationOut(WireModel):
    step_id: str
    classification: str
    summary: str = ""
    new_score: int
    suggested_status_change: str | None = None


class ArcEvaluateResponse(ArcPhaseView):
    evaluations: list[StepEvaluationOut] = Field(default_factory=list)
