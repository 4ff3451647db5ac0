from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException

from chronicle.modules.arc.engine import (
    ArcEditError,
    branch_trigger_text,
    compute_active_flow,
    phase_progress,
    toggle_step_status,
)
from chronicle.modules.arc.evaluation import apply_step_evaluations
from chronicle.modules.arc.models import ArcPhase, BranchType
from chronicle.modules.arc.schemas import (
    ActiveFlowOut,
    ArcEvaluateRequest,
    ArcEvaluateResponse,
    ArcPhaseView,
    ArcToggleRequest,
    StepEvaluationOut,
)
from chronicle.modules.llm_boundary.errors import LLMUnavailableError
from chronicle.modules.llm_boundary.service import get_extraction_boundary

router = APIRouter(prefix="/api/v1/arc", tags=["arc"])


def _view(phase: ArcPhase) -> dict:
    flow = compute_active_flow(phase)
    return {
        "phase": phase,
        "progress": phase_progress(phase),
        "active_flow": ActiveFlowOut(**asdict(flow)) if flow is not None else None,
        "fail_trigger": branch_trigger_text(phase, BranchType.FAIL),
    }


@router.post("/toggle", response_model=ArcPhaseView, response_model_by_alias=True)
def toggle_arc_step(payload: ArcToggleRequest):
    try:
        phase = toggle_step_status(
            payload.phase,
            payload.branch,
            payload.step_id,
            payload.target_status,
            current_day=payload.current_day,
        )
    except ArcEditError as exc:
        raise HTTPException(status_code=422, detail={"code": exc.code, "message": str(exc)}) from exc
    return ArcPhaseView(**_view(phase))


@router.post("/evaluate", response_model=ArcEvaluateResponse, response_model_by_alias=True)
async def evaluate_arc(payload: ArcEvaluateRequest):
    try:
        evaluations = await get_extraction_boundary().evaluate_arc_progress(
            phase=payload.phase,
            user_message=payload.user_message,
            ai_response=payload.ai_response,
        )
    except LLMUnavailableError as exc:
        raise HTTPException(
            status_code=503,
            detail={"code": "ARC_EVALUATION_UNAVAILABLE", "message": str(exc)},
        ) from exc
    phase = apply_step_evaluations(payload.phase, evaluations) if payload.apply else payload.phase
    return ArcEvaluateResponse(
        **_view(phase),
        evaluations=[StepEvaluationOut(**asdict(item)) for item in evaluations],
    )
