from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from chronicle.modules.arc.models import (
    STATUS_DEVIATED,
    STATUS_FAILED,
    STATUS_PENDING,
    ArcPhase,
    BranchType,
)
from chronicle.utils.time import utc_now_aware

SCORE_DELTAS: dict[str, int] = {
    "aligned": 10,
    "soft_resistance": -5,
    "hard_resistance": -10,
}
SCORE_FLOOR = -50
SCORE_CEILING = 20


@dataclass(frozen=True, slots=True)
class _Threshold:
    score: int
    status: str


THRESHOLDS: dict[str, _Threshold] = {
    "rigid": _Threshold(score=-50, status=STATUS_DEVIATED),
    "normal": _Threshold(score=-30, status=STATUS_FAILED),
    "flexible": _Threshold(score=-20, status=STATUS_FAILED),
}


@dataclass(frozen=True, slots=True)
class StepClassification:
    step_id: str
    classification: str
    summary: str = ""


@dataclass(frozen=True, slots=True)
class StepEvaluation:
    step_id: str
    classification: str
    summary: str
    new_score: int
    suggested_status_change: str | None


def score_classification(current_score: int, classification: str) -> int:
    delta = SCORE_DELTAS.get(str(classification or "").strip().lower(), 0)
    return max(SCORE_FLOOR, min(SCORE_CEILING, int(current_score or 0) + delta))


def suggested_status_for(score: int, flexibility: str) -> str | None:
    threshold = THRESHOLDS.get(flexibility, THRESHOLDS["normal"])
    return threshold.status if score <= threshold.score else None


def evaluate_pending_steps(
    phase: ArcPhase,
    classifications: Iterable[StepClassification],
) -> list[StepEvaluation]:
    success = phase.branches.get(BranchType.SUCCESS)
    pending = {step.id: step for step in (success.steps if success is not None else []) if step.status == STATUS_PENDING}

    out: list[StepEvaluation] = []
    for item in classifications:
        step = pending.get(item.step_id)
        if step is None:
            continue
        new_score = score_classification(step.resistance_score, item.classification)
        out.append(
            StepEvaluation(
                step_id=step.id,
                classification=str(item.classification or ""),
                summary=str(item.summary or ""),
                new_score=new_score,
                suggested_status_change=suggested_status_for(new_score, phase.flexibility),
            )
        )
    return out


def apply_step_evaluations(phase: ArcPhase, evaluations: Iterable[StepEvaluation]) -> ArcPhase:
    """Store evaluated scores on success-branch steps and apply suggested failures."""
    out = phase.model_copy(deep=True)
    success = out.branches.get(BranchType.SUCCESS)
    if success is None:
        return out
    by_id = {step.id: step for step in success.steps}
    changed = False
    for evaluation in evaluations:
        step = by_id.get(evaluation.step_id)
        if step is None or step.status != STATUS_PENDING:
            continue
        step.resistance_score = int(evaluation.new_score)
        changed = True
        if evaluation.suggested_status_change in {STATUS_FAILED, STATUS_DEVIATED}:
            out.status_event_counter = int(out.status_event_counter or 0) + 1
            step.status = evaluation.suggested_status_change  # type: ignore[assignment]
            step.status_event_order = out.status_event_counter
            step.completed_at = None
    if changed:
        out.updated_at = utc_now_aware()
    return out
