from __future__ import annotations

from chronicle.modules.arc.evaluation import (
    StepClassification,
    apply_step_evaluations,
    evaluate_pending_steps,
    score_classification,
    suggested_status_for,
)
from chronicle.modules.arc.models import BranchType
from tests.support.drafts import make_phase


def test_scores_are_clamped_between_floor_and_ceiling() -> None:
    assert score_classification(15, "aligned") == 20
    assert score_classification(-45, "hard_resistance") == -50
    assert score_classification(0, "soft_resistance") == -5
    assert score_classification(0, "HARD_RESISTANCE") == -10
    assert score_classification(7, "shrug") == 7


def test_thresholds_depend_on_flexibility() -> None:
    assert suggested_status_for(-20, "flexible") == "failed"
    assert suggested_status_for(-20, "normal") is None
    assert suggested_status_for(-30, "normal") == "failed"
    assert suggested_status_for(-49, "rigid") is None
    assert suggested_status_for(-50, "rigid") == "deviated"


def test_only_pending_success_steps_are_evaluated() -> None:
    phase = make_phase(["Talk", "Walk"], ["Hide"])
    talk, walk = phase.branches[BranchType.SUCCESS].steps
    walk.status = "succeeded"
    hide = phase.branches[BranchType.FAIL].steps[0]

    out = evaluate_pending_steps(
        phase,
        [
            StepClassification(step_id=talk.id, classification="soft_resistance", summary="stalled"),
            StepClassification(step_id=walk.id, classification="hard_resistance"),
            StepClassification(step_id=hide.id, classification="aligned"),
            StepClassification(step_id="astep_unknown", classification="aligned"),
        ],
    )

    assert [(e.step_id, e.new_score, e.suggested_status_change) for e in out] == [(talk.id, -5, None)]
    assert out[0].summary == "stalled"


def test_crossing_threshold_fails_step_with_fresh_event_order() -> None:
    phase = make_phase(["Talk"], flexibility="flexible")
    phase.status_event_counter = 2
    step = phase.branches[BranchType.SUCCESS].steps[0]
    step.resistance_score = -15

    evaluations = evaluate_pending_steps(phase, [StepClassification(step_id=step.id, classification="soft_resistance")])
    out = apply_step_evaluations(phase, evaluations)

    updated = out.branches[BranchType.SUCCESS].steps[0]
    assert updated.resistance_score == -20
    assert updated.status == "failed"
    assert updated.status_event_order == 3
    assert out.status_event_counter == 3
    assert step.status == "pending"


def test_rigid_steps_deviate_instead_of_failing() -> None:
    phase = make_phase(["Hold"], flexibility="rigid")
    step = phase.branches[BranchType.SUCCESS].steps[0]
    step.resistance_score = -45

    out = apply_step_evaluations(
        phase,
        evaluate_pending_steps(phase, [StepClassification(step_id=step.id, classification="hard_resistance")]),
    )

    assert out.branches[BranchType.SUCCESS].steps[0].status == "deviated"


def test_aligned_scores_are_stored_without_status_change() -> None:
    phase = make_phase(["Talk"])
    step = phase.branches[BranchType.SUCCESS].steps[0]
    out = apply_step_evaluations(
        phase,
        evaluate_pending_steps(phase, [StepClassification(step_id=step.id, classification="aligned")]),
    )
    updated = out.branches[BranchType.SUCCESS].steps[0]
    assert (updated.resistance_score, updated.status) == (10, "pending")
