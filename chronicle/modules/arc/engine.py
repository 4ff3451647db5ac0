from __future__ import annotations

from dataclasses import dataclass

from chronicle.modules.arc.models import (
    RESOLVED_FAILURE_STATUSES,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SUCCEEDED,
    ArcBranch,
    ArcMode,
    ArcPhase,
    ArcStep,
    BranchType,
)
from chronicle.modules.progress.engine import percent_complete
from chronicle.modules.progress.models import StoryGoal
from chronicle.utils.time import utc_now_aware

SIMPLE_FAIL_TRIGGER_TEXT = "AI will handle dynamically"
TOGGLE_TARGETS = (STATUS_SUCCEEDED, STATUS_FAILED)

# None means unlimited retries.
_MAX_RETRIES: dict[str, int | None] = {
    "rigid": None,
    "normal": 4,
    "flexible": 2,
}


class ArcEditError(ValueError):
    def __init__(self, message: str, *, code: str = "ARC_EDIT_REJECTED"):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True, slots=True)
class ActiveFlow:
    source_id: str
    source_branch: BranchType
    target_id: str
    target_branch: BranchType


def new_arc_phase(
    title: str = "",
    *,
    desired_outcome: str = "",
    flexibility: str = "normal",
    mode: ArcMode = "simple",
) -> ArcPhase:
    return ArcPhase(
        title=str(title or ""),
        desired_outcome=str(desired_outcome or ""),
        flexibility=flexibility,  # type: ignore[arg-type]
        mode=mode,
    )


def ensure_branch(phase: ArcPhase, branch_type: BranchType) -> ArcBranch:
    """Return the phase's branch of ``branch_type``, attaching an empty one if missing."""
    branch_type = BranchType(branch_type)
    branch = phase.branches.get(branch_type)
    if branch is None:
        branch = ArcBranch(type=branch_type)
        phase.branches[branch_type] = branch
    return branch


def branch_accepts_edits(phase: ArcPhase, branch_type: BranchType) -> bool:
    return not (phase.mode == "simple" and BranchType(branch_type) is BranchType.FAIL)


def allowed_statuses(phase: ArcPhase, branch_type: BranchType) -> tuple[str, ...]:
    if not branch_accepts_edits(phase, branch_type):
        return ()
    if BranchType(branch_type) is BranchType.SUCCESS and phase.flexibility == "rigid":
        return (STATUS_SUCCEEDED,)
    return TOGGLE_TARGETS


def branch_trigger_text(phase: ArcPhase, branch_type: BranchType) -> str:
    if not branch_accepts_edits(phase, branch_type):
        return SIMPLE_FAIL_TRIGGER_TEXT
    branch = phase.branches.get(BranchType(branch_type))
    return branch.trigger_description if branch is not None else ""


def _require_editable(phase: ArcPhase, branch_type: BranchType) -> None:
    if not branch_accepts_edits(phase, branch_type):
        raise ArcEditError(f"{BranchType(branch_type).value} branch is read-only in simple mode")


def _find_step(branch: ArcBranch, step_id: str) -> ArcStep:
    for step in branch.steps:
        if step.id == step_id:
            return step
    raise ArcEditError(f"unknown arc step: {step_id}", code="ARC_STEP_NOT_FOUND")


def _next_event_order(phase: ArcPhase) -> int:
    phase.status_event_counter = int(phase.status_event_counter or 0) + 1
    return phase.status_event_counter


def set_mode(phase: ArcPhase, mode: ArcMode) -> ArcPhase:
    out = phase.model_copy(deep=True)
    out.mode = mode
    if mode == "advanced":
        for branch_type in (BranchType.FAIL, BranchType.SUCCESS):
            branch = ensure_branch(out, branch_type)
            if not branch.steps:
                branch.steps.append(ArcStep())
    out.updated_at = utc_now_aware()
    return out


def update_trigger(phase: ArcPhase, branch_type: BranchType, text: str) -> ArcPhase:
    _require_editable(phase, branch_type)
    out = phase.model_copy(deep=True)
    ensure_branch(out, branch_type).trigger_description = str(text or "")
    out.updated_at = utc_now_aware()
    return out


def add_arc_step(phase: ArcPhase, branch_type: BranchType, description: str = "") -> ArcPhase:
    _require_editable(phase, branch_type)
    out = phase.model_copy(deep=True)
    ensure_branch(out, branch_type).steps.append(ArcStep(description=str(description or "")))
    out.updated_at = utc_now_aware()
    return out


def update_arc_step(phase: ArcPhase, branch_type: BranchType, step_id: str, *, description: str) -> ArcPhase:
    _require_editable(phase, branch_type)
    out = phase.model_copy(deep=True)
    _find_step(ensure_branch(out, branch_type), step_id).description = str(description or "")
    out.updated_at = utc_now_aware()
    return out


def delete_arc_step(phase: ArcPhase, branch_type: BranchType, step_id: str) -> ArcPhase:
    _require_editable(phase, branch_type)
    out = phase.model_copy(deep=True)
    branch = ensure_branch(out, branch_type)
    _find_step(branch, step_id)
    branch.steps = [step for step in branch.steps if step.id != step_id]
    out.updated_at = utc_now_aware()
    return out


def _clone_failed_success_step(phase: ArcPhase, *, current_day: int) -> None:
    success = ensure_branch(phase, BranchType.SUCCESS)
    failed = sorted(
        (step for step in success.steps if step.status in RESOLVED_FAILURE_STATUSES),
        key=lambda step: step.status_event_order,
        reverse=True,
    )
    if not failed or failed[0].permanently_failed:
        return
    target = failed[0]
    if any(step.retry_of == target.id and step.failed_on_day == current_day for step in success.steps):
        return

    max_retries = _MAX_RETRIES.get(phase.flexibility, _MAX_RETRIES["normal"])
    if max_retries is not None and target.retry_count >= max_retries:
        target.permanently_failed = True
        return

    clone = ArcStep(
        description=target.description,
        retry_of=target.id,
        retry_count=target.retry_count + 1,
        failed_on_day=current_day,
    )
    success.steps.insert(success.steps.index(target) + 1, clone)


def toggle_step_status(
    phase: ArcPhase,
    branch_type: BranchType,
    step_id: str,
    target_status: str,
    *,
    current_day: int = 0,
) -> ArcPhase:
    """Apply a status-button click to one arc step and return the new phase.

    Clicking the step's current status reverts it to ``pending`` and clears its
    event order. Any other transition takes the phase's next event order so
    resolutions across both branches stay totally ordered. A recovery step that
    succeeds on the fail branch schedules a retry of the latest failed
    progression step.
    """
    branch_type = BranchType(branch_type)
    if target_status not in TOGGLE_TARGETS:
        raise ArcEditError(f"unsupported status target: {target_status}")
    _require_editable(phase, branch_type)

    out = phase.model_copy(deep=True)
    step = _find_step(ensure_branch(out, branch_type), step_id)
    if step.status == target_status:
        new_status = STATUS_PENDING
    elif target_status in allowed_statuses(out, branch_type):
        new_status = target_status
    else:
        raise ArcEditError(f"{target_status} is not available on a rigid success branch")

    step.status = new_status  # type: ignore[assignment]
    step.status_event_order = _next_event_order(out) if new_status != STATUS_PENDING else 0
    step.completed_at = utc_now_aware() if new_status == STATUS_SUCCEEDED else None

    if branch_type is BranchType.FAIL and new_status == STATUS_SUCCEEDED:
        _clone_failed_success_step(out, current_day=current_day)

    out.updated_at = utc_now_aware()
    return out


def phase_progress(phase: ArcPhase) -> int:
    success = phase.branches.get(BranchType.SUCCESS)
    steps = success.steps if success is not None else []
    retry_targets = {step.retry_of for step in steps if step.retry_of and step.status == STATUS_PENDING}
    countable = [
        step
        for step in steps
        if not (step.id in retry_targets and step.status in RESOLVED_FAILURE_STATUSES)
    ]
    done = sum(1 for step in countable if step.status == STATUS_SUCCEEDED)
    return percent_complete(done, len(countable))


def compute_active_flow(phase: ArcPhase) -> ActiveFlow | None:
    fail = phase.branches.get(BranchType.FAIL)
    success = phase.branches.get(BranchType.SUCCESS)
    fail_steps = fail.steps if fail is not None else []
    success_steps = success.steps if success is not None else []

    resolved: list[tuple[ArcStep, BranchType]] = [
        (step, BranchType.FAIL) for step in fail_steps if step.status_event_order > 0
    ]
    resolved.extend((step, BranchType.SUCCESS) for step in success_steps if step.status_event_order > 0)
    if not resolved:
        return None
    latest, latest_branch = max(resolved, key=lambda item: item[0].status_event_order)

    if latest.status == STATUS_SUCCEEDED and latest_branch is BranchType.FAIL:
        target = next((step for step in success_steps if step.status_event_order == 0), None)
        if target is not None:
            return ActiveFlow(latest.id, BranchType.FAIL, target.id, BranchType.SUCCESS)
    if latest.status in RESOLVED_FAILURE_STATUSES and latest_branch is BranchType.SUCCESS:
        target = next((step for step in fail_steps if step.status_event_order == 0), None)
        if target is not None:
            return ActiveFlow(latest.id, BranchType.SUCCESS, target.id, BranchType.FAIL)
    return None


def migrate_story_goal(goal: StoryGoal) -> ArcPhase:
    """Lift a flat-step story goal into an arc phase with a single success branch."""
    phase = ArcPhase(
        title=goal.title,
        desired_outcome=goal.desired_outcome,
        flexibility=goal.flexibility,
        mode="simple",
        created_at=goal.created_at,
        updated_at=goal.updated_at,
    )
    if not goal.steps:
        return phase
    arc_steps = [
        ArcStep(
            id=step.id,
            description=step.description,
            status=STATUS_SUCCEEDED if step.completed else STATUS_PENDING,
            status_event_order=(idx + 1) if step.completed else 0,
            completed_at=step.completed_at,
        )
        for idx, step in enumerate(goal.steps)
    ]
    phase.branches[BranchType.SUCCESS] = ArcBranch(type=BranchType.SUCCESS, steps=arc_steps)
    phase.status_event_counter = len(arc_steps)
    return phase
