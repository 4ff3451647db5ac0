from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol, TypeVar, get_args

from chronicle.modules.progress.models import CharacterGoal, GoalMilestone, GoalStep, TimeOfDay
from chronicle.utils.time import utc_now_aware
from chronicle.utils.wire import clamp_percent

GoalT = TypeVar("GoalT", bound=CharacterGoal)


class _Completable(Protocol):
    completed: bool


def percent_complete(done: int, total: int) -> int:
    if total <= 0:
        return 0
    # integer half-up rounding of 100 * done / total
    return max(0, min(100, (200 * int(done) + total) // (2 * total)))


def compute_progress(steps: Sequence[_Completable]) -> int:
    return percent_complete(sum(1 for step in steps if bool(step.completed)), len(steps))


def build_steps(descriptions: Iterable[str]) -> list[GoalStep]:
    return [GoalStep(description=str(text)) for text in descriptions]


def mark_steps_completed(
    steps: Sequence[GoalStep],
    indices: Iterable[int],
    *,
    at: datetime | None = None,
) -> list[GoalStep]:
    """Return a copy of ``steps`` with the given 1-based indices completed.

    Out-of-range indices are skipped. Steps that were already completed keep
    their original ``completed_at``.
    """
    stamp = at or utc_now_aware()
    out = [step.model_copy() for step in steps]
    for index in indices:
        if isinstance(index, bool) or not isinstance(index, int):
            continue
        if index < 1 or index > len(out):
            continue
        step = out[index - 1]
        if step.completed:
            continue
        step.completed = True
        step.completed_at = stamp
    return out


def refresh_progress(goal: GoalT) -> GoalT:
    if goal.steps:
        goal.progress = compute_progress(goal.steps)
    return goal


def _touch(goal: GoalT) -> GoalT:
    goal.updated_at = utc_now_aware()
    return goal


def new_character_goal(title: str = "", *, desired_outcome: str = "", current_status: str = "") -> CharacterGoal:
    return CharacterGoal(
        title=str(title or ""),
        desired_outcome=str(desired_outcome or ""),
        current_status=str(current_status or ""),
    )


def add_step(goal: GoalT, description: str = "") -> GoalT:
    out = goal.model_copy(deep=True)
    out.steps.append(GoalStep(description=str(description or "")))
    return _touch(refresh_progress(out))


def update_step(goal: GoalT, step_id: str, *, description: str) -> GoalT:
    out = goal.model_copy(deep=True)
    for step in out.steps:
        if step.id == step_id:
            step.description = str(description or "")
            return _touch(out)
    return goal


def delete_step(goal: GoalT, step_id: str) -> GoalT:
    out = goal.model_copy(deep=True)
    kept = [step for step in out.steps if step.id != step_id]
    if len(kept) == len(out.steps):
        return goal
    out.steps = kept
    return _touch(refresh_progress(out))


def toggle_step(goal: GoalT, step_id: str) -> GoalT:
    out = goal.model_copy(deep=True)
    for step in out.steps:
        if step.id != step_id:
            continue
        step.completed = not step.completed
        step.completed_at = utc_now_aware() if step.completed else None
        return _touch(refresh_progress(out))
    return goal


def set_progress(goal: GoalT, value: object) -> GoalT:
    """Set the manual progress estimate; step-derived progress wins when steps exist."""
    out = goal.model_copy(deep=True)
    out.progress = clamp_percent(value)
    return _touch(refresh_progress(out))


_TIMES_OF_DAY = frozenset(get_args(TimeOfDay))


def _story_day(value: object) -> int:
    try:
        day = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 1
    return max(1, day)


def add_milestone(
    goal: GoalT,
    *,
    day: int = 1,
    time_of_day: TimeOfDay = "day",
    description: str = "",
) -> GoalT:
    """Append a milestone stamped with the story's current day and time of day."""
    out = goal.model_copy(deep=True)
    out.milestones.append(
        GoalMilestone(
            description=str(description or ""),
            day=_story_day(day),
            time_of_day=time_of_day if time_of_day in _TIMES_OF_DAY else "day",
        )
    )
    return _touch(out)


def update_milestone(
    goal: GoalT,
    milestone_id: str,
    *,
    description: str | None = None,
    day: object = None,
    time_of_day: str | None = None,
) -> GoalT:
    out = goal.model_copy(deep=True)
    for milestone in out.milestones:
        if milestone.id != milestone_id:
            continue
        if description is not None:
            milestone.description = str(description)
        if day is not None:
            milestone.day = _story_day(day)
        if time_of_day in _TIMES_OF_DAY:
            milestone.time_of_day = time_of_day  # type: ignore[assignment]
        return _touch(out)
    return goal


def delete_milestone(goal: GoalT, milestone_id: str) -> GoalT:
    out = goal.model_copy(deep=True)
    kept = [milestone for milestone in out.milestones if milestone.id != milestone_id]
    if len(kept) == len(out.milestones):
        return goal
    out.milestones = kept
    return _touch(out)


def sort_goals_by_progress(goals: Iterable[GoalT]) -> list[GoalT]:
    return sorted(goals, key=lambda goal: goal.progress, reverse=True)
