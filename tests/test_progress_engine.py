from __future__ import annotations

from datetime import datetime, timezone

from chronicle.modules.progress.engine import (
    add_milestone,
    add_step,
    compute_progress,
    delete_milestone,
    delete_step,
    mark_steps_completed,
    new_character_goal,
    set_progress,
    sort_goals_by_progress,
    toggle_step,
    update_milestone,
    update_step,
)
from chronicle.modules.progress.models import CharacterGoal, GoalStep
from tests.support.drafts import make_goal


def _steps(*flags: bool) -> list[GoalStep]:
    return [GoalStep(description=f"s{idx}", completed=flag) for idx, flag in enumerate(flags, start=1)]


def test_compute_progress_reference_values() -> None:
    assert compute_progress([]) == 0
    assert compute_progress(_steps(True)) == 100
    assert compute_progress(_steps(True, False, False)) == 33
    assert compute_progress(_steps(True, True, False)) == 67


def test_compute_progress_rounds_half_up() -> None:
    # 1/8 = 12.5 and 5/8 = 62.5
    assert compute_progress(_steps(True, *([False] * 7))) == 13
    assert compute_progress(_steps(*([True] * 5), False, False, False)) == 63


def test_progress_is_clamped_for_any_input() -> None:
    assert CharacterGoal(progress=250).progress == 100
    assert CharacterGoal(progress=-4).progress == 0
    assert CharacterGoal(progress="abc").progress == 0
    assert CharacterGoal(progress=49.5).progress == 50
    assert CharacterGoal(progress=float("nan")).progress == 0


def test_mark_steps_completed_skips_out_of_range_and_keeps_existing_stamp() -> None:
    earlier = datetime(2024, 1, 1, tzinfo=timezone.utc)
    later = datetime(2024, 6, 1, tzinfo=timezone.utc)
    steps = _steps(True, False)
    steps[0].completed_at = earlier

    out = mark_steps_completed(steps, [0, 1, 2, 9], at=later)

    assert [s.completed for s in out] == [True, True]
    assert out[0].completed_at == earlier
    assert out[1].completed_at == later
    assert steps[1].completed is False


def test_toggle_step_sets_and_clears_completion_stamp() -> None:
    goal = make_goal("Escape", ["Pick the lock", "Run"])
    step_id = goal.steps[0].id

    done = toggle_step(goal, step_id)
    assert done.steps[0].completed is True
    assert done.steps[0].completed_at is not None
    assert done.progress == 50
    assert goal.steps[0].completed is False

    undone = toggle_step(done, step_id)
    assert undone.steps[0].completed_at is None
    assert undone.progress == 0


def test_add_and_delete_step_keep_progress_step_derived() -> None:
    goal = make_goal("Escape", ["Pick the lock"], completed=(1,))
    assert goal.progress == 100

    grown = add_step(goal, "Run")
    assert grown.progress == 50

    shrunk = delete_step(grown, grown.steps[1].id)
    assert shrunk.progress == 100
    assert delete_step(shrunk, "missing") is shrunk


def test_set_progress_is_ignored_when_steps_exist() -> None:
    free = set_progress(make_goal("Learn to sail"), 140)
    assert free.progress == 100

    stepped = set_progress(make_goal("Escape", ["a", "b"], completed=(1,)), 90)
    assert stepped.progress == 50


def test_sort_goals_by_progress_descending() -> None:
    goals = [make_goal("a", progress=10), make_goal("b", progress=80), make_goal("c", progress=40)]
    assert [g.title for g in sort_goals_by_progress(goals)] == ["b", "c", "a"]


def test_new_goal_and_step_edit() -> None:
    goal = add_step(new_character_goal("Escape", desired_outcome="freedom"), "Pick the lock")
    assert goal.id.startswith("goal_")
    assert goal.progress == 0

    edited = update_step(goal, goal.steps[0].id, description="Pick the lock quietly")
    assert edited.steps[0].description == "Pick the lock quietly"
    assert edited.updated_at >= goal.updated_at
    assert update_step(goal, "step_missing", description="x") is goal


def test_milestones_are_stamped_with_story_time() -> None:
    goal = make_goal("Escape", ["Pick the lock"])
    out = add_milestone(goal, day=3, time_of_day="night", description="Stole the key")

    assert goal.milestones == []
    milestone = out.milestones[0]
    assert milestone.id.startswith("milestone_")
    assert (milestone.description, milestone.day, milestone.time_of_day) == ("Stole the key", 3, "night")
    assert out.progress == goal.progress
    assert out.model_dump(by_alias=True)["milestones"][0]["timeOfDay"] == "night"


def test_milestone_edits_and_deletion() -> None:
    goal = add_milestone(add_milestone(new_character_goal("Escape")), day=2)
    first, second = goal.milestones

    edited = update_milestone(goal, first.id, description="Found a map", day="0", time_of_day="dusk")
    assert (edited.milestones[0].description, edited.milestones[0].day) == ("Found a map", 1)
    assert edited.milestones[0].time_of_day == "day"
    edited = update_milestone(edited, first.id, day="5", time_of_day="sunrise")
    assert (edited.milestones[0].day, edited.milestones[0].time_of_day) == (5, "sunrise")
    assert update_milestone(goal, "missing", description="x") is goal

    trimmed = delete_milestone(edited, first.id)
    assert [m.id for m in trimmed.milestones] == [second.id]
    assert delete_milestone(trimmed, "missing") is trimmed
