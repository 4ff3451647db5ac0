from __future__ import annotations

from fastapi import APIRouter
from pydantic import Field

from chronicle.modules.progress.engine import compute_progress, refresh_progress
from chronicle.modules.progress.models import CharacterGoal, GoalStep
from chronicle.utils.wire import WireModel

router = APIRouter(prefix="/api/v1", tags=["progress"])


class ProgressRequest(WireModel):
    steps: list[GoalStep] = Field(default_factory=list)
    goal: CharacterGoal | None = None


class ProgressResponse(WireModel):
    progress: int
    goal: CharacterGoal | None = None


@router.post("/progress", response_model=ProgressResponse, response_model_by_alias=True)
def progress(payload: ProgressRequest):
    if payload.goal is not None:
        goal = refresh_progress(payload.goal.model_copy(deep=True))
        return ProgressResponse(progress=goal.progress, goal=goal)
    return ProgressResponse(progress=compute_progress(payload.steps))
