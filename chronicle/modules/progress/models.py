from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from chronicle.utils.ids import new_id
from chronicle.utils.time import utc_now_aware
from chronicle.utils.wire import WireModel, clamp_percent

Flexibility = Literal["rigid", "normal", "flexible"]
TimeOfDay = Literal["sunrise", "day", "sunset", "night"]


class GoalStep(WireModel):
    id: str = Field(default_factory=lambda: new_id("step"))
    description: str = ""
    completed: bool = False
    completed_at: datetime | None = None


class GoalMilestone(WireModel):
    id: str = Field(default_factory=lambda: new_id("milestone"))
    description: str = ""
    day: int = Field(default=1, ge=1)
    time_of_day: TimeOfDay = "day"
    created_at: datetime = Field(default_factory=utc_now_aware)


class CharacterGoal(WireModel):
    id: str = Field(default_factory=lambda: new_id("goal"))
    title: str = ""
    desired_outcome: str = ""
    current_status: str = ""
    progress: int = 0
    steps: list[GoalStep] = Field(default_factory=list)
    milestones: list[GoalMilestone] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now_aware)
    updated_at: datetime = Field(default_factory=utc_now_aware)

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, value: object) -> int:
        return clamp_percent(value)


class StoryGoal(CharacterGoal):
    id: str = Field(default_factory=lambda: new_id("sgoal"))
    flexibility: Flexibility = "normal"
