from __future__ import annotations

from pydantic import Field

from chronicle.modules.arc.models import STATUS_PENDING, ArcPhase, BranchType
from chronicle.modules.draft.models import CharacterDraft
from chronicle.modules.progress.models import Flexibility
from chronicle.utils.wire import WireModel

# Only the envelope is pinned here; entries are filtered one by one later.
EXTRACTION_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "updates": {"type": "array"},
    },
}

ARC_EVAL_SCHEMA: dict = {
    "type": "object",
    "properties": {
        "classifications": {"type": "array"},
    },
}


class StepContext(WireModel):
    id: str
    description: str
    completed: bool


class GoalContext(WireModel):
    title: str
    desired_outcome: str = ""
    current_status: str = ""
    progress: int = 0
    steps: list[StepContext] = Field(default_factory=list)


class SectionItemContext(WireModel):
    label: str
    value: str


class SectionContext(WireModel):
    title: str
    items: list[SectionItemContext] = Field(default_factory=list)


class CharacterContext(WireModel):
    name: str
    previous_names: str = ""
    nicknames: str = ""
    physical_appearance: dict[str, str] = Field(default_factory=dict)
    currently_wearing: dict[str, str] = Field(default_factory=dict)
    preferred_clothing: dict[str, str] = Field(default_factory=dict)
    location: str = ""
    current_mood: str = ""
    goals: list[GoalContext] = Field(default_factory=list)
    custom_sections: list[SectionContext] = Field(default_factory=list)


class ExtractionRequest(WireModel):
    dialogue_text: str
    characters: list[CharacterContext] = Field(default_factory=list)
    model_id: str | None = None


class PendingStepContext(WireModel):
    step_id: str
    description: str


class ArcEvaluationRequest(WireModel):
    user_message: str
    ai_response: str = ""
    pending_steps: list[PendingStepContext] = Field(default_factory=list)
    flexibility: Flexibility = "normal"


def to_character_context(draft: CharacterDraft) -> CharacterContext:
    return CharacterContext(
        name=draft.name,
        previous_names=draft.previous_names,
        nicknames=draft.nicknames,
        physical_appearance=dict(draft.physical_appearance),
        currently_wearing=dict(draft.currently_wearing),
        preferred_clothing=dict(draft.preferred_clothing),
        location=draft.location,
        current_mood=draft.current_mood,
        goals=[
            GoalContext(
                title=goal.title,
                desired_outcome=goal.desired_outcome,
                current_status=goal.current_status,
                progress=goal.progress,
                steps=[
                    StepContext(id=step.id, description=step.description, completed=step.completed)
                    for step in goal.steps
                ],
            )
            for goal in draft.goals
        ],
        custom_sections=[
            SectionContext(
                title=section.title,
                items=[SectionItemContext(label=item.label, value=item.value) for item in section.items],
            )
            for section in draft.sections
        ],
    )


def pending_steps_for(phase: ArcPhase) -> list[PendingStepContext]:
    success = phase.branches.get(BranchType.SUCCESS)
    if success is None:
        return []
    return [
        PendingStepContext(step_id=step.id, description=step.description)
        for step in success.steps
        if step.status == STATUS_PENDING
    ]
