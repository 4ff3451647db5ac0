from __future__ import annotations

from dataclasses import dataclass

from chronicle.modules.llm_boundary.schemas import ArcEvaluationRequest, CharacterContext


@dataclass(frozen=True)
class PromptProfile:
    profile_id: str
    system_template: str
    user_template: str


EXTRACTION_PROFILE_ID = "character_updates_v1"
ARC_EVAL_PROFILE_ID = "arc_step_classification_v1"

PROFILES: dict[str, PromptProfile] = {
    EXTRACTION_PROFILE_ID: PromptProfile(
        profile_id=EXTRACTION_PROFILE_ID,
        system_template=(
            "You are a character state tracker for a roleplay application. Your only job is to "
            "extract character attribute changes from dialogue.\n\n"
            "CHARACTERS IN THIS SCENE:\n{character_context}\n\n"
            "TRACKABLE FIELDS:\n"
            "- nicknames (comma-separated aliases and pet names)\n"
            "- physicalAppearance.<trait>, currentlyWearing.<slot>, preferredClothing.<occasion>\n"
            "- location, currentMood\n"
            "- sections.<Section Title>.<Item Label> for any other fact; missing sections and rows are created\n"
            "- goals.<Goal Title> with a value of pipe-separated tokens:\n"
            "  desired_outcome: <text> | current_status: <text> | progress: <0-100> | "
            "new_steps: Step 1: <text> Step 2: <text> | complete_steps: <1-based indices>\n"
            "  new_steps must restate the complete current plan, not only additions.\n\n"
            "RULES:\n"
            "1. Extract only explicitly stated changes.\n"
            "2. Match character names exactly as given; nicknames count as matches.\n"
            "3. Keep values concise (\"Short brown\", not \"He has short brown hair\").\n"
            "4. Return an empty updates array when nothing changed.\n\n"
            'Respond with JSON only: {{"updates": [{{"character": "Name", "field": "currentMood", '
            '"value": "Affectionate"}}]}}'
        ),
        user_template="Extract character state changes from this dialogue:\n\n{dialogue_text}",
    ),
    ARC_EVAL_PROFILE_ID: PromptProfile(
        profile_id=ARC_EVAL_PROFILE_ID,
        system_template="You are a precise story arc classifier. Respond only in valid JSON.",
        user_template=(
            "Analyze how the user's response relates to each pending story step.\n\n"
            "PENDING STEPS:\n{steps_context}\n\n"
            "USER MESSAGE:\n{user_message}\n\n"
            "AI RESPONSE (for context):\n{ai_response}\n\n"
            "Goal flexibility: {flexibility}.\n"
            "For each step, classify the user's behavior as exactly one of:\n"
            "- aligned: cooperates with or advances the step's objective\n"
            "- soft_resistance: hesitation, deferral or avoidance\n"
            "- hard_resistance: refuses, blocks or acts against the objective\n"
            "One classification per step for the whole exchange.\n\n"
            'Respond with JSON only: {{"classifications": [{{"stepId": "...", '
            '"classification": "aligned", "summary": "one sentence"}}]}}'
        ),
    ),
}

_SLOT_LIMITS = {
    "character_context": 6000,
    "dialogue_text": 12000,
    "steps_context": 4000,
    "user_message": 4000,
    "ai_response": 6000,
}
_DEFAULT_SLOT_LIMIT = 400


def render_prompt(profile_id: str, *, slots: dict[str, object]) -> tuple[str, str]:
    profile = PROFILES.get(profile_id)
    if profile is None:
        raise ValueError(f"unknown prompt profile: {profile_id}")

    safe_slots = {
        key: str(value or "").strip()[: _SLOT_LIMITS.get(key, _DEFAULT_SLOT_LIMIT)]
        for key, value in slots.items()
    }
    try:
        return (
            profile.system_template.format(**safe_slots),
            profile.user_template.format(**safe_slots),
        )
    except KeyError as exc:
        missing = str(exc).strip("'")
        raise ValueError(f"missing prompt slot: {missing}") from exc


def _pairs(values: dict[str, str]) -> str:
    return ", ".join(f"{key}: {value}" for key, value in values.items() if value)


def describe_character(character: CharacterContext) -> str:
    fields = [f"Name: {character.name}"]
    if character.nicknames:
        fields.append(f"Nicknames: {character.nicknames}")
    appearance = _pairs(character.physical_appearance)
    wearing = _pairs(character.currently_wearing)
    if appearance:
        fields.append(f"Appearance: {appearance}")
    if wearing:
        fields.append(f"Wearing: {wearing}")
    if character.location:
        fields.append(f"Location: {character.location}")
    if character.current_mood:
        fields.append(f"Mood: {character.current_mood}")
    for goal in character.goals:
        steps = "; ".join(
            f"{idx}. {'[x]' if step.completed else '[ ]'} {step.description}"
            for idx, step in enumerate(goal.steps, start=1)
        )
        fields.append(f"Goal {goal.title} ({goal.progress}%): {goal.current_status}" + (f" [{steps}]" if steps else ""))
    for section in character.custom_sections:
        rows = _pairs({item.label: item.value for item in section.items})
        if rows:
            fields.append(f"{section.title}: {rows}")
    return " | ".join(fields)


def extraction_slots(dialogue_text: str, characters: list[CharacterContext]) -> dict[str, object]:
    return {
        "character_context": "\n".join(describe_character(c) for c in characters) or "No character data provided",
        "dialogue_text": dialogue_text,
    }


def arc_eval_slots(request: ArcEvaluationRequest) -> dict[str, object]:
    steps = "\n".join(
        f'Step {idx} (ID: {step.step_id}): "{step.description}"'
        for idx, step in enumerate(request.pending_steps, start=1)
    )
    return {
        "steps_context": steps,
        "user_message": request.user_message,
        "ai_response": request.ai_response,
        "flexibility": request.flexibility,
    }
