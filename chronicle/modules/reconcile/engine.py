from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from pydantic.alias_generators import to_camel

from chronicle.modules.draft.models import CharacterDraft, CharacterIdentity
from chronicle.modules.progress.engine import build_steps, mark_steps_completed, refresh_progress
from chronicle.modules.progress.models import CharacterGoal
from chronicle.modules.reconcile.grammar import parse_goal_value
from chronicle.modules.reconcile.schemas import ExtractionUpdate
from chronicle.modules.reconcile.sections import upsert_section_item
from chronicle.utils.time import utc_now_aware

log = logging.getLogger(__name__)

GOALS_PREFIX = "goals."
SECTIONS_ROOT = "sections"

COMPOSITE_FIELDS: dict[str, str] = {
    "physicalAppearance": "physical_appearance",
    "currentlyWearing": "currently_wearing",
    "preferredClothing": "preferred_clothing",
}
COMPOSITE_FIELDS.update({attribute: attribute for attribute in list(COMPOSITE_FIELDS.values())})
_STRUCTURED_ATTRIBUTES = frozenset(
    {"id", "goals", "sections", "created_at", "updated_at", *COMPOSITE_FIELDS.values()}
)
_FLAT_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SKIP_MALFORMED = "malformed"
SKIP_OTHER_CHARACTER = "other_character"
SKIP_UNROUTABLE = "unroutable"


@dataclass(frozen=True, slots=True)
class SkippedUpdate:
    index: int
    reason: str
    field: str | None = None


@dataclass(slots=True)
class ReconcileReport:
    applied: int = 0
    skipped: list[SkippedUpdate] = field(default_factory=list)
    outcomes: list[str] = field(default_factory=list)


def _flat_attribute_map() -> dict[str, str]:
    out: dict[str, str] = {}
    for name, info in CharacterDraft.model_fields.items():
        out[name] = name
        out[info.alias or to_camel(name)] = name
    return out


_FLAT_ATTRIBUTES = _flat_attribute_map()


def _coerce_update(raw: object) -> ExtractionUpdate | None:
    if isinstance(raw, ExtractionUpdate):
        return raw
    if not isinstance(raw, Mapping):
        return None
    character = raw.get("character")
    field_name = raw.get("field")
    value = raw.get("value")
    if not isinstance(character, str) or not isinstance(field_name, str) or not isinstance(value, str):
        return None
    if not character.strip() or not field_name.strip():
        return None
    return ExtractionUpdate(character=character, field=field_name, value=value)


def _same_text(left: str | None, right: str | None) -> bool:
    return str(left or "").strip().casefold() == str(right or "").strip().casefold()


def _merge_goal(draft: CharacterDraft, title: str, value: str, now: datetime) -> str:
    directive = parse_goal_value(value)
    goal = next((item for item in draft.goals if _same_text(item.title, title)), None)

    if goal is None:
        steps = build_steps(directive.new_steps or [])
        if directive.complete_steps:
            steps = mark_steps_completed(steps, directive.complete_steps, at=now)
        goal = CharacterGoal(
            title=title,
            desired_outcome=directive.desired_outcome or "",
            current_status=directive.current_status or "",
            progress=directive.progress or 0,
            steps=steps,
            created_at=now,
            updated_at=now,
        )
        draft.goals.append(refresh_progress(goal))
        return "goal_created"

    # new_steps replaces the whole list
    if directive.new_steps is not None:
        goal.steps = build_steps(directive.new_steps)
    if directive.complete_steps:
        goal.steps = mark_steps_completed(goal.steps, directive.complete_steps, at=now)

    if directive.desired_outcome is not None:
        goal.desired_outcome = directive.desired_outcome
    if directive.current_status is not None:
        goal.current_status = directive.current_status
    if directive.progress is not None:
        goal.progress = directive.progress
    refresh_progress(goal)
    goal.updated_at = now
    return "goal_updated"


def _merge_composite(draft: CharacterDraft, attribute: str, key: str, value: str) -> str:
    merged = dict(getattr(draft, attribute) or {})
    merged[key] = value
    setattr(draft, attribute, merged)
    return "composite"


def _set_flat_field(draft: CharacterDraft, field_name: str, value: str) -> str | None:
    if not _FLAT_FIELD_RE.match(field_name):
        return None
    attribute = _FLAT_ATTRIBUTES.get(field_name)
    if attribute is not None:
        if attribute in _STRUCTURED_ATTRIBUTES:
            return None
        setattr(draft, attribute, value)
        return "field"
    if hasattr(CharacterDraft, field_name):
        return None
    setattr(draft, field_name, value)
    return "extra_field"


def _apply_update(draft: CharacterDraft, update: ExtractionUpdate, now: datetime) -> str | None:
    field_name = update.field.strip()

    if field_name.casefold().startswith(GOALS_PREFIX):
        title = field_name[len(GOALS_PREFIX) :].strip()
        if not title:
            return None
        return _merge_goal(draft, title, update.value, now)

    parts = field_name.split(".")
    if parts[0].casefold() == SECTIONS_ROOT and len(parts) >= 3:
        title = parts[1].strip()
        label = ".".join(parts[2:]).strip()
        if not title or not label:
            return None
        return upsert_section_item(draft.sections, title=title, label=label, value=update.value, at=now)

    if len(parts) == 2:
        attribute = COMPOSITE_FIELDS.get(parts[0].strip())
        key = parts[1].strip()
        if attribute is not None and key:
            return _merge_composite(draft, attribute, key, update.value)
        return None

    return _set_flat_field(draft, field_name, update.value)


def reconcile_with_report(
    draft: CharacterDraft,
    updates: Iterable[ExtractionUpdate | Mapping] | None,
    identity: CharacterIdentity | None = None,
) -> tuple[CharacterDraft, ReconcileReport]:
    report = ReconcileReport()
    batch = list(updates or [])
    if not batch:
        return draft, report

    who = identity or CharacterIdentity.from_draft(draft)
    out = draft.model_copy(deep=True)
    now = utc_now_aware()

    for index, raw in enumerate(batch):
        update = _coerce_update(raw)
        if update is None:
            report.skipped.append(SkippedUpdate(index=index, reason=SKIP_MALFORMED))
            continue
        if not who.matches(update.character):
            report.skipped.append(SkippedUpdate(index=index, reason=SKIP_OTHER_CHARACTER, field=update.field))
            continue
        outcome = _apply_update(out, update, now)
        if outcome is None:
            log.debug("dropping unroutable update field=%r for %s", update.field, who.name)
            report.skipped.append(SkippedUpdate(index=index, reason=SKIP_UNROUTABLE, field=update.field))
            continue
        report.applied += 1
        report.outcomes.append(outcome)

    if report.applied:
        out.updated_at = now
    log.info(
        "reconciled %d/%d updates for %s (%d skipped)",
        report.applied,
        len(batch),
        who.name or draft.id,
        len(report.skipped),
    )
    return out, report


def reconcile(
    draft: CharacterDraft,
    updates: Iterable[ExtractionUpdate | Mapping] | None,
    identity: CharacterIdentity | None = None,
) -> CharacterDraft:
    """Merge one batch of extraction updates into a copy of ``draft``.

    Updates apply in order, so a later update to the same field wins. Updates
    for other characters and updates that cannot be routed are skipped; this
    never raises for bad content.
    """
    out, _ = reconcile_with_report(draft, updates, identity)
    return out


def reconcile_roster(
    drafts: Iterable[CharacterDraft],
    updates: Iterable[ExtractionUpdate | Mapping] | None,
) -> list[CharacterDraft]:
    batch = list(updates or [])
    return [reconcile(draft, batch) for draft in drafts]
