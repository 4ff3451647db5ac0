from __future__ import annotations

import re
from datetime import datetime

from chronicle.modules.draft.models import TraitItem, TraitSection

PLACEHOLDER_LABEL_RE = re.compile(r"^(trait|item|entry|row|example|placeholder)\s*\d*$", re.IGNORECASE)


def is_placeholder_label(label: str | None) -> bool:
    return bool(PLACEHOLDER_LABEL_RE.match(str(label or "").strip()))


def _same_text(left: str | None, right: str | None) -> bool:
    return str(left or "").strip().casefold() == str(right or "").strip().casefold()


def find_section(sections: list[TraitSection], title: str) -> TraitSection | None:
    for section in sections:
        if _same_text(section.title, title):
            return section
    return None


def upsert_section_item(
    sections: list[TraitSection],
    *,
    title: str,
    label: str,
    value: str,
    at: datetime,
) -> str:
    """Write ``label = value`` into the titled section, in place.

    Returns how the row was resolved: ``updated``, ``unchanged``,
    ``placeholder`` (a template row was taken over) or ``appended``.
    """
    section = find_section(sections, title)
    if section is None:
        section = TraitSection(title=title.strip(), created_at=at, updated_at=at)
        sections.append(section)

    for item in section.items:
        if _same_text(item.label, label):
            if item.value == value:
                return "unchanged"
            item.value = value
            item.updated_at = at
            section.updated_at = at
            return "updated"

    for item in section.items:
        if is_placeholder_label(item.label):
            item.label = label.strip()
            item.value = value
            item.updated_at = at
            section.updated_at = at
            return "placeholder"

    section.items.append(TraitItem(label=label.strip(), value=value, created_at=at, updated_at=at))
    section.updated_at = at
    return "appended"
