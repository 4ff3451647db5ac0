from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from chronicle.modules.progress.models import CharacterGoal
from chronicle.utils.ids import new_id
from chronicle.utils.time import utc_now_aware
from chronicle.utils.wire import WireModel


class TraitItem(WireModel):
    id: str = Field(default_factory=lambda: new_id("item"))
    label: str = ""
    value: str = ""
    created_at: datetime = Field(default_factory=utc_now_aware)
    updated_at: datetime = Field(default_factory=utc_now_aware)


class TraitSection(WireModel):
    id: str = Field(default_factory=lambda: new_id("section"))
    title: str = ""
    items: list[TraitItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now_aware)
    updated_at: datetime = Field(default_factory=utc_now_aware)


class CharacterDraft(WireModel):
    """Editable snapshot of one character; unknown flat string fields are kept as extras."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = Field(default_factory=lambda: new_id("char"))
    name: str = ""
    nicknames: str = ""
    previous_names: str = ""
    physical_appearance: dict[str, str] = Field(default_factory=dict)
    currently_wearing: dict[str, str] = Field(default_factory=dict)
    preferred_clothing: dict[str, str] = Field(default_factory=dict)
    location: str = ""
    current_mood: str = ""
    goals: list[CharacterGoal] = Field(default_factory=list)
    sections: list[TraitSection] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now_aware)
    updated_at: datetime = Field(default_factory=utc_now_aware)


def split_name_list(raw: str | None) -> list[str]:
    return [part.strip() for part in str(raw or "").split(",") if part.strip()]


def _fold(value: str | None) -> str:
    return " ".join(str(value or "").split()).casefold()


@dataclass(frozen=True, slots=True)
class CharacterIdentity:
    name: str
    nicknames: tuple[str, ...] = ()

    @classmethod
    def from_draft(cls, draft: CharacterDraft) -> CharacterIdentity:
        return cls(name=draft.name, nicknames=tuple(split_name_list(draft.nicknames)))

    def matches(self, candidate: str | None) -> bool:
        folded = _fold(candidate)
        if not folded:
            return False
        if folded == _fold(self.name):
            return True
        return any(
            folded == _fold(nickname)
            for raw in self.nicknames
            for nickname in split_name_list(raw)
        )
