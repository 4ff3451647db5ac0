from __future__ import annotations

from pydantic import Field

from chronicle.modules.draft.models import CharacterDraft
from chronicle.modules.reconcile.schemas import ExtractionUpdate
from chronicle.utils.wire import WireModel


class ScanRequest(WireModel):
    draft: CharacterDraft
    dialogue_text: str = Field(min_length=1)
    scene: list[CharacterDraft] = Field(default_factory=list)
    model_id: str | None = None


class SkippedUpdateOut(WireModel):
    index: int
    reason: str
    field: str | None = None


class ScanResponse(WireModel):
    draft: CharacterDraft
    updates: list[ExtractionUpdate] = Field(default_factory=list)
    applied: int = Field(ge=0)
    skipped: list[SkippedUpdateOut] = Field(default_factory=list)
    discarded: bool = False


class ScanCancelResponse(WireModel):
    character_id: str
    cancelled: bool
