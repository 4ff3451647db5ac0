from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from chronicle.modules.draft.models import CharacterDraft


class ExtractionUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    character: str
    field: str
    value: str


class ReconcileRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    draft: CharacterDraft
    updates: list[dict] = Field(default_factory=list)


class ReconcileResponse(BaseModel):
    draft: CharacterDraft
    applied: int = Field(ge=0)
    skipped: int = Field(ge=0)
