from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from chronicle.modules.draft.models import CharacterDraft
from chronicle.modules.llm_boundary.schemas import to_character_context
from chronicle.modules.llm_boundary.service import get_extraction_boundary
from chronicle.modules.reconcile.engine import SkippedUpdate, reconcile_with_report
from chronicle.modules.reconcile.schemas import ExtractionUpdate
from chronicle.modules.scan.inflight import InFlightRegistry, get_inflight_registry, scan_key

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanResult:
    draft: CharacterDraft
    updates: list[ExtractionUpdate] = field(default_factory=list)
    applied: int = 0
    skipped: list[SkippedUpdate] = field(default_factory=list)
    discarded: bool = False


def _scene_contexts(draft: CharacterDraft, scene: Iterable[CharacterDraft]):
    others = [item for item in scene if item.id != draft.id]
    return [to_character_context(item) for item in [draft, *others]]


class CharacterScanService:
    """Run one extraction for a character and merge the result atomically.

    The draft passed in is never modified. If extraction fails the error
    propagates and the caller still holds the untouched draft; if the scan was
    cancelled while waiting, the updates are reported but not applied.
    """

    def __init__(self, registry: InFlightRegistry | None = None):
        self._registry = registry

    @property
    def registry(self) -> InFlightRegistry:
        return self._registry or get_inflight_registry()

    async def scan(
        self,
        draft: CharacterDraft,
        *,
        dialogue_text: str,
        scene: Iterable[CharacterDraft] = (),
        model_id: str | None = None,
    ) -> ScanResult:
        key = scan_key(draft.id)
        registry = self.registry
        token = registry.claim(key)
        try:
            updates = await get_extraction_boundary().extract_character_updates(
                dialogue_text=dialogue_text,
                characters=_scene_contexts(draft, scene),
                model_id=model_id,
            )
            if not registry.is_current(key, token):
                log.info("scan %s was cancelled; discarding %d updates", key, len(updates))
                return ScanResult(draft=draft, updates=updates, discarded=True)
            merged, report = reconcile_with_report(draft, updates)
            return ScanResult(
                draft=merged,
                updates=updates,
                applied=report.applied,
                skipped=report.skipped,
            )
        finally:
            registry.release(key, token)

    def cancel(self, character_id: str) -> bool:
        return self.registry.cancel(scan_key(character_id))

    def is_scanning(self, character_id: str) -> bool:
        return self.registry.is_in_flight(scan_key(character_id))


_scan_service: CharacterScanService | None = None


def get_scan_service() -> CharacterScanService:
    global _scan_service
    if _scan_service is None:
        _scan_service = CharacterScanService()
    return _scan_service
