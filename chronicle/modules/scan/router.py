from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from chronicle.modules.llm_boundary.errors import LLMUnavailableError
from chronicle.modules.scan.inflight import AlreadyInFlightError
from chronicle.modules.scan.schemas import ScanCancelResponse, ScanRequest, ScanResponse, SkippedUpdateOut
from chronicle.modules.scan.service import get_scan_service

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["scan"])


@router.post("/characters/{character_id}/scan", response_model=ScanResponse, response_model_by_alias=True)
async def scan_character(character_id: str, payload: ScanRequest):
    if payload.draft.id != character_id:
        raise HTTPException(
            status_code=422,
            detail={"code": "CHARACTER_ID_MISMATCH", "message": "path id does not match draft id"},
        )
    try:
        result = await get_scan_service().scan(
            payload.draft,
            dialogue_text=payload.dialogue_text,
            scene=payload.scene,
            model_id=payload.model_id,
        )
    except AlreadyInFlightError as exc:
        raise HTTPException(status_code=409, detail={"code": "SCAN_IN_FLIGHT", "message": str(exc)}) from exc
    except LLMUnavailableError as exc:
        log.warning("scan for %s failed: %s", character_id, exc)
        raise HTTPException(
            status_code=503,
            detail={"code": "EXTRACTION_UNAVAILABLE", "message": str(exc)},
        ) from exc

    return ScanResponse(
        draft=result.draft,
        updates=result.updates,
        applied=result.applied,
        skipped=[SkippedUpdateOut(index=s.index, reason=s.reason, field=s.field) for s in result.skipped],
        discarded=result.discarded,
    )


@router.delete("/characters/{character_id}/scan", response_model=ScanCancelResponse, response_model_by_alias=True)
async def cancel_scan(character_id: str):
    return ScanCancelResponse(character_id=character_id, cancelled=get_scan_service().cancel(character_id))
