from __future__ import annotations

from fastapi import APIRouter

from chronicle.modules.reconcile.engine import reconcile_with_report
from chronicle.modules.reconcile.schemas import ReconcileRequest, ReconcileResponse

router = APIRouter(prefix="/api/v1", tags=["reconcile"])


@router.post("/reconcile", response_model=ReconcileResponse, response_model_by_alias=True)
def reconcile_draft(payload: ReconcileRequest):
    draft, report = reconcile_with_report(payload.draft, payload.updates)
    return ReconcileResponse(draft=draft, applied=report.applied, skipped=len(report.skipped))
