"""
Admin API

Operator-triggered resynchronization with the SpaceX API. Requires ROLE_ADMIN.
"""

import logging

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_sync_orchestrator
from app.api.schemas import SyncResponse
from app.core.auth import require_admin
from app.core.errors import SourceUnavailable, source_unavailable_error
from app.services.sync import SyncOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/resync", response_model=SyncResponse)
def resynchronize(
    refresh_placeholders: bool = Query(False, description="Re-fetch rockets and pads stored as placeholders"),
    admin: dict = Depends(require_admin),
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
) -> SyncResponse:
    """Run one synchronization pass and report its outcome."""
    logger.info(f"Admin '{admin['sub']}' triggered resynchronization with SpaceX API")
    try:
        report = orchestrator.run_pass(refresh_placeholders=refresh_placeholders)
    except SourceUnavailable as e:
        raise source_unavailable_error(e)

    return SyncResponse(
        success=True,
        message="Synchronization completed successfully",
        launches_processed=report.processed,
        failed=report.failed,
        skipped=report.skipped,
        placeholders=report.placeholders,
        duration_seconds=round(report.duration_seconds, 3),
    )
