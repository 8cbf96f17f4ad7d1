"""
Sync Router
===========
Visibility into, and manual control over, the offline-first sync engine.

GET  /api/v1/sync/status               — Online flag, sweep state, pending counts
POST /api/v1/sync/sweep                — Run a reconciliation sweep now
POST /api/v1/sync/dead-letters/retry   — Re-queue records that gave up syncing
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from serenity.dependencies import get_connectivity, get_sync_engine
from serenity.models.sync import SyncReportResponse, SyncStatusResponse
from serenity.services.connectivity import ConnectivityMonitor
from serenity.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/sync", tags=["sync"])


@router.get("/status", response_model=SyncStatusResponse, summary="Sync status")
async def sync_status(
    engine: SyncEngine = Depends(get_sync_engine),
    connectivity: ConnectivityMonitor = Depends(get_connectivity),
) -> SyncStatusResponse:
    return SyncStatusResponse(
        online=connectivity.is_online,
        signed_in=engine.signed_in,
        sweep_in_progress=engine.sweep_in_progress,
        pending=await engine.pending_counts(),
    )


@router.post(
    "/sweep",
    response_model=SyncReportResponse,
    summary="Run a sweep now",
    description=(
        "Pushes every unsynced record once and reports the outcome. Returns "
        "skipped=true if a sweep is already running, or the device is offline "
        "or signed out."
    ),
)
async def sweep(
    engine: SyncEngine = Depends(get_sync_engine),
) -> SyncReportResponse:
    report = await engine.sweep()
    return SyncReportResponse(
        attempted=report.attempted,
        synced=report.synced,
        failed=report.failed,
        dead_lettered=report.dead_lettered,
        skipped=report.skipped,
    )


@router.post(
    "/dead-letters/retry",
    response_model=dict[str, int],
    summary="Re-queue dead-lettered records",
)
async def retry_dead_letters(
    engine: SyncEngine = Depends(get_sync_engine),
) -> dict[str, int]:
    requeued = await engine.retry_dead_letters()
    if requeued:
        engine.request_sweep()
    return {"requeued": requeued}
