"""
Sequence history API routes.

List, inspect, compare and restore build sequence snapshots.
"""

from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse
import structlog

from models.sequence_history import (
    CompareRequest,
    RestoreRequest,
    SnapshotListResponse,
)
from services.sequence_history_service import get_sequence_history_service
from services.snapshot_diff import compare_snapshots
from exceptions import AppError, SnapshotNotFoundError

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Sequence History"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# HISTORY ROUTES
# ===================

@router.get("/api/projects/{project_id}/sequence-history", response_model=SnapshotListResponse)
async def list_sequence_history(
    project_id: str,
    limit: Optional[int] = Query(None, ge=1, le=100, description="Max snapshots (default 20)")
):
    """
    Recent snapshots for a project, newest first.

    Returns an empty list when history storage is unavailable.
    """
    try:
        service = get_sequence_history_service()
        snapshots = service.get_history(project_id, limit)
        return SnapshotListResponse(data=snapshots, total=len(snapshots))
    except Exception as e:
        return handle_error(e)


@router.get("/api/projects/{project_id}/sequence-history/{snapshot_id}")
async def get_sequence_snapshot(project_id: str, snapshot_id: str):
    """
    One snapshot with its entries.

    Raises:
        404: Snapshot not found for this project
    """
    try:
        service = get_sequence_history_service()
        return service.get_snapshot(project_id, snapshot_id)
    except Exception as e:
        return handle_error(e)


@router.get("/api/projects/{project_id}/sequence-history/{snapshot_id}/changes")
async def get_changes_since_snapshot(project_id: str, snapshot_id: str):
    """
    What changed between a snapshot and the project's current modules.

    Raises:
        404: Snapshot or project not found
    """
    try:
        service = get_sequence_history_service()
        changes = service.compare_with_current(project_id, snapshot_id)
        return {"data": changes, "total": len(changes)}
    except Exception as e:
        return handle_error(e)


@router.post("/api/projects/{project_id}/sequence-history/{snapshot_id}/restore")
async def restore_sequence_snapshot(
    project_id: str,
    snapshot_id: str,
    request: Optional[RestoreRequest] = None
):
    """
    Restore build sequences from a snapshot.

    Modules not in the snapshot keep their current sequence. The restore
    is recorded as a new `restore` snapshot.

    Raises:
        404: Snapshot not found for this project
        409: Project modified concurrently
    """
    try:
        service = get_sequence_history_service()
        actor = request.actor if request else None
        result = service.restore(project_id, snapshot_id, actor)

        if not result.success:
            raise SnapshotNotFoundError(snapshot_id)

        return result
    except Exception as e:
        return handle_error(e)


@router.post("/api/sequence-history/compare")
async def compare_sequence_snapshots(request: CompareRequest):
    """Per-module sequence changes between two entry lists."""
    try:
        changes = compare_snapshots(request.old_entries, request.new_entries)
        return {"data": changes, "total": len(changes)}
    except Exception as e:
        return handle_error(e)
