"""
Build sequence editor API routes.

Manual sequence edits, full reorders, prototype inserts and file export
for a project's modules.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, StreamingResponse
import structlog

from models.sequence_edit import (
    PrototypeInsertRequest,
    ReorderRequest,
    SequenceEditResult,
    SequenceUpdateRequest,
)
from services.sequence_editor_service import get_sequence_editor_service
from services.sequence_export_service import get_sequence_export_service
from exceptions import AppError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/projects", tags=["Build Sequence"])

MEDIA_TYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


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
# EDITOR ROUTES
# ===================

@router.patch("/{project_id}/sequence", response_model=SequenceEditResult)
async def update_sequence(project_id: str, request: SequenceUpdateRequest):
    """
    Set build sequences for specific modules.

    Raises:
        404: Project not found
        409: Shared sequences with reject_conflicts, or concurrent edit
        422: Unknown module id
    """
    try:
        service = get_sequence_editor_service()
        return service.update_sequences(project_id, request)
    except Exception as e:
        return handle_error(e)


@router.post("/{project_id}/sequence/reorder", response_model=SequenceEditResult)
async def reorder_sequence(project_id: str, request: ReorderRequest):
    """
    Renumber modules 1..n in the given order.

    Raises:
        404: Project not found
        409: Project modified concurrently
        422: Unknown or repeated module id
    """
    try:
        service = get_sequence_editor_service()
        return service.reorder(project_id, request)
    except Exception as e:
        return handle_error(e)


@router.post("/{project_id}/sequence/prototypes", response_model=SequenceEditResult)
async def insert_prototype(project_id: str, request: PrototypeInsertRequest):
    """
    Insert a prototype module, shifting later modules back one place.

    Raises:
        404: Project not found
        409: Project modified concurrently
        422: Serial number already exists
    """
    try:
        service = get_sequence_editor_service()
        return service.insert_prototype(project_id, request)
    except Exception as e:
        return handle_error(e)


@router.get("/{project_id}/sequence/export")
async def export_sequence(
    project_id: str,
    format: str = Query("csv", pattern="^(csv|xlsx)$", description="csv or xlsx")
):
    """
    Download the project's modules in build order.

    The file's headers import back through the module importer.

    Raises:
        404: Project not found
    """
    try:
        service = get_sequence_export_service()
        output, filename = service.export_project(project_id, format)

        return StreamingResponse(
            output,
            media_type=MEDIA_TYPES[format],
            headers={"Content-Disposition": f"attachment; filename={filename}"}
        )
    except Exception as e:
        return handle_error(e)
