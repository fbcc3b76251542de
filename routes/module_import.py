"""
Module import API routes.

Parse an uploaded sequence file, then analyze or execute the import
against a project's modules, either in-process or through the hosted
import function.
"""

from io import BytesIO

from fastapi import APIRouter, UploadFile, File
from fastapi.responses import JSONResponse
import structlog

from models.module_import import ModuleImportRequest
from parsers import parse_module_csv, parse_module_excel
from services.module_import_service import get_module_import_service
from exceptions import AppError, CSVParseError, ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/import-modules", tags=["Module Import"])

CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx", ".xls")


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
# IMPORT ROUTES
# ===================

@router.post("")
async def import_modules(request: ModuleImportRequest):
    """
    Analyze or execute a module import.

    `analyze` classifies each row without writing. `execute` applies the
    import; matched rows with changes are withheld unless
    `force_overwrite` is set, and the response status is then
    `confirmation_required`.

    Raises:
        404: Project not found
        409: Project modified concurrently
        422: Rows missing serial numbers
    """
    try:
        service = get_module_import_service()
        return service.handle_request(request)
    except Exception as e:
        return handle_error(e)


@router.post("/remote")
async def import_modules_remote(request: ModuleImportRequest):
    """
    Run the import through the hosted import function.

    The function's JSON response is returned unchanged.

    Raises:
        503: Function failed or returned an error payload
    """
    try:
        service = get_module_import_service()
        return service.invoke_remote(request)
    except Exception as e:
        return handle_error(e)


@router.post("/parse")
async def parse_module_file(file: UploadFile = File(...)):
    """
    Parse a CSV or Excel sequence file into import rows.

    Rows without a serial number are reported in `errors`; the remaining
    rows can be posted to the import endpoint as `modules`.

    Raises:
        422: Unsupported file type, unreadable file or no serial column
    """
    filename = file.filename or ""
    logger.info(
        "module_file_upload_started",
        filename=filename,
        content_type=file.content_type
    )

    try:
        content = await file.read()
        lower = filename.lower()

        if lower.endswith(CSV_EXTENSIONS):
            try:
                text = content.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise CSVParseError("File is not valid UTF-8 text") from e
            result = parse_module_csv(text)
        elif lower.endswith(EXCEL_EXTENSIONS):
            result = parse_module_excel(BytesIO(content), filename)
        else:
            raise ValidationError(
                code="UNSUPPORTED_FILE_TYPE",
                message="Upload a .csv, .xlsx or .xls file",
                details={"filename": filename}
            )

        logger.info(
            "module_file_parsed",
            filename=filename,
            rows=len(result.modules),
            errors=len(result.errors)
        )
        return {"success": result.success, **result.to_dict()}
    except Exception as e:
        return handle_error(e)
