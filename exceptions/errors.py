"""
Custom exception classes for the application.

Base classes map to HTTP status codes; domain errors below them carry
the build-sequence specific codes and details.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PROJECT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# LOOKUP ERRORS
# ===================

class ProjectNotFoundError(NotFoundError):
    """Project not found."""

    def __init__(self, project_id: str):
        super().__init__(
            resource="Project",
            identifier=project_id,
            code="PROJECT_NOT_FOUND"
        )


class SnapshotNotFoundError(NotFoundError):
    """Sequence snapshot not found."""

    def __init__(self, snapshot_id: str):
        super().__init__(
            resource="Sequence snapshot",
            identifier=snapshot_id,
            code="SNAPSHOT_NOT_FOUND"
        )


# ===================
# PARSER ERRORS
# ===================

class CSVParseError(ValidationError):
    """Module CSV cannot be parsed at all (no header, no serial column)."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="CSV_PARSE_ERROR",
            message=message,
            details=details
        )


class ModuleFileParseError(ValidationError):
    """Module spreadsheet cannot be read."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="MODULE_FILE_PARSE_ERROR",
            message=message,
            details=details
        )


class MissingSerialNumberError(ValidationError):
    """One or more module rows have no serial number."""

    def __init__(self, rows: list[int]):
        self.rows = rows
        super().__init__(
            code="MISSING_SERIAL_NUMBER",
            message=f"{len(rows)} row(s) are missing a serial number",
            details={"errors": [{"row": row, "error": "Missing serial number"} for row in rows]}
        )


class HeaderAliasCollisionError(ValueError):
    """Two canonical fields claim the same header alias."""

    def __init__(self, alias: str, fields: list[str]):
        self.alias = alias
        self.fields = fields
        super().__init__(
            f"Header alias '{alias}' is claimed by {', '.join(sorted(fields))}"
        )


# ===================
# SEQUENCE ERRORS
# ===================

class InvalidSequenceEditError(ValidationError):
    """A sequence edit references unknown modules or bad positions."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="INVALID_SEQUENCE_EDIT",
            message=message,
            details=details
        )


class SequenceConflictError(ConflictError):
    """Two or more modules share a build sequence."""

    def __init__(self, conflicts: list[dict]):
        super().__init__(
            code="SEQUENCE_CONFLICT",
            message=f"{len(conflicts)} build sequence value(s) are shared by more than one module",
            details={"conflicts": conflicts}
        )


class ConcurrentModificationError(ConflictError):
    """Project modules changed since they were read."""

    def __init__(self, project_id: str, expected_version: int):
        super().__init__(
            code="CONCURRENT_MODIFICATION",
            message="Project modules were modified by another session; reload and retry",
            details={"project_id": project_id, "expected_version": expected_version}
        )


# ===================
# STORAGE ERRORS
# ===================

class StorageUnavailableError(ExternalServiceError):
    """Hosted store cannot be reached."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="storage",
            message=message,
            details=details
        )


class RemoteExecutionError(ExternalServiceError):
    """Hosted import function returned an error payload."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="import_function",
            message=message,
            details=details
        )


class SnapshotPersistenceError(DatabaseError):
    """Snapshot row could not be written."""

    def __init__(self, project_id: str, message: str):
        super().__init__(
            operation="save_snapshot",
            message=message,
            details={"project_id": project_id}
        )


class ImportBatchError(DatabaseError):
    """An import write batch failed; earlier batches stay applied."""

    def __init__(
        self,
        project_id: str,
        batch_number: int,
        applied_batches: int,
        applied_modules: int,
        message: str
    ):
        self.batch_number = batch_number
        self.applied_batches = applied_batches
        self.applied_modules = applied_modules
        super().__init__(
            operation="import_batch",
            message=message,
            details={
                "project_id": project_id,
                "batch_number": batch_number,
                "applied_batches": applied_batches,
                "applied_modules": applied_modules,
            }
        )


class InvalidStoredModuleError(DatabaseError):
    """A module in a project's stored array cannot be read."""

    def __init__(self, index: int, serial_number: Optional[str], message: str):
        self.index = index
        self.serial_number = serial_number
        super().__init__(
            operation="load_modules",
            message=f"module {index} ({serial_number or 'no serial'}) is invalid: {message}",
            details={"index": index, "serial_number": serial_number}
        )
