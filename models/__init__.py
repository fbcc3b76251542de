"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema
from models.module import (
    Module,
    IMPORTABLE_FIELDS,
    SEQUENCE_FIELD,
    load_modules,
    dump_modules,
)
from models.sequence_history import (
    ChangeType,
    Actor,
    SnapshotEntry,
    SequenceSnapshot,
    SequenceChange,
    RestoreRequest,
    RestoreResponse,
    CompareRequest,
    SnapshotListResponse,
)
from models.module_import import (
    ImportAction,
    RowStatus,
    ConflictKind,
    ExecuteStatus,
    FieldChange,
    RowClassification,
    SequenceConflict,
    DuplicateSerial,
    ImportAnalysis,
    ImportExecutionResult,
    ModuleImportRequest,
)
from models.sequence_edit import (
    SequenceAssignment,
    SequenceUpdateRequest,
    ReorderRequest,
    PrototypeInsertRequest,
    SequenceEditResult,
)

__all__ = [
    # Base
    "BaseSchema",

    # Module
    "Module",
    "IMPORTABLE_FIELDS",
    "SEQUENCE_FIELD",
    "load_modules",
    "dump_modules",

    # Sequence history
    "ChangeType",
    "Actor",
    "SnapshotEntry",
    "SequenceSnapshot",
    "SequenceChange",
    "RestoreRequest",
    "RestoreResponse",
    "CompareRequest",
    "SnapshotListResponse",

    # Module import
    "ImportAction",
    "RowStatus",
    "ConflictKind",
    "ExecuteStatus",
    "FieldChange",
    "RowClassification",
    "SequenceConflict",
    "DuplicateSerial",
    "ImportAnalysis",
    "ImportExecutionResult",
    "ModuleImportRequest",

    # Sequence editor
    "SequenceAssignment",
    "SequenceUpdateRequest",
    "ReorderRequest",
    "PrototypeInsertRequest",
    "SequenceEditResult",
]
