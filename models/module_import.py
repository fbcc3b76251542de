"""
Module import schemas.

Covers the analyze/execute request body, per-row classification and the
execute summary.
"""

from enum import Enum
from typing import Any, Optional, Union
from pydantic import Field

from models.base import BaseSchema
from models.module import StoredSequence
from models.sequence_history import Actor, SnapshotEntry


class ImportAction(str, Enum):
    """Import endpoint actions."""
    ANALYZE = "analyze"
    EXECUTE = "execute"


class RowStatus(str, Enum):
    """Classification of one import row against stored modules."""
    NEW = "new"
    MATCHED_UNCHANGED = "matched-unchanged"
    MATCHED_CHANGED = "matched-changed"
    CONFLICT = "conflict"


class ConflictKind(str, Enum):
    """Why a row could not be classified cleanly."""
    DUPLICATE_SERIAL = "duplicate_serial"
    AMBIGUOUS_MATCH = "ambiguous_match"
    DUPLICATE_SEQUENCE = "duplicate_sequence"


class ExecuteStatus(str, Enum):
    """Outcome of an execute call."""
    APPLIED = "applied"
    CONFIRMATION_REQUIRED = "confirmation_required"
    NO_CHANGES = "no_changes"


class FieldChange(BaseSchema):
    """Old and new value of one field."""

    field: str
    old: Any = None
    new: Any = None


class RowClassification(BaseSchema):
    """Analysis of one import row."""

    row_number: Optional[int] = Field(None, description="1-based source line, if known")
    serial_number: str
    status: RowStatus
    module_id: Optional[Union[int, str]] = Field(None, description="Matched module id")
    changes: list[FieldChange] = Field(default_factory=list)
    conflict: Optional[ConflictKind] = None
    conflict_detail: Optional[str] = None

    @property
    def changed_fields(self) -> list[str]:
        return [change.field for change in self.changes]


class SequenceConflict(BaseSchema):
    """A build sequence shared by more than one module."""

    build_sequence: StoredSequence
    serial_numbers: list[Optional[str]]
    module_ids: list[Optional[Union[int, str]]] = Field(default_factory=list)


class DuplicateSerial(BaseSchema):
    """A serial number appearing more than once in the import."""

    serial_number: str
    count: int


class ImportAnalysis(BaseSchema):
    """
    Dry-run preview of an import.

    ``not_in_import`` lists stored modules the import does not mention;
    they are reported only, never deleted.
    """

    project_id: str
    sequence_only: bool = False
    rows: list[RowClassification] = Field(default_factory=list)
    not_in_import: list[SnapshotEntry] = Field(default_factory=list)
    duplicates_in_import: list[DuplicateSerial] = Field(default_factory=list)
    sequence_conflicts: list[SequenceConflict] = Field(default_factory=list)

    def rows_with_status(self, status: RowStatus) -> list[RowClassification]:
        return [row for row in self.rows if row.status == status]

    @property
    def new_count(self) -> int:
        return len(self.rows_with_status(RowStatus.NEW))

    @property
    def changed_count(self) -> int:
        return len(self.rows_with_status(RowStatus.MATCHED_CHANGED))

    @property
    def unchanged_count(self) -> int:
        return len(self.rows_with_status(RowStatus.MATCHED_UNCHANGED))

    @property
    def conflict_count(self) -> int:
        return len(self.rows_with_status(RowStatus.CONFLICT))

    @property
    def requires_confirmation(self) -> bool:
        """True when applying would overwrite stored data or hit a conflict."""
        return self.changed_count > 0 or self.conflict_count > 0


class ImportExecutionResult(BaseSchema):
    """Summary of an execute call."""

    project_id: str
    status: ExecuteStatus
    sequence_only: bool = False
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    skipped_serials: list[str] = Field(
        default_factory=list,
        description="Rows not applied because no module matched (sequence-only mode)"
    )
    withheld: int = 0
    withheld_serials: list[str] = Field(
        default_factory=list,
        description="Rows held back pending confirmation or because they conflict"
    )
    analysis: ImportAnalysis
    sequence_conflicts: list[SequenceConflict] = Field(default_factory=list)
    snapshot_id: Optional[str] = None
    snapshot_error: Optional[str] = None


class ModuleImportRequest(BaseSchema):
    """Body of the import endpoint."""

    action: ImportAction
    project_id: str = Field(..., min_length=1)
    modules: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Parsed rows keyed by canonical field name; serial_number required"
    )
    force_overwrite: bool = False
    sequence_only: bool = False
    actor: Optional[Actor] = None
