"""
Sequence history schemas.

Snapshots are append-only audit records of a project's build sequence.
Entries keep only the fields needed to compare and restore ordering.
"""

from enum import Enum
from typing import Any, Optional, Union
from datetime import datetime
from pydantic import AliasChoices, ConfigDict, Field

from models.base import BaseSchema
from models.module import Module, StoredSequence


ModuleId = Optional[Union[int, str]]


class ChangeType(str, Enum):
    """What produced a snapshot."""
    MANUAL_EDIT = "manual_edit"
    IMPORT = "import"
    REORDER = "reorder"
    PROTOTYPE_INSERT = "prototype_insert"
    RESTORE = "restore"


class Actor(BaseSchema):
    """User who triggered a change."""

    id: Optional[str] = Field(None, description="User id")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Email, used when name is missing")

    @property
    def display_name(self) -> str:
        return self.name or self.email or "Unknown"


class SnapshotEntry(BaseSchema):
    """One module's sequence state inside a snapshot."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        coerce_numbers_to_str=True,
    )

    module_id: ModuleId = Field(None, alias="moduleId")
    serial_number: Optional[str] = Field(None, alias="serialNumber")
    build_sequence: Optional[StoredSequence] = Field(None, alias="buildSequence")
    blm_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("blmId", "hitchBLM", "blm_id"),
        serialization_alias="blmId",
    )
    is_prototype: bool = Field(False, alias="isPrototype")

    @classmethod
    def from_module(cls, module: Module) -> "SnapshotEntry":
        """Project a module down to its snapshot fields."""
        return cls(
            module_id=module.id,
            serial_number=module.serial_number,
            build_sequence=module.build_sequence,
            blm_id=module.blm_id,
            is_prototype=module.is_prototype or False,
        )

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)


class SequenceSnapshot(BaseSchema):
    """
    A persisted snapshot row.

    Never updated after insert; a restore writes a new row tagged
    ``restore``.
    """

    id: str = Field(..., description="Snapshot UUID")
    project_id: str = Field(..., description="Owning project")
    entries: list[SnapshotEntry] = Field(default_factory=list)
    change_type: ChangeType
    description: Optional[str] = None
    actor: Actor = Field(default_factory=Actor)
    created_at: Optional[datetime] = None
    module_count: int = 0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SequenceSnapshot":
        """Build from a build_sequence_history row or RPC result."""
        entries = [
            SnapshotEntry.model_validate(item)
            for item in (row.get("sequence_snapshot") or [])
        ]
        return cls(
            id=str(row["id"]),
            project_id=str(row.get("project_id") or ""),
            entries=entries,
            change_type=row.get("change_type") or ChangeType.MANUAL_EDIT,
            description=row.get("change_description"),
            actor=Actor(
                id=row.get("changed_by"),
                name=row.get("changed_by_name"),
            ),
            created_at=row.get("created_at"),
            module_count=row.get("module_count") or len(entries),
        )


class SequenceChange(BaseSchema):
    """One module's sequence delta between two snapshots."""

    model_config = ConfigDict(populate_by_name=True)

    module_id: ModuleId = Field(None, alias="moduleId")
    serial_number: Optional[str] = Field(None, alias="serialNumber")
    old_sequence: Optional[StoredSequence] = Field(None, alias="oldSequence")
    new_sequence: Optional[StoredSequence] = Field(None, alias="newSequence")
    is_new: bool = Field(False, alias="isNew")
    is_removed: bool = Field(False, alias="isRemoved")


# ===================
# REQUEST / RESPONSE SCHEMAS
# ===================

class RestoreRequest(BaseSchema):
    """Restore a project to a stored snapshot."""

    actor: Optional[Actor] = None


class RestoreResponse(BaseSchema):
    """Outcome of a restore."""

    success: bool
    project_id: str
    snapshot_id: str
    restored_modules: int = 0
    audit_snapshot_id: Optional[str] = None
    snapshot_error: Optional[str] = None


class CompareRequest(BaseSchema):
    """Two entry lists to compare."""

    old_entries: list[SnapshotEntry] = Field(default_factory=list)
    new_entries: list[SnapshotEntry] = Field(default_factory=list)


class SnapshotListResponse(BaseSchema):
    """History list, newest first."""

    data: list[SequenceSnapshot]
    total: int
