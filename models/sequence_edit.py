"""
Sequence editor schemas.

Manual edits, full reorders and prototype inserts against a project's
stored module list.
"""

from typing import Any, Optional, Union
from pydantic import Field

from models.base import BaseSchema
from models.module_import import SequenceConflict
from models.sequence_history import Actor


class SequenceAssignment(BaseSchema):
    """Set one module's build sequence."""

    module_id: Union[int, str]
    build_sequence: int = Field(..., ge=0)


class SequenceUpdateRequest(BaseSchema):
    """Manual edit of one or more modules."""

    assignments: list[SequenceAssignment] = Field(..., min_length=1)
    reject_conflicts: bool = Field(
        False,
        description="Fail instead of saving when the edit leaves shared sequences"
    )
    description: Optional[str] = Field(None, max_length=500)
    actor: Optional[Actor] = None


class ReorderRequest(BaseSchema):
    """
    Renumber modules 1..n.

    Listed modules take positions in list order; unlisted modules follow
    in their current order.
    """

    module_ids: list[Union[int, str]] = Field(..., min_length=1)
    description: Optional[str] = Field(None, max_length=500)
    actor: Optional[Actor] = None


class PrototypeInsertRequest(BaseSchema):
    """Insert a prototype module at a build position."""

    serial_number: str = Field(..., min_length=1)
    position: int = Field(..., ge=1, description="Build sequence the prototype takes")
    module: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra module fields (camelCase storage keys or attribute names)"
    )
    description: Optional[str] = Field(None, max_length=500)
    actor: Optional[Actor] = None


class SequenceEditResult(BaseSchema):
    """Outcome of an editor operation."""

    project_id: str
    change_type: str
    modules_changed: int
    module_count: int
    sequence_conflicts: list[SequenceConflict] = Field(default_factory=list)
    snapshot_id: Optional[str] = None
    snapshot_error: Optional[str] = None
