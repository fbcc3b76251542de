"""
Sequence editor service.

Manual build sequence edits on a project's stored modules. Each edit
saves the modules array first and then records a snapshot; a failed
snapshot is reported in the result and does not undo the edit.
"""

from typing import Any, Optional, Union
from uuid import uuid4
import structlog

from exceptions import (
    InvalidSequenceEditError,
    SequenceConflictError,
    SnapshotPersistenceError,
)
from integrations.sequence_store import SequenceStore
from models.module import Module, load_modules, dump_modules
from models.sequence_edit import (
    PrototypeInsertRequest,
    ReorderRequest,
    SequenceEditResult,
    SequenceUpdateRequest,
)
from models.sequence_history import Actor, ChangeType
from services.import_reconciliation import find_sequence_conflicts
from services.sequence_history_service import SequenceHistoryService

logger = structlog.get_logger(__name__)

ModuleId = Union[int, str]


def _key(module_id: Any) -> str:
    """Compare ids across JSON int/str forms."""
    return str(module_id)


def _sequence_order(module: Module) -> tuple:
    """Sort by sequence, unsequenced last."""
    return (0, module.build_sequence) if module.is_sequenced else (1, 0)


def renumber(modules: list[Module], module_ids: list[ModuleId]) -> tuple[list[Module], int]:
    """
    Assign sequences 1..n.

    Listed modules come first in list order; the rest follow in their
    current sequence order. Stored order of the array is kept.

    Returns:
        (modules, number of modules whose sequence changed)

    Raises:
        InvalidSequenceEditError: On unknown or repeated ids
    """
    by_key = {_key(m.id): m for m in modules if m.id is not None}

    seen = set()
    for module_id in module_ids:
        key = _key(module_id)
        if key not in by_key:
            raise InvalidSequenceEditError(
                f"Unknown module id: {module_id}",
                details={"module_id": module_id}
            )
        if key in seen:
            raise InvalidSequenceEditError(
                f"Module id listed twice: {module_id}",
                details={"module_id": module_id}
            )
        seen.add(key)

    listed = [by_key[_key(i)] for i in module_ids]
    rest = sorted(
        (m for m in modules if _key(m.id) not in seen),
        key=_sequence_order,
    )

    new_sequence = {id(m): position for position, m in enumerate(listed + rest, start=1)}

    changed = 0
    result = []
    for module in modules:
        sequence = new_sequence[id(module)]
        if module.build_sequence != sequence:
            module = module.apply({"build_sequence": sequence})
            changed += 1
        result.append(module)

    return result, changed


def insert_at(modules: list[Module], prototype: Module, position: int) -> tuple[list[Module], int]:
    """
    Insert a module at a build position.

    Every sequenced module at or after ``position`` moves up by one.

    Returns:
        (modules with the prototype appended, number of modules shifted)
    """
    shifted = 0
    result = []
    for module in modules:
        if module.is_sequenced and module.build_sequence >= position:
            module = module.apply({"build_sequence": module.build_sequence + 1})
            shifted += 1
        result.append(module)

    result.append(prototype.apply({"build_sequence": position, "is_prototype": True}))
    return result, shifted


class SequenceEditorService:
    """Edits, reorders and prototype inserts."""

    def __init__(
        self,
        store: SequenceStore,
        history: Optional[SequenceHistoryService] = None,
    ):
        self.store = store
        self.history = history or SequenceHistoryService(store)

    def _commit(
        self,
        project_id: str,
        modules: list[Module],
        version: int,
        change_type: ChangeType,
        description: str,
        actor: Optional[Actor],
        modules_changed: int,
    ) -> SequenceEditResult:
        """Save modules, then snapshot them."""
        self.store.save_project_modules(project_id, dump_modules(modules), version)

        result = SequenceEditResult(
            project_id=project_id,
            change_type=change_type.value,
            modules_changed=modules_changed,
            module_count=len(modules),
            sequence_conflicts=find_sequence_conflicts(modules),
        )

        try:
            result.snapshot_id = self.history.save_snapshot(
                project_id, modules, change_type, description, actor
            )
        except SnapshotPersistenceError as e:
            result.snapshot_error = e.message

        logger.info(
            "sequence_edited",
            project_id=project_id,
            change_type=change_type.value,
            modules_changed=modules_changed,
            conflicts=len(result.sequence_conflicts)
        )
        return result

    def update_sequences(self, project_id: str, request: SequenceUpdateRequest) -> SequenceEditResult:
        """
        Set explicit sequences for chosen modules.

        Shared sequences come back as sequence_conflicts, or fail the
        edit when the request sets reject_conflicts.

        Raises:
            InvalidSequenceEditError: On unknown module ids
            SequenceConflictError: If reject_conflicts is set and the
                edit leaves shared sequences
        """
        project = self.store.get_project_modules(project_id)
        modules = load_modules(project.modules)
        index = {_key(m.id): i for i, m in enumerate(modules) if m.id is not None}

        changed = 0
        for assignment in request.assignments:
            position = index.get(_key(assignment.module_id))
            if position is None:
                raise InvalidSequenceEditError(
                    f"Unknown module id: {assignment.module_id}",
                    details={"module_id": assignment.module_id}
                )
            module = modules[position]
            if module.build_sequence != assignment.build_sequence:
                modules[position] = module.apply({"build_sequence": assignment.build_sequence})
                changed += 1

        if request.reject_conflicts:
            conflicts = find_sequence_conflicts(modules)
            if conflicts:
                raise SequenceConflictError([c.model_dump() for c in conflicts])

        description = request.description or f"Edited build sequence of {changed} module(s)"
        return self._commit(
            project_id, modules, project.version,
            ChangeType.MANUAL_EDIT, description, request.actor, changed,
        )

    def reorder(self, project_id: str, request: ReorderRequest) -> SequenceEditResult:
        """Renumber the project's modules 1..n."""
        project = self.store.get_project_modules(project_id)
        modules, changed = renumber(load_modules(project.modules), request.module_ids)

        description = request.description or f"Reordered {len(modules)} module(s)"
        return self._commit(
            project_id, modules, project.version,
            ChangeType.REORDER, description, request.actor, changed,
        )

    def insert_prototype(self, project_id: str, request: PrototypeInsertRequest) -> SequenceEditResult:
        """
        Add a prototype module at a build position.

        Raises:
            InvalidSequenceEditError: If the serial number already exists
        """
        project = self.store.get_project_modules(project_id)
        modules = load_modules(project.modules)

        if any(m.serial_number == request.serial_number for m in modules):
            raise InvalidSequenceEditError(
                f"Serial number already exists: {request.serial_number}",
                details={"serial_number": request.serial_number}
            )

        prototype = Module.model_validate({
            **request.module,
            "id": request.module.get("id") or str(uuid4()),
            "serial_number": request.serial_number,
        })
        modules, shifted = insert_at(modules, prototype, request.position)

        description = request.description or (
            f"Inserted prototype {request.serial_number} at position {request.position}"
        )
        return self._commit(
            project_id, modules, project.version,
            ChangeType.PROTOTYPE_INSERT, description, request.actor, shifted + 1,
        )


# Singleton instance
_editor_service: Optional[SequenceEditorService] = None


def get_sequence_editor_service() -> SequenceEditorService:
    """Get or create SequenceEditorService instance."""
    global _editor_service
    if _editor_service is None:
        from integrations.supabase_sequence_store import get_sequence_store
        _editor_service = SequenceEditorService(get_sequence_store())
    return _editor_service
