"""
Sequence history service.

Saves, lists and restores build sequence snapshots. Snapshot rows are
append-only; a restore records a new row tagged ``restore``.

Read failures degrade to empty results. Write failures are raised.
"""

from typing import Iterable, Optional, Union
import structlog

from config import settings
from exceptions import SnapshotNotFoundError, SnapshotPersistenceError
from integrations.sequence_store import SequenceStore
from models.module import Module, load_modules, dump_modules
from models.sequence_history import (
    Actor,
    ChangeType,
    RestoreResponse,
    SequenceChange,
    SequenceSnapshot,
    SnapshotEntry,
)
from services.snapshot_diff import compare_snapshots

logger = structlog.get_logger(__name__)


def project_entries(modules: Iterable[Union[Module, SnapshotEntry, dict]]) -> list[SnapshotEntry]:
    """Minimal snapshot projection of each module."""
    entries = []
    for item in modules:
        if isinstance(item, SnapshotEntry):
            entries.append(item)
        elif isinstance(item, Module):
            entries.append(SnapshotEntry.from_module(item))
        else:
            entries.append(SnapshotEntry.from_module(Module.model_validate(item)))
    return entries


class SequenceHistoryService:
    """
    Build sequence snapshot store.

    Takes its SequenceStore explicitly; see get_sequence_history_service()
    for the default wiring.
    """

    def __init__(self, store: SequenceStore):
        self.store = store

    def save_snapshot(
        self,
        project_id: str,
        modules: Iterable[Union[Module, SnapshotEntry, dict]],
        change_type: ChangeType,
        description: str,
        actor: Optional[Actor] = None,
    ) -> str:
        """
        Append a snapshot of the given modules.

        Args:
            project_id: Project UUID
            modules: Modules (or entries) in their new state
            change_type: What produced the change
            description: Human-readable summary
            actor: User who made the change

        Returns:
            New snapshot id

        Raises:
            SnapshotPersistenceError: If the row could not be written
        """
        actor = actor or Actor()
        entries = project_entries(modules)

        try:
            return self.store.save_snapshot(
                project_id,
                [entry.to_storage() for entry in entries],
                ChangeType(change_type).value,
                description,
                actor.id,
                actor.display_name,
            )
        except Exception as e:
            logger.error(
                "save_snapshot_failed",
                project_id=project_id,
                change_type=str(change_type),
                error=str(e)
            )
            raise SnapshotPersistenceError(project_id, str(e)) from e

    def get_history(
        self,
        project_id: str,
        limit: Optional[int] = None
    ) -> list[SequenceSnapshot]:
        """
        Most recent snapshots, newest first.

        Returns [] when the store is unavailable.
        """
        limit = min(limit or settings.history_default_limit, settings.history_max_limit)

        try:
            rows = self.store.get_history(project_id, limit)
        except Exception as e:
            logger.warning("get_history_failed", project_id=project_id, error=str(e))
            return []

        snapshots = []
        for row in rows[:limit]:
            try:
                snapshots.append(SequenceSnapshot.from_row(row))
            except ValueError as e:
                logger.warning("snapshot_row_invalid", row_id=row.get("id"), error=str(e))

        return snapshots

    def get_snapshot(self, project_id: str, snapshot_id: str) -> SequenceSnapshot:
        """
        One snapshot of a project.

        Raises:
            SnapshotNotFoundError: If missing or owned by another project
        """
        row = self.store.fetch_snapshot_by_id(snapshot_id)
        if not row or str(row.get("project_id")) != str(project_id):
            raise SnapshotNotFoundError(snapshot_id)
        return SequenceSnapshot.from_row(row)

    def compare_with_current(self, project_id: str, snapshot_id: str) -> list[SequenceChange]:
        """Changes from a stored snapshot to the project's current modules."""
        snapshot = self.get_snapshot(project_id, snapshot_id)
        project = self.store.get_project_modules(project_id)
        current = project_entries(load_modules(project.modules))
        return compare_snapshots(snapshot.entries, current)

    def restore(
        self,
        project_id: str,
        snapshot_id: str,
        actor: Optional[Actor] = None,
    ) -> RestoreResponse:
        """
        Overlay a snapshot's build sequences onto the current modules.

        Modules missing from the snapshot keep their sequence. When the
        snapshot cannot be fetched nothing is changed and success is
        False. A failed audit write after the modules were saved is
        logged; the restore itself stands.
        """
        failed = RestoreResponse(success=False, project_id=project_id, snapshot_id=snapshot_id)

        try:
            row = self.store.fetch_snapshot_by_id(snapshot_id)
        except Exception as e:
            logger.error("restore_fetch_failed", snapshot_id=snapshot_id, error=str(e))
            return failed

        if not row or str(row.get("project_id", project_id)) != str(project_id):
            logger.warning("restore_snapshot_not_found", project_id=project_id, snapshot_id=snapshot_id)
            return failed

        snapshot = SequenceSnapshot.from_row({"project_id": project_id, **row})
        target = {str(e.module_id): e.build_sequence for e in snapshot.entries if e.module_id is not None}

        project = self.store.get_project_modules(project_id)
        restored = 0
        modules = []
        for module in load_modules(project.modules):
            key = str(module.id)
            if key in target and module.build_sequence != target[key]:
                module = module.apply({"build_sequence": target[key]})
                restored += 1
            modules.append(module)

        self.store.save_project_modules(project_id, dump_modules(modules), project.version)

        when = snapshot.created_at.strftime("%Y-%m-%d %H:%M:%S") if snapshot.created_at else "unknown date"
        audit_id = None
        audit_error = None
        try:
            audit_id = self.save_snapshot(
                project_id,
                modules,
                ChangeType.RESTORE,
                f"Restored from snapshot dated {when}",
                actor,
            )
        except SnapshotPersistenceError as e:
            logger.error("restore_audit_failed", project_id=project_id, error=e.message)
            audit_error = e.message

        logger.info(
            "snapshot_restored",
            project_id=project_id,
            snapshot_id=snapshot_id,
            restored_modules=restored
        )

        return RestoreResponse(
            success=True,
            project_id=project_id,
            snapshot_id=snapshot_id,
            restored_modules=restored,
            audit_snapshot_id=audit_id,
            snapshot_error=audit_error,
        )

    def restore_snapshot(
        self,
        project_id: str,
        snapshot_id: str,
        actor: Optional[Actor] = None,
    ) -> bool:
        """True when the snapshot was found and applied."""
        return self.restore(project_id, snapshot_id, actor).success


# Singleton instance
_history_service: Optional[SequenceHistoryService] = None


def get_sequence_history_service() -> SequenceHistoryService:
    """Get or create SequenceHistoryService instance."""
    global _history_service
    if _history_service is None:
        from integrations.supabase_sequence_store import get_sequence_store
        _history_service = SequenceHistoryService(get_sequence_store())
    return _history_service
