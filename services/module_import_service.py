"""
Module import service.

Runs analyze/execute imports against a project's stored modules:
loads the modules array, plans the import with the reconciliation
engine, writes changed modules in sequential batches and records an
``import`` snapshot.
"""

from typing import Any, Optional, Union
import structlog

from config import settings
from exceptions import (
    ConcurrentModificationError,
    ImportBatchError,
    MissingSerialNumberError,
    SnapshotPersistenceError,
)
from integrations.sequence_store import SequenceStore
from models.module import Module, load_modules, dump_modules
from models.module_import import (
    ExecuteStatus,
    ImportAction,
    ImportAnalysis,
    ImportExecutionResult,
    ModuleImportRequest,
)
from models.sequence_history import Actor, ChangeType
from parsers.import_rows import ImportRow
from services.import_reconciliation import (
    ImportPlan,
    ModuleWrite,
    analyze_import,
    execute_import,
)
from services.sequence_history_service import SequenceHistoryService

logger = structlog.get_logger(__name__)


def rows_from_payload(modules: list[dict[str, Any]]) -> list[ImportRow]:
    """
    Rebuild ImportRows from an API body.

    Raises:
        MissingSerialNumberError: If any row lacks a serial number
    """
    rows = [ImportRow.from_payload(item) for item in modules]
    missing = [
        row.row_number or index + 1
        for index, row in enumerate(rows)
        if not row.serial_number
    ]
    if missing:
        raise MissingSerialNumberError(missing)
    return rows


def _describe(plan: ImportPlan, sequence_only: bool) -> str:
    if sequence_only:
        return f"Sequence-only import updated {plan.updated} module(s)"
    return f"Imported {plan.inserted} new and updated {plan.updated} module(s)"


class ModuleImportService:
    """
    Analyze and execute module imports.

    Batches are written one after another. A failing batch stops the
    import; batches already written stay written.
    """

    def __init__(
        self,
        store: SequenceStore,
        history: Optional[SequenceHistoryService] = None,
        batch_size: Optional[int] = None,
    ):
        self.store = store
        self.history = history or SequenceHistoryService(store)
        self.batch_size = batch_size or settings.import_batch_size

    def _current_modules(self, project_id: str):
        project = self.store.get_project_modules(project_id)
        return project, load_modules(project.modules)

    def analyze(
        self,
        project_id: str,
        rows: list[ImportRow],
        sequence_only: bool = False,
    ) -> ImportAnalysis:
        """Dry-run classification of an import."""
        _, modules = self._current_modules(project_id)
        analysis = analyze_import(project_id, rows, modules, sequence_only)

        logger.info(
            "import_analyzed",
            project_id=project_id,
            rows=len(rows),
            new=analysis.new_count,
            changed=analysis.changed_count,
            conflicts=analysis.conflict_count,
            sequence_only=sequence_only
        )
        return analysis

    def execute(
        self,
        project_id: str,
        rows: list[ImportRow],
        force_overwrite: bool = False,
        sequence_only: bool = False,
        actor: Optional[Actor] = None,
    ) -> ImportExecutionResult:
        """
        Apply an import.

        Args:
            project_id: Project UUID
            rows: Parsed import rows
            force_overwrite: Apply matched-changed and conflict rows without confirmation
            sequence_only: Only update build_sequence on matched modules;
                changed sequences apply without force_overwrite
            actor: User running the import

        Returns:
            ImportExecutionResult; status is confirmation_required when
            rows were withheld and nothing was written

        Raises:
            ImportBatchError: If a batch write fails part way
            ConcurrentModificationError: If the project changed while
                the first batch was being written
        """
        project, modules = self._current_modules(project_id)
        plan = execute_import(project_id, rows, modules, force_overwrite, sequence_only)

        result = ImportExecutionResult(
            project_id=project_id,
            status=plan.status,
            sequence_only=sequence_only,
            inserted=plan.inserted,
            updated=plan.updated,
            skipped=len(plan.skipped_serials),
            skipped_serials=plan.skipped_serials,
            withheld=len(plan.withheld_serials),
            withheld_serials=plan.withheld_serials,
            analysis=plan.analysis,
            sequence_conflicts=plan.sequence_conflicts,
        )

        if plan.status != ExecuteStatus.APPLIED:
            return result

        self._write_batches(project_id, modules, plan.writes, project.version)

        try:
            result.snapshot_id = self.history.save_snapshot(
                project_id,
                plan.modules,
                ChangeType.IMPORT,
                _describe(plan, sequence_only),
                actor,
            )
        except SnapshotPersistenceError as e:
            result.snapshot_error = e.message

        logger.info(
            "import_executed",
            project_id=project_id,
            inserted=result.inserted,
            updated=result.updated,
            skipped=result.skipped,
            withheld=result.withheld,
            sequence_conflicts=len(result.sequence_conflicts)
        )
        return result

    def _write_batches(
        self,
        project_id: str,
        modules: list[Module],
        writes: list[ModuleWrite],
        version: int,
    ) -> int:
        """Persist writes in batches of batch_size; returns final version."""
        working = list(modules)
        index_by_serial = {m.serial_number: i for i, m in enumerate(working) if m.serial_number}

        batches = [
            writes[start:start + self.batch_size]
            for start in range(0, len(writes), self.batch_size)
        ]

        applied_modules = 0
        for number, batch in enumerate(batches, start=1):
            for write in batch:
                if write.kind == "update" and write.serial_number in index_by_serial:
                    working[index_by_serial[write.serial_number]] = write.module
                else:
                    index_by_serial[write.serial_number] = len(working)
                    working.append(write.module)

            try:
                version = self.store.save_project_modules(project_id, dump_modules(working), version)
            except Exception as e:
                logger.error(
                    "import_batch_failed",
                    project_id=project_id,
                    batch_number=number,
                    applied_batches=number - 1,
                    error=str(e)
                )
                if number == 1 and isinstance(e, ConcurrentModificationError):
                    raise
                raise ImportBatchError(
                    project_id=project_id,
                    batch_number=number,
                    applied_batches=number - 1,
                    applied_modules=applied_modules,
                    message=str(e)
                ) from e

            applied_modules += len(batch)
            logger.debug("import_batch_written", project_id=project_id, batch_number=number, size=len(batch))

        return version

    def handle_request(self, request: ModuleImportRequest) -> Union[ImportAnalysis, ImportExecutionResult]:
        """Dispatch an import endpoint body."""
        rows = rows_from_payload(request.modules)
        if request.action == ImportAction.ANALYZE:
            return self.analyze(request.project_id, rows, request.sequence_only)
        return self.execute(
            request.project_id,
            rows,
            force_overwrite=request.force_overwrite,
            sequence_only=request.sequence_only,
            actor=request.actor,
        )

    def invoke_remote(self, request: ModuleImportRequest) -> dict:
        """
        Forward an import body to the hosted import function.

        Raises:
            RemoteExecutionError: If the function returns an error payload
        """
        payload = request.model_dump(mode="json", exclude={"actor"})
        logger.info(
            "import_remote_invoked",
            project_id=request.project_id,
            action=request.action.value,
            rows=len(request.modules)
        )
        return self.store.invoke_import(payload)


# Singleton instance
_import_service: Optional[ModuleImportService] = None


def get_module_import_service() -> ModuleImportService:
    """Get or create ModuleImportService instance."""
    global _import_service
    if _import_service is None:
        from integrations.supabase_sequence_store import get_sequence_store
        _import_service = ModuleImportService(get_sequence_store())
    return _import_service
