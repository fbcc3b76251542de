"""
Business logic services.

Each service handles one domain area.
"""

from services.import_reconciliation import (
    ImportPlan,
    ModuleWrite,
    analyze_import,
    execute_import,
    find_sequence_conflicts,
)
from services.snapshot_diff import compare_snapshots
from services.sequence_history_service import (
    SequenceHistoryService,
    get_sequence_history_service,
)
from services.module_import_service import (
    ModuleImportService,
    get_module_import_service,
)
from services.sequence_editor_service import (
    SequenceEditorService,
    get_sequence_editor_service,
)
from services.sequence_export_service import (
    SequenceExportService,
    get_sequence_export_service,
)

__all__ = [
    "ImportPlan",
    "ModuleWrite",
    "analyze_import",
    "execute_import",
    "find_sequence_conflicts",
    "compare_snapshots",
    "SequenceHistoryService",
    "get_sequence_history_service",
    "ModuleImportService",
    "get_module_import_service",
    "SequenceEditorService",
    "get_sequence_editor_service",
    "SequenceExportService",
    "get_sequence_export_service",
]
