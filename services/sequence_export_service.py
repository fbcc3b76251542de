"""
Sequence export service — CSV and Excel downloads of a project's build order.

Column headers are ones the module importer recognizes, so an exported
file can be edited and imported back.
"""

import csv
import re
from io import BytesIO, StringIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, Border, Side, PatternFill
import structlog

from integrations.sequence_store import SequenceStore
from models.module import Module, load_modules

logger = structlog.get_logger(__name__)

# (header, module attribute, column width)
EXPORT_COLUMNS = [
    ("Build Seq", "build_sequence", 10),
    ("Serial #", "serial_number", 14),
    ("HITCH BLM", "blm_id", 16),
    ("HITCH Unit", "hitch_unit", 12),
    ("HITCH Room", "hitch_room", 14),
    ("HITCH Type", "hitch_room_type", 14),
    ("REAR BLM", "rear_blm_id", 16),
    ("REAR Unit", "rear_unit", 12),
    ("REAR Room", "rear_room", 14),
    ("REAR Type", "rear_room_type", 14),
    ("Unit Type", "unit_type", 12),
    ("Proto", "is_prototype", 8),
]

PROTO_MARK = "X"


def sort_for_export(modules: list[Module]) -> list[Module]:
    """Build order, unsequenced modules last by serial."""
    return sorted(
        modules,
        key=lambda m: (
            0 if m.is_sequenced else 1,
            m.build_sequence or 0,
            m.serial_number or "",
        ),
    )


def export_cell(module: Module, attribute: str) -> str:
    """Text for one export cell."""
    value = getattr(module, attribute)
    if attribute == "is_prototype":
        return PROTO_MARK if value else ""
    if attribute == "build_sequence":
        return str(value) if value else ""
    return "" if value is None else str(value)


def export_filename(project_name: Optional[str], extension: str) -> str:
    """
    Download name for a project's sequence.

    'Maple Court, Phase 2' -> 'maple_court__phase_2_Sequence.csv'
    """
    base = re.sub(r"[^a-z0-9]", "_", (project_name or "project").lower())
    return f"{base}_Sequence.{extension}"


class SequenceExportService:
    """Service for generating build sequence export files."""

    def __init__(self, store: SequenceStore):
        self.store = store

    def generate_csv(self, modules: list[Module]) -> BytesIO:
        """
        Generate CSV of modules in build order.

        Every cell is quoted; embedded quotes are doubled.

        Returns:
            BytesIO containing UTF-8 text with a BOM for Excel
        """
        buffer = StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow([header for header, _, _ in EXPORT_COLUMNS])
        for module in sort_for_export(modules):
            writer.writerow([export_cell(module, attr) for _, attr, _ in EXPORT_COLUMNS])

        output = BytesIO(buffer.getvalue().encode("utf-8-sig"))
        output.seek(0)
        return output

    def generate_excel(self, modules: list[Module], project_name: Optional[str] = None) -> BytesIO:
        """
        Generate Excel workbook of modules in build order.

        Row 1 holds the headers so the sheet imports back as-is.
        Prototype rows are shaded.

        Returns:
            BytesIO containing the Excel file
        """
        wb = Workbook()
        ws = wb.active
        ws.title = "Build Sequence"

        # Styles
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="305496", end_color="305496", fill_type="solid")
        proto_fill = PatternFill(start_color="FFF0E0", end_color="FFF0E0", fill_type="solid")
        thin_border = Border(
            bottom=Side(style="thin", color="000000")
        )

        for col, (header, _, width) in enumerate(EXPORT_COLUMNS, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.border = thin_border
            cell.alignment = Alignment(horizontal="center")
            ws.column_dimensions[cell.column_letter].width = width

        ws.freeze_panes = "A2"

        row = 2
        for module in sort_for_export(modules):
            for col, (_, attr, _) in enumerate(EXPORT_COLUMNS, start=1):
                value = export_cell(module, attr)
                if attr == "build_sequence" and value:
                    value = module.build_sequence
                cell = ws.cell(row=row, column=col, value=value or None)
                if module.is_prototype:
                    cell.fill = proto_fill
            row += 1

        logger.info(
            "sequence_excel_generated",
            project_name=project_name,
            modules=len(modules),
        )

        # Save to BytesIO
        output = BytesIO()
        wb.save(output)
        output.seek(0)

        return output

    def export_project(self, project_id: str, file_format: str = "csv") -> tuple[BytesIO, str]:
        """
        Export a project's modules.

        Args:
            project_id: Project UUID
            file_format: 'csv' or 'xlsx'

        Returns:
            (file content, download filename)
        """
        project = self.store.get_project_modules(project_id)
        modules = load_modules(project.modules)

        logger.info(
            "exporting_sequence",
            project_id=project_id,
            file_format=file_format,
            modules=len(modules),
        )

        if file_format == "xlsx":
            return self.generate_excel(modules, project.name), export_filename(project.name, "xlsx")
        return self.generate_csv(modules), export_filename(project.name, "csv")


# Singleton instance
_export_service: Optional[SequenceExportService] = None


def get_sequence_export_service() -> SequenceExportService:
    """Get or create SequenceExportService instance."""
    global _export_service
    if _export_service is None:
        from integrations.supabase_sequence_store import get_sequence_store
        _export_service = SequenceExportService(get_sequence_store())
    return _export_service
