"""
Unit tests for SequenceExportService.
"""

import pytest
from openpyxl import load_workbook

from models.module import load_modules
from parsers import parse_module_csv, parse_module_excel
from services.sequence_export_service import (
    EXPORT_COLUMNS,
    SequenceExportService,
    export_filename,
    sort_for_export,
)
from exceptions import ProjectNotFoundError


@pytest.fixture
def modules():
    return load_modules([
        {"id": "m3", "serialNumber": "25-0003"},
        {"id": "m2", "serialNumber": "25-0002", "buildSequence": 2, "hitchRoom": 'Room "A", 5th', "isPrototype": True},
        {"id": "m1", "serialNumber": "25-0001", "buildSequence": 1, "hitchBLM": "B1L2M01", "unitType": "A1"},
    ])


@pytest.fixture
def service(fake_store):
    return SequenceExportService(fake_store)


class TestSortForExport:
    """Tests for export ordering."""

    def test_sequence_order_unsequenced_last(self, modules):
        """Should sort by build sequence with unsequenced modules last."""
        assert [m.serial_number for m in sort_for_export(modules)] == ["25-0001", "25-0002", "25-0003"]


class TestExportFilename:
    """Tests for export_filename."""

    def test_sanitizes_name(self):
        """Should replace anything but letters and digits."""
        assert export_filename("Maple Court, Phase 2", "csv") == "maple_court__phase_2_Sequence.csv"

    def test_missing_name(self):
        """Should fall back to a generic name."""
        assert export_filename(None, "xlsx") == "project_Sequence.xlsx"


class TestGenerateCsv:
    """Tests for CSV export."""

    def test_quotes_every_cell(self, service, modules):
        """Should quote all cells and double embedded quotes."""
        # Act
        text = service.generate_csv(modules).getvalue().decode("utf-8-sig")

        # Assert
        lines = text.splitlines()
        assert lines[0] == ",".join(f'"{header}"' for header, _, _ in EXPORT_COLUMNS)
        assert lines[1].startswith('"1","25-0001","B1L2M01"')
        assert '"Room ""A"", 5th"' in lines[2]
        assert lines[2].endswith('"X"')
        assert lines[3].startswith('"","25-0003"')

    def test_reimports(self, service, modules):
        """Should parse back through the module CSV parser."""
        text = service.generate_csv(modules).getvalue().decode("utf-8-sig")

        result = parse_module_csv(text)

        assert result.success is True
        rows = {r.serial_number: r for r in result.modules}
        assert rows["25-0001"].build_sequence == 1
        assert rows["25-0001"].fields["blm_id"] == "B1L2M01"
        assert rows["25-0001"].fields["unit_type"] == "A1"
        assert rows["25-0002"].fields["hitch_room"] == 'Room "A", 5th'
        assert rows["25-0002"].fields["is_prototype"] is True
        assert rows["25-0003"].build_sequence == 0


class TestGenerateExcel:
    """Tests for Excel export."""

    def test_headers_and_rows(self, service, modules):
        """Should write headers in row 1 and modules in build order."""
        # Act
        output = service.generate_excel(modules, "Maple Court")

        # Assert
        ws = load_workbook(output).active
        assert ws.title == "Build Sequence"
        assert [c.value for c in ws[1]] == [header for header, _, _ in EXPORT_COLUMNS]
        assert ws["A2"].value == 1
        assert ws["B2"].value == "25-0001"
        assert ws["B4"].value == "25-0003"
        assert ws.freeze_panes == "A2"
        assert ws["A1"].font.bold is True

    def test_reimports(self, service, modules):
        """Should parse back through the module spreadsheet parser."""
        output = service.generate_excel(modules)

        result = parse_module_excel(output, "export.xlsx")

        assert [r.serial_number for r in result.modules] == ["25-0001", "25-0002", "25-0003"]
        assert result.modules[1].build_sequence == 2


class TestDecimalSlots:
    """Tests for prototypes stored at decimal slots."""

    def test_csv_and_excel(self, service):
        """Should export a decimal slot between its neighbours."""
        # Arrange
        modules = load_modules([
            {"id": "b", "serialNumber": "25-0013", "buildSequence": 13},
            {"id": "p", "serialNumber": "25-P001", "buildSequence": 12.1, "isPrototype": True},
            {"id": "a", "serialNumber": "25-0012", "buildSequence": 12},
        ])

        # Act
        lines = service.generate_csv(modules).getvalue().decode("utf-8-sig").splitlines()
        ws = load_workbook(service.generate_excel(modules)).active

        # Assert
        assert lines[2].startswith('"12.1","25-P001"')
        assert [ws.cell(row=r, column=1).value for r in (2, 3, 4)] == [12, 12.1, 13]


class TestExportProject:
    """Tests for export_project."""

    def test_csv(self, service, fake_store, sample_modules):
        """Should export a stored project as CSV with its filename."""
        fake_store.add_project("p1", sample_modules, name="Maple Court")

        output, filename = service.export_project("p1", "csv")

        assert filename == "maple_court_Sequence.csv"
        assert "25-0003" in output.getvalue().decode("utf-8-sig")

    def test_xlsx(self, service, fake_store, sample_modules):
        """Should export a stored project as a workbook."""
        fake_store.add_project("p1", sample_modules, name="Maple Court")

        output, filename = service.export_project("p1", "xlsx")

        assert filename == "maple_court_Sequence.xlsx"
        assert load_workbook(output).active.max_row == 4

    def test_missing_project(self, service):
        """Should raise ProjectNotFoundError."""
        with pytest.raises(ProjectNotFoundError):
            service.export_project("missing")
