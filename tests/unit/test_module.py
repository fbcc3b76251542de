"""
Unit tests for the stored module schema.
"""

import pytest

from exceptions import InvalidStoredModuleError
from models.module import load_modules
from models.sequence_history import SnapshotEntry


class TestLoadModules:
    """Tests for load_modules."""

    def test_decimal_slot_prototype(self):
        """Should read a prototype placed between modules at a decimal slot."""
        # Arrange
        raw = [
            {"id": 1, "serialNumber": "26-0038", "buildSequence": 12},
            {"id": 2, "serialNumber": "26-P001", "buildSequence": 12.1, "isPrototype": True},
        ]

        # Act
        modules = load_modules(raw)

        # Assert
        assert modules[0].build_sequence == 12
        assert isinstance(modules[0].build_sequence, int)
        assert modules[1].build_sequence == 12.1
        assert modules[1].is_sequenced is True
        assert modules[1].to_storage()["buildSequence"] == 12.1

    def test_decimal_slot_snapshot_entry(self):
        """Should carry a decimal slot into snapshot entries."""
        module = load_modules([{"id": 2, "serialNumber": "26-P001", "buildSequence": 12.1}])[0]

        entry = SnapshotEntry.from_module(module)

        assert entry.to_storage()["buildSequence"] == 12.1

    def test_invalid_module_named(self):
        """Should raise InvalidStoredModuleError naming the bad module."""
        raw = [
            {"id": 1, "serialNumber": "26-0038", "buildSequence": 1},
            {"id": 2, "serialNumber": "26-0039", "buildSequence": "soon"},
        ]

        with pytest.raises(InvalidStoredModuleError) as exc_info:
            load_modules(raw)

        assert exc_info.value.index == 1
        assert exc_info.value.serial_number == "26-0039"
        assert "26-0039" in exc_info.value.message
        assert exc_info.value.status_code == 500

    def test_negative_sequence_rejected(self):
        """Should reject negative stored sequences."""
        with pytest.raises(InvalidStoredModuleError):
            load_modules([{"id": 1, "serialNumber": "26-0038", "buildSequence": -2}])
