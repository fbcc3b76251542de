"""
Unit tests for SequenceEditorService.
"""

import pytest

from exceptions import (
    ConcurrentModificationError,
    InvalidSequenceEditError,
    ProjectNotFoundError,
    SequenceConflictError,
)
from models.module import load_modules
from models.sequence_edit import (
    PrototypeInsertRequest,
    ReorderRequest,
    SequenceAssignment,
    SequenceUpdateRequest,
)
from services.sequence_editor_service import SequenceEditorService, insert_at, renumber
from models.module import Module


@pytest.fixture
def service(fake_store):
    return SequenceEditorService(fake_store)


@pytest.fixture
def project(fake_store, sample_modules):
    fake_store.add_project("p1", sample_modules)
    return "p1"


def sequences(fake_store, project_id: str) -> dict:
    return {m["serialNumber"]: m.get("buildSequence") for m in fake_store.modules(project_id)}


class TestUpdateSequences:
    """Tests for manual sequence edits."""

    def test_sets_sequences_and_snapshots(self, service, fake_store, project):
        """Should save new sequences and record a manual_edit snapshot."""
        # Arrange
        request = SequenceUpdateRequest(assignments=[
            SequenceAssignment(module_id="m1", build_sequence=4),
        ])

        # Act
        result = service.update_sequences(project, request)

        # Assert
        assert result.modules_changed == 1
        assert result.change_type == "manual_edit"
        assert sequences(fake_store, project) == {"25-0001": 4, "25-0002": 2, "25-0003": 3}
        assert fake_store.history[0]["change_type"] == "manual_edit"
        assert result.snapshot_id == fake_store.history[0]["id"]

    def test_shared_sequence_reported(self, service, fake_store, project):
        """Should save a shared sequence and list it as a conflict."""
        request = SequenceUpdateRequest(assignments=[
            SequenceAssignment(module_id="m1", build_sequence=2),
        ])

        result = service.update_sequences(project, request)

        assert len(result.sequence_conflicts) == 1
        assert result.sequence_conflicts[0].build_sequence == 2

    def test_reject_conflicts(self, service, fake_store, project, sample_modules):
        """Should refuse a shared sequence when reject_conflicts is set."""
        request = SequenceUpdateRequest(
            assignments=[SequenceAssignment(module_id="m1", build_sequence=2)],
            reject_conflicts=True,
        )

        with pytest.raises(SequenceConflictError) as exc_info:
            service.update_sequences(project, request)

        assert exc_info.value.status_code == 409
        assert fake_store.modules(project) == sample_modules

    def test_unknown_module(self, service, project):
        """Should raise InvalidSequenceEditError for unknown ids."""
        request = SequenceUpdateRequest(assignments=[
            SequenceAssignment(module_id="nope", build_sequence=1),
        ])

        with pytest.raises(InvalidSequenceEditError):
            service.update_sequences(project, request)

    def test_unknown_project(self, service):
        """Should raise ProjectNotFoundError."""
        request = SequenceUpdateRequest(assignments=[
            SequenceAssignment(module_id="m1", build_sequence=1),
        ])

        with pytest.raises(ProjectNotFoundError):
            service.update_sequences("missing", request)

    def test_snapshot_failure_keeps_edit(self, service, fake_store, project):
        """Should keep the edit when the snapshot cannot be written."""
        fake_store.fail_snapshot_save = True
        request = SequenceUpdateRequest(assignments=[
            SequenceAssignment(module_id="m3", build_sequence=8),
        ])

        result = service.update_sequences(project, request)

        assert result.snapshot_error is not None
        assert sequences(fake_store, project)["25-0003"] == 8

    def test_stale_version(self, service, fake_store, project):
        """Should raise ConcurrentModificationError on a version mismatch."""
        original = fake_store.get_project_modules

        def stale(project_id):
            loaded = original(project_id)
            fake_store.projects[project_id]["version"] = 5
            return loaded

        fake_store.get_project_modules = stale
        request = SequenceUpdateRequest(assignments=[
            SequenceAssignment(module_id="m1", build_sequence=4),
        ])

        with pytest.raises(ConcurrentModificationError):
            service.update_sequences(project, request)


class TestReorder:
    """Tests for reorder."""

    def test_listed_first_then_rest(self, service, fake_store, project):
        """Should number listed modules first and keep the rest in order."""
        result = service.reorder(project, ReorderRequest(module_ids=["m3"]))

        assert sequences(fake_store, project) == {"25-0003": 1, "25-0001": 2, "25-0002": 3}
        assert result.modules_changed == 3
        assert result.change_type == "reorder"
        assert fake_store.history[0]["change_type"] == "reorder"

    def test_duplicate_id(self, service, project):
        """Should reject an id listed twice."""
        with pytest.raises(InvalidSequenceEditError):
            service.reorder(project, ReorderRequest(module_ids=["m1", "m1"]))

    def test_unknown_id(self, service, project):
        """Should reject unknown ids."""
        with pytest.raises(InvalidSequenceEditError):
            service.reorder(project, ReorderRequest(module_ids=["x"]))


class TestRenumber:
    """Tests for the renumber helper."""

    def test_unsequenced_go_last(self):
        """Should place unsequenced modules after sequenced ones."""
        modules = load_modules([
            {"id": "a", "serialNumber": "A"},
            {"id": "b", "serialNumber": "B", "buildSequence": 5},
            {"id": "c", "serialNumber": "C", "buildSequence": 2},
        ])

        result, changed = renumber(modules, [])

        assert [m.build_sequence for m in result] == [3, 2, 1]
        assert changed == 3

    def test_decimal_slot_becomes_whole(self):
        """Should renumber a decimal-slot prototype into a whole position."""
        modules = load_modules([
            {"id": "a", "serialNumber": "A", "buildSequence": 13},
            {"id": "p", "serialNumber": "P", "buildSequence": 12.1, "isPrototype": True},
            {"id": "b", "serialNumber": "B", "buildSequence": 12},
        ])

        result, _ = renumber(modules, [])

        assert [m.build_sequence for m in result] == [3, 2, 1]

    def test_int_and_str_ids_match(self):
        """Should match numeric ids given as strings."""
        modules = load_modules([
            {"id": 1, "serialNumber": "A", "buildSequence": 1},
            {"id": 2, "serialNumber": "B", "buildSequence": 2},
        ])

        result, _ = renumber(modules, ["2"])

        assert [m.build_sequence for m in result] == [2, 1]


class TestInsertPrototype:
    """Tests for insert_prototype."""

    def test_inserts_and_shifts(self, service, fake_store, project):
        """Should take the position and push later modules back one."""
        # Arrange
        request = PrototypeInsertRequest(
            serial_number="25-P001",
            position=2,
            module={"unitType": "Studio"},
        )

        # Act
        result = service.insert_prototype(project, request)

        # Assert
        assert sequences(fake_store, project) == {
            "25-0001": 1,
            "25-P001": 2,
            "25-0002": 3,
            "25-0003": 4,
        }
        prototype = fake_store.modules(project)[-1]
        assert prototype["isPrototype"] is True
        assert prototype["unitType"] == "Studio"
        assert prototype["id"]
        assert result.modules_changed == 3
        assert result.sequence_conflicts == []
        assert fake_store.history[0]["change_type"] == "prototype_insert"

    def test_existing_serial(self, service, project):
        """Should reject a serial number already in the project."""
        request = PrototypeInsertRequest(serial_number="25-0001", position=1)

        with pytest.raises(InvalidSequenceEditError):
            service.insert_prototype(project, request)

    def test_insert_at_leaves_unsequenced(self):
        """Should not shift unsequenced modules."""
        modules = load_modules([
            {"id": "a", "serialNumber": "A", "buildSequence": 0},
            {"id": "b", "serialNumber": "B", "buildSequence": 1},
        ])
        prototype = Module(id="p", serial_number="P")

        result, shifted = insert_at(modules, prototype, 1)

        assert [m.build_sequence for m in result] == [0, 2, 1]
        assert shifted == 1
