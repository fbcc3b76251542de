"""
Import reconciliation.

Matches parsed import rows against a project's stored modules by serial
number and works out what an import would change. Pure functions: the
caller loads modules and persists the plan.

Classification per row:
    new               - no stored module has the serial
    matched-unchanged - every provided field equals the stored value
    matched-changed   - at least one provided field differs
    conflict          - duplicate serial in the import, serial matching
                        several stored modules, or a build sequence that
                        would collide with another module

Execute policy:
    - Without force_overwrite, any matched-changed or conflict row means
      nothing is applied and the caller must confirm.
    - sequence_only touches build_sequence only and never creates modules;
      unmatched rows are counted as skipped. Changed sequences apply
      without force_overwrite; only conflict rows need confirmation.
    - Duplicate-serial and ambiguous rows are never applied.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4
import structlog

from models.module import Module, SEQUENCE_FIELD
from models.module_import import (
    ConflictKind,
    DuplicateSerial,
    ExecuteStatus,
    FieldChange,
    ImportAnalysis,
    RowClassification,
    RowStatus,
    SequenceConflict,
)
from models.sequence_history import SnapshotEntry
from parsers.import_rows import ImportRow

logger = structlog.get_logger(__name__)

# Columns an import may never overwrite
PROTECTED_FIELDS = frozenset({"id", "row_number"})


@dataclass
class ModuleWrite:
    """One module to insert or replace."""
    kind: str  # "insert" or "update"
    module: Module
    serial_number: str


@dataclass
class ImportPlan:
    """Outcome of planning an execute."""
    analysis: ImportAnalysis
    status: ExecuteStatus
    modules: list[Module]
    writes: list[ModuleWrite] = field(default_factory=list)
    skipped_serials: list[str] = field(default_factory=list)
    withheld_serials: list[str] = field(default_factory=list)
    sequence_conflicts: list[SequenceConflict] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.status == ExecuteStatus.APPLIED

    @property
    def inserted(self) -> int:
        return sum(1 for w in self.writes if w.kind == "insert")

    @property
    def updated(self) -> int:
        return sum(1 for w in self.writes if w.kind == "update")


# ===================
# HELPERS
# ===================

def _same_value(old: Any, new: Any) -> bool:
    """Compare a stored value with an imported one."""
    if old == new:
        return True
    if old is None or new is None or isinstance(old, bool) or isinstance(new, bool):
        return False
    # "61" in an extra column vs 61 stored
    return str(old).strip() == str(new).strip()


def _row_changes(row: ImportRow, module: Module, sequence_only: bool) -> list[FieldChange]:
    """Provided fields whose value differs from the stored module."""
    if sequence_only:
        names = [SEQUENCE_FIELD] if row.has(SEQUENCE_FIELD) else []
    else:
        names = [name for name in row.fields if name not in PROTECTED_FIELDS]

    changes = []
    for name in names:
        new = row.fields[name]
        if new is None or new == "":
            continue
        old = module.get_value(name)
        if not _same_value(old, new):
            changes.append(FieldChange(field=name, old=old, new=new))
    return changes


def _new_module(row: ImportRow, assign_id: bool = True) -> Module:
    """Module created from an unmatched row."""
    data = {k: v for k, v in row.fields.items() if k not in PROTECTED_FIELDS}
    data["build_sequence"] = row.build_sequence
    return Module.model_validate({
        **data,
        "id": str(uuid4()) if assign_id else None,
        "serial_number": row.serial_number,
    })


def find_sequence_conflicts(modules: list[Module]) -> list[SequenceConflict]:
    """
    Build sequences shared by more than one module.

    Unsequenced modules (None or 0) are ignored.
    """
    by_sequence: dict[int, list[Module]] = defaultdict(list)
    for module in modules:
        if module.is_sequenced:
            by_sequence[module.build_sequence].append(module)

    return [
        SequenceConflict(
            build_sequence=sequence,
            serial_numbers=[m.serial_number for m in group],
            module_ids=[m.id for m in group],
        )
        for sequence, group in sorted(by_sequence.items())
        if len(group) > 1
    ]


def _unique_by_serial(modules: list[Module]) -> dict[str, Module]:
    """Serial → module, for serials held by exactly one module."""
    counts = Counter(m.serial_number for m in modules if m.serial_number)
    return {
        m.serial_number: m
        for m in modules
        if m.serial_number and counts[m.serial_number] == 1
    }


def _apply_rows(
    modules: list[Module],
    classified: list[tuple[ImportRow, RowClassification]],
    sequence_only: bool,
    assign_ids: bool = True,
) -> tuple[list[Module], list[ModuleWrite]]:
    """Apply classified rows to a copy of the module list."""
    result = list(modules)
    position = {id(m): i for i, m in enumerate(result)}
    by_serial = _unique_by_serial(modules)
    writes: list[ModuleWrite] = []

    for row, classification in classified:
        if classification.status == RowStatus.NEW:
            if sequence_only:
                continue
            created = _new_module(row, assign_ids)
            result.append(created)
            writes.append(ModuleWrite("insert", created, row.serial_number))
            continue

        if not classification.changes:
            continue
        current = by_serial.get(row.serial_number)
        if current is None:
            continue
        updated = current.apply({c.field: c.new for c in classification.changes})
        result[position[id(current)]] = updated
        writes.append(ModuleWrite("update", updated, row.serial_number))

    return result, writes


# ===================
# ANALYZE
# ===================

def analyze_import(
    project_id: str,
    rows: list[ImportRow],
    current_modules: list[Module],
    sequence_only: bool = False,
) -> ImportAnalysis:
    """
    Classify import rows against stored modules (dry run).

    Args:
        project_id: Project being imported into
        rows: Parsed import rows
        current_modules: Project's stored modules
        sequence_only: Compare build_sequence only

    Returns:
        ImportAnalysis; running it twice on the same input gives the
        same result
    """
    serial_counts = Counter(row.serial_number for row in rows)
    duplicates = [
        DuplicateSerial(serial_number=serial, count=count)
        for serial, count in serial_counts.items()
        if count > 1
    ]
    duplicate_serials = {d.serial_number for d in duplicates}

    stored: dict[str, list[Module]] = defaultdict(list)
    for module in current_modules:
        if module.serial_number:
            stored[module.serial_number].append(module)

    classified: list[tuple[ImportRow, RowClassification]] = []
    for row in rows:
        matches = stored.get(row.serial_number, [])
        module_id = matches[0].id if len(matches) == 1 else None

        if row.serial_number in duplicate_serials:
            classification = RowClassification(
                row_number=row.row_number,
                serial_number=row.serial_number,
                status=RowStatus.CONFLICT,
                module_id=module_id,
                conflict=ConflictKind.DUPLICATE_SERIAL,
                conflict_detail=f"Serial appears {serial_counts[row.serial_number]} times in the import",
            )
        elif len(matches) > 1:
            classification = RowClassification(
                row_number=row.row_number,
                serial_number=row.serial_number,
                status=RowStatus.CONFLICT,
                conflict=ConflictKind.AMBIGUOUS_MATCH,
                conflict_detail=f"Serial matches {len(matches)} stored modules",
            )
        elif not matches:
            classification = RowClassification(
                row_number=row.row_number,
                serial_number=row.serial_number,
                status=RowStatus.NEW,
            )
        else:
            changes = _row_changes(row, matches[0], sequence_only)
            classification = RowClassification(
                row_number=row.row_number,
                serial_number=row.serial_number,
                status=RowStatus.MATCHED_CHANGED if changes else RowStatus.MATCHED_UNCHANGED,
                module_id=module_id,
                changes=changes,
            )
        classified.append((row, classification))

    # Project the import as if fully applied and flag rows whose
    # sequence would collide with another module.
    projected, writes = _apply_rows(current_modules, classified, sequence_only, assign_ids=False)
    conflicts = find_sequence_conflicts(projected)
    contested = {c.build_sequence for c in conflicts}
    sequence_writers = {
        w.serial_number for w in writes if w.module.build_sequence in contested
    }

    for row, classification in classified:
        if classification.status not in (RowStatus.NEW, RowStatus.MATCHED_CHANGED):
            continue
        if classification.serial_number not in sequence_writers:
            continue
        if classification.status == RowStatus.MATCHED_CHANGED and SEQUENCE_FIELD not in classification.changed_fields:
            continue
        if classification.status == RowStatus.NEW and (sequence_only or not row.build_sequence):
            continue
        classification.status = RowStatus.CONFLICT
        classification.conflict = ConflictKind.DUPLICATE_SEQUENCE
        classification.conflict_detail = f"Build sequence {row.build_sequence} is used by another module"

    imported = set(serial_counts)
    not_in_import = [
        SnapshotEntry.from_module(m)
        for m in current_modules
        if m.serial_number not in imported
    ]

    analysis = ImportAnalysis(
        project_id=project_id,
        sequence_only=sequence_only,
        rows=[c for _, c in classified],
        not_in_import=not_in_import,
        duplicates_in_import=duplicates,
        sequence_conflicts=conflicts,
    )

    logger.debug(
        "import_analyzed",
        project_id=project_id,
        new=analysis.new_count,
        changed=analysis.changed_count,
        unchanged=analysis.unchanged_count,
        conflicts=analysis.conflict_count,
        not_in_import=len(not_in_import),
    )

    return analysis


# ===================
# EXECUTE
# ===================

def execute_import(
    project_id: str,
    rows: list[ImportRow],
    current_modules: list[Module],
    force_overwrite: bool = False,
    sequence_only: bool = False,
) -> ImportPlan:
    """
    Plan the writes of an import.

    Args:
        project_id: Project being imported into
        rows: Parsed import rows
        current_modules: Project's stored modules
        force_overwrite: Apply matched-changed and duplicate-sequence rows
        sequence_only: Update build_sequence on matched modules only;
            changed sequences apply without force_overwrite

    Returns:
        ImportPlan with the resulting module list and the ordered writes.
        When confirmation is required the module list is unchanged and
        there are no writes.
    """
    analysis = analyze_import(project_id, rows, current_modules, sequence_only)

    skipped = []
    if sequence_only:
        skipped = [c.serial_number for c in analysis.rows if c.status == RowStatus.NEW]

    # sequence_only: only conflict rows wait for confirmation
    if sequence_only:
        blocking_statuses = (RowStatus.CONFLICT,)
    else:
        blocking_statuses = (RowStatus.MATCHED_CHANGED, RowStatus.CONFLICT)
    blocking = [c.serial_number for c in analysis.rows if c.status in blocking_statuses]

    if blocking and not force_overwrite:
        logger.info(
            "import_confirmation_required",
            project_id=project_id,
            changed=analysis.changed_count,
            conflicts=analysis.conflict_count,
        )
        return ImportPlan(
            analysis=analysis,
            status=ExecuteStatus.CONFIRMATION_REQUIRED,
            modules=list(current_modules),
            skipped_serials=skipped,
            withheld_serials=blocking,
            sequence_conflicts=find_sequence_conflicts(current_modules),
        )

    # Everything except unresolvable matches
    matched = _unique_by_serial(current_modules)
    applicable: list[tuple[ImportRow, RowClassification]] = []
    withheld: list[str] = []
    for row, classification in zip(rows, analysis.rows):
        if classification.conflict in (ConflictKind.DUPLICATE_SERIAL, ConflictKind.AMBIGUOUS_MATCH):
            withheld.append(classification.serial_number)
            continue
        if classification.status == RowStatus.CONFLICT:
            # Duplicate sequence accepted under force; re-derive the write
            is_match = row.serial_number in matched
            status = RowStatus.MATCHED_CHANGED if is_match else RowStatus.NEW
            classification = classification.model_copy(update={"status": status})
        applicable.append((row, classification))

    modules, writes = _apply_rows(current_modules, applicable, sequence_only)

    status = ExecuteStatus.APPLIED if writes else ExecuteStatus.NO_CHANGES
    plan = ImportPlan(
        analysis=analysis,
        status=status,
        modules=modules,
        writes=writes,
        skipped_serials=skipped,
        withheld_serials=withheld,
        sequence_conflicts=find_sequence_conflicts(modules),
    )

    logger.info(
        "import_planned",
        project_id=project_id,
        status=status.value,
        inserted=plan.inserted,
        updated=plan.updated,
        skipped=len(skipped),
        withheld=len(withheld),
        sequence_conflicts=len(plan.sequence_conflicts),
    )

    return plan
