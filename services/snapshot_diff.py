"""
Snapshot comparison.

Diffs two snapshot entry lists by module id.
"""

import sys
from typing import Iterable, Union

from models.sequence_history import SequenceChange, SnapshotEntry

# Sorts after any real build sequence
UNSEQUENCED_SORT_KEY = sys.maxsize


def _entries(items: Iterable[Union[SnapshotEntry, dict]]) -> list[SnapshotEntry]:
    return [
        item if isinstance(item, SnapshotEntry) else SnapshotEntry.model_validate(item)
        for item in items
    ]


def _sort_key(change: SequenceChange) -> int:
    return change.new_sequence or UNSEQUENCED_SORT_KEY


def compare_snapshots(
    old_entries: Iterable[Union[SnapshotEntry, dict]],
    new_entries: Iterable[Union[SnapshotEntry, dict]],
) -> list[SequenceChange]:
    """
    Per-module sequence changes between two snapshots.

    Emits changed modules, then modules only in ``new_entries``
    (is_new), then modules only in ``old_entries`` (is_removed), and
    sorts the lot by new sequence with unsequenced and removed modules
    last. The sort is stable, so ties keep that order.

    Args:
        old_entries: Earlier snapshot (entries or stored dicts)
        new_entries: Later snapshot

    Returns:
        List of SequenceChange; empty when both sides match
    """
    old_by_id = {e.module_id: e for e in _entries(old_entries)}
    new_by_id = {e.module_id: e for e in _entries(new_entries)}

    changes: list[SequenceChange] = []

    for module_id, new in new_by_id.items():
        old = old_by_id.get(module_id)
        if old is not None and old.build_sequence != new.build_sequence:
            changes.append(SequenceChange(
                module_id=module_id,
                serial_number=new.serial_number,
                old_sequence=old.build_sequence,
                new_sequence=new.build_sequence,
            ))

    for module_id, new in new_by_id.items():
        if module_id not in old_by_id:
            changes.append(SequenceChange(
                module_id=module_id,
                serial_number=new.serial_number,
                old_sequence=None,
                new_sequence=new.build_sequence,
                is_new=True,
            ))

    for module_id, old in old_by_id.items():
        if module_id not in new_by_id:
            changes.append(SequenceChange(
                module_id=module_id,
                serial_number=old.serial_number,
                old_sequence=old.build_sequence,
                new_sequence=None,
                is_removed=True,
            ))

    return sorted(changes, key=_sort_key)
