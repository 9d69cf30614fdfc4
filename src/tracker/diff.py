"""Comparison of two directory snapshots."""

from typing import Dict, Iterable, List

from .models import ChangeKind, ChangeRecord, Snapshot


def diff_snapshots(old: Snapshot, new: Snapshot) -> List[ChangeRecord]:
    """
    Classify every path that differs between two snapshots.

    A path only in ``new`` is ADDED, only in ``old`` is REMOVED, and in both
    with a different modification time or size is MODIFIED. Records are
    sorted by path so identical inputs always give identical output.

    Args:
        old: The previously observed snapshot
        new: The current snapshot

    Returns:
        Change records ordered lexicographically by path
    """
    records = []

    for path, meta in new.items():
        previous = old.get(path)
        if previous is None:
            records.append(ChangeRecord(path, ChangeKind.ADDED))
        elif previous.modified_time != meta.modified_time or previous.size != meta.size:
            records.append(ChangeRecord(path, ChangeKind.MODIFIED))

    for path in old:
        if path not in new:
            records.append(ChangeRecord(path, ChangeKind.REMOVED))

    records.sort(key=lambda r: r.path)
    return records


def summarize(records: Iterable[ChangeRecord]) -> Dict[ChangeKind, List[str]]:
    """Group record paths by kind, keeping their relative order."""
    grouped: Dict[ChangeKind, List[str]] = {kind: [] for kind in ChangeKind}
    for record in records:
        grouped[record.kind].append(record.path)
    return grouped
