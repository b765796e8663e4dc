"""
Human-readable report of a scan
"""

from typing import List

from .core import find_same_names, format_size
from .resolver import Outcome, PairResult, ScanResult


def format_pair(pair: PairResult) -> str:
    """Render one duplicate pair or collision as a single report line"""
    duplicate, original = pair.duplicate.path, pair.original.path

    if pair.outcome is Outcome.NOT_IDENTICAL:
        return f"Hash collision but not identical: {duplicate} and {original}"

    prefix = f"Duplicate: {duplicate} and {original}"
    if pair.outcome is Outcome.DELETED:
        return f"{prefix}: deleted {pair.target.path}"
    if pair.outcome is Outcome.DRY_RUN:
        return f"{prefix}: would delete {pair.target.path}"
    if pair.outcome is Outcome.NO_RULE:
        return f"{prefix}: unresolved duplicate, no rule found"
    if pair.outcome is Outcome.FAILED:
        return f"{prefix}: deletion failed: {pair.error}"
    return f"{prefix}: skipped, original already removed"


def get_report_lines(
        result: ScanResult,
        show_files: bool = True,
        show_names: bool = False
) -> List[str]:
    """
    Generate report lines for a scan

    Args:
        result: Result of find_and_resolve
        show_files: Include one line per processed file
        show_names: Include groups of files sharing a base name

    Returns:
        List of report lines
    """
    lines = []

    if show_files:
        for record in result.records:
            lines.append(f"File: {record.path} ({format_size(record.size)}) {record.hexdigest}")

    for pair in result.pairs:
        lines.append(format_pair(pair))

    if show_names:
        same_names = find_same_names(result.records)
        for name, group in same_names.items():
            lines.append(f"Same name: {name}")
            for record in group:
                lines.append(f"  {record.path}")

    duplicates = result.duplicates
    removed = result.with_outcome(Outcome.DELETED, Outcome.DRY_RUN)
    total_size = sum(record.size for record in result.records)

    lines.append("-" * 60)
    lines.append(f"Scanned {len(result.records)} files ({format_size(total_size)})")
    lines.append(f"Duplicates: {len(duplicates)}")
    if result.live:
        lines.append(f"Deleted: {len(removed)}, freed {format_size(result.reclaimed_space)}")
    else:
        lines.append(f"Would delete: {len(removed)}, would free {format_size(result.reclaimed_space)}")
    lines.append(f"Unresolved: {len(result.with_outcome(Outcome.NO_RULE))}")
    lines.append(f"Hash collisions: {len(result.collisions)}")

    failures = result.with_outcome(Outcome.FAILED)
    if failures:
        lines.append(f"Deletion failures: {len(failures)}")
    skipped = result.with_outcome(Outcome.ORIGINAL_REMOVED)
    if skipped:
        lines.append(f"Skipped, original already removed: {len(skipped)}")
    if result.cancelled:
        lines.append("Cancelled before all files were processed")

    return lines


def get_report(result: ScanResult, show_files: bool = True, show_names: bool = False) -> str:
    return "\n".join(get_report_lines(result, show_files=show_files, show_names=show_names))
