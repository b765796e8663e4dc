"""
Rule-based resolution of verified duplicate pairs
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .core import DuplicateIndex, FileRecord, is_identical
from .errors import DeletionError
from .rules import Rule, normalize_directory

logger = logging.getLogger(__name__)


class Outcome(Enum):
    NOT_IDENTICAL = "hash collision"
    NO_RULE = "no rule found"
    DRY_RUN = "would delete"
    DELETED = "deleted"
    FAILED = "deletion failed"
    ORIGINAL_REMOVED = "original already removed"


@dataclass
class PairResult:
    """What happened to one record whose digest was already indexed"""
    original: FileRecord
    duplicate: FileRecord
    outcome: Outcome
    target: Optional[FileRecord] = None
    error: Optional[str] = None


@dataclass
class ScanResult:
    records: List[FileRecord]
    live: bool = False
    pairs: List[PairResult] = field(default_factory=list)
    cancelled: bool = False

    def with_outcome(self, *outcomes: Outcome) -> List[PairResult]:
        return [pair for pair in self.pairs if pair.outcome in outcomes]

    @property
    def duplicates(self) -> List[PairResult]:
        return [pair for pair in self.pairs if pair.outcome is not Outcome.NOT_IDENTICAL]

    @property
    def collisions(self) -> List[PairResult]:
        return self.with_outcome(Outcome.NOT_IDENTICAL)

    @property
    def reclaimed_space(self) -> int:
        """Bytes deleted in live mode, or that would be deleted in a dry run"""
        return sum(
            pair.target.size
            for pair in self.with_outcome(Outcome.DELETED, Outcome.DRY_RUN)
        )


def _remove(record: FileRecord) -> None:
    try:
        os.remove(record.path)
    except OSError as e:
        raise DeletionError(record.path, e.strerror or e) from e


def resolve_duplicate(
        record1: FileRecord,
        record2: FileRecord,
        rules: Sequence[Rule],
        live: bool = False,
        resolve_symlinks: bool = False
) -> Tuple[Outcome, Optional[FileRecord]]:
    """
    Decide which of two identical files to remove, and remove it when live

    The first rule whose keep/remove directories are the parents of the two
    records, in either order, wins. Only the immediate parent directory is
    compared, never a subtree.

    Args:
        record1: First of two files known to be identical
        record2: Second file
        rules: Ordered rules
        live: Delete the target instead of only reporting it
        resolve_symlinks: Compare real paths of directories

    Returns:
        Tuple of (outcome, target). target is None when no rule matched.

    Raises:
        DeletionError: removing the target failed
    """
    dir1 = normalize_directory(os.path.dirname(record1.path), resolve_symlinks)
    dir2 = normalize_directory(os.path.dirname(record2.path), resolve_symlinks)

    for rule in rules:
        rule = rule.resolved(resolve_symlinks)
        if dir1 == rule.keep and dir2 == rule.remove:
            target = record2
        elif dir1 == rule.remove and dir2 == rule.keep:
            target = record1
        else:
            continue

        if not live:
            logger.info("Would delete %s", target.path)
            return Outcome.DRY_RUN, target

        logger.info("Deleting %s", target.path)
        _remove(target)
        return Outcome.DELETED, target

    return Outcome.NO_RULE, None


def find_and_resolve(
        records: List[FileRecord],
        rules: Sequence[Rule],
        live: bool = False,
        resolve_symlinks: bool = False,
        cancel_event=None
) -> ScanResult:
    """
    Detect duplicates among hashed records and resolve each pair

    Records are processed in order. Each record is checked against the
    first record seen with its digest; a digest match is confirmed byte
    for byte before any rule is applied. A failed deletion is recorded and
    processing moves on to the next record.

    Args:
        records: Records with digests assigned
        rules: Ordered rules
        live: Delete files instead of reporting what would be deleted
        resolve_symlinks: Compare real paths of directories
        cancel_event: threading.Event checked between records

    Returns:
        ScanResult holding one PairResult per digest match
    """
    result = ScanResult(records=records, live=live)
    index = DuplicateIndex()
    removed = set()

    for record in records:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Cancelled before %s", record.path)
            result.cancelled = True
            break

        if record.digest is None:
            raise ValueError(f"No digest calculated for {record.path}")

        original, found = index.lookup_or_insert(record.digest, record)
        if not found:
            continue

        if original.path in removed:
            logger.info("Skipping %s: original %s was already removed", record.path, original.path)
            result.pairs.append(PairResult(original, record, Outcome.ORIGINAL_REMOVED))
            continue

        if not is_identical(original, record):
            logger.warning("Hash collision but not identical: %s and %s", record.path, original.path)
            result.pairs.append(PairResult(original, record, Outcome.NOT_IDENTICAL))
            continue

        logger.info("Duplicate found: %s and %s", record.path, original.path)
        try:
            outcome, target = resolve_duplicate(original, record, rules, live, resolve_symlinks)
        except DeletionError as e:
            logger.error("%s", e)
            target = original if e.path == original.path else record
            result.pairs.append(PairResult(original, record, Outcome.FAILED, target, str(e)))
            continue

        if outcome is Outcome.DELETED:
            removed.add(target.path)
        result.pairs.append(PairResult(original, record, outcome, target))

    return result
