"""
Core functionality for finding duplicate files
"""

import hashlib
import logging
import os
import stat
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .errors import FileReadError, ShortReadError, ScanCancelled

logger = logging.getLogger(__name__)

HASH_METHODS = ("md5", "sha256")
CHUNK_SIZE = 8192
COMPARE_CHUNK_SIZE = 64 * 1024
PROGRESS_STEP = 100


@dataclass
class FileRecord:
    """One regular file found during the scan"""
    path: str
    base_name: str
    size: int
    digest: Optional[bytes] = None

    @property
    def hexdigest(self) -> str:
        return self.digest.hex() if self.digest is not None else ""

    def __str__(self) -> str:
        return f"{self.path} {self.hexdigest}"


class DuplicateIndex:
    """
    Mapping from digest to the first record seen with that digest

    The stored record is never replaced: later records sharing the digest
    are handed back the original so they can be compared against it.
    """

    def __init__(self):
        self._by_digest: Dict[bytes, FileRecord] = {}

    def lookup_or_insert(self, digest: bytes, record: FileRecord) -> Tuple[FileRecord, bool]:
        """
        Return the stored record for digest, storing record if there is none

        Args:
            digest: Content digest of record
            record: Candidate record

        Returns:
            Tuple of (stored_record, found). found is False when record
            was just stored.
        """
        existing = self._by_digest.get(digest)
        if existing is not None:
            return existing, True

        self._by_digest[digest] = record
        return record, False

    def get(self, digest: bytes) -> Optional[FileRecord]:
        return self._by_digest.get(digest)

    def __contains__(self, digest: bytes) -> bool:
        return digest in self._by_digest

    def __len__(self) -> int:
        return len(self._by_digest)


def find_files(directory: str) -> List[FileRecord]:
    """
    Recursively list regular files under a directory

    Directories and files are visited in name order so two scans of the
    same tree yield records in the same order.

    Args:
        directory: Root to scan

    Returns:
        List of records with digest unset
    """
    if not os.path.isdir(directory):
        raise FileReadError(directory, "not a directory")

    root_dir = os.path.abspath(directory)
    records = []

    def on_error(error: OSError):
        raise FileReadError(error.filename or root_dir, error.strerror or error)

    for root, dirs, files in os.walk(root_dir, onerror=on_error):
        dirs.sort()
        for filename in sorted(files):
            filepath = os.path.join(root, filename)
            try:
                info = os.lstat(filepath)
            except OSError as e:
                raise FileReadError(filepath, e.strerror or e) from e

            if not stat.S_ISREG(info.st_mode):
                logger.debug("Skipping non-regular file %s", filepath)
                continue

            records.append(FileRecord(path=filepath, base_name=filename, size=info.st_size))

    return records


def _new_hasher(hash_method: str):
    if hash_method not in HASH_METHODS:
        raise ValueError(f"hash_method must be one of {', '.join(HASH_METHODS)}")
    return hashlib.new(hash_method)


def calculate_file_hash(
        record: FileRecord,
        hash_method: str = "md5",
        chunk_size: int = CHUNK_SIZE
) -> bytes:
    """
    Calculate the digest of a file's full contents

    Args:
        record: File to hash; its size must already be known
        hash_method: "md5" or "sha256"
        chunk_size: Size of chunks to read at once

    Returns:
        Raw digest bytes

    Raises:
        FileReadError: the file cannot be opened or read
        ShortReadError: bytes read differ from record.size
    """
    hasher = _new_hasher(hash_method)
    bytes_read = 0
    try:
        with open(record.path, 'rb') as f:
            for chunk in iter(lambda: f.read(chunk_size), b''):
                hasher.update(chunk)
                bytes_read += len(chunk)
    except OSError as e:
        raise FileReadError(record.path, e.strerror or e) from e

    if bytes_read != record.size:
        raise ShortReadError(record.path, record.size, bytes_read)

    return hasher.digest()


def calculate_checksums(
        records: List[FileRecord],
        hash_method: str = "md5",
        workers: int = 1,
        progress_callback=None,
        cancel_event=None
) -> None:
    """
    Assign a digest to every record

    Hashing may run on a thread pool, but each digest is assigned on the
    calling thread. The first error aborts the whole pass.

    Args:
        records: Records from find_files
        hash_method: "md5" or "sha256"
        workers: Number of hashing threads
        progress_callback: Called as (processed, total) every 100 files
        cancel_event: threading.Event checked between files
    """
    _new_hasher(hash_method)
    total = len(records)
    processed = 0

    def check_cancelled():
        if cancel_event is not None and cancel_event.is_set():
            raise ScanCancelled("Cancelled while calculating checksums")

    def hash_one(record: FileRecord) -> bytes:
        check_cancelled()
        return calculate_file_hash(record, hash_method)

    def done(record: FileRecord, digest: bytes):
        nonlocal processed
        record.digest = digest
        processed += 1
        logger.debug("%s %s", digest.hex(), record.path)
        if progress_callback and processed % PROGRESS_STEP == 0:
            progress_callback(processed, total)

    if workers <= 1:
        for record in records:
            done(record, hash_one(record))
        return

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(hash_one, record): record for record in records}
        try:
            for future in as_completed(futures):
                done(futures[future], future.result())
        except BaseException:
            for future in futures:
                future.cancel()
            raise


def _read_chunk(f, record: FileRecord, chunk_size: int) -> bytes:
    try:
        return f.read(chunk_size)
    except OSError as e:
        raise FileReadError(record.path, e.strerror or e) from e


def _drain(f, record: FileRecord, chunk_size: int) -> int:
    remaining = 0
    for chunk in iter(lambda: _read_chunk(f, record, chunk_size), b''):
        remaining += len(chunk)
    return remaining


def _check_size(record: FileRecord, bytes_read: int) -> None:
    if bytes_read != record.size:
        raise ShortReadError(record.path, record.size, bytes_read)


def _current_size(f, record: FileRecord) -> int:
    try:
        return os.fstat(f.fileno()).st_size
    except OSError as e:
        raise FileReadError(record.path, e.strerror or e) from e


def is_identical(
        record1: FileRecord,
        record2: FileRecord,
        chunk_size: int = COMPARE_CHUNK_SIZE
) -> bool:
    """
    Compare two files byte for byte

    Both files are streamed side by side and the comparison stops at the
    first differing chunk, after checking that neither file has changed
    size since the scan.

    Args:
        record1: First file
        record2: Second file
        chunk_size: Size of chunks compared at once

    Returns:
        True only if sizes match and every byte matches

    Raises:
        FileReadError: either file cannot be re-read
        ShortReadError: a file's length differs from its recorded size
    """
    if record1.size != record2.size:
        return False

    try:
        f1 = open(record1.path, 'rb')
    except OSError as e:
        raise FileReadError(record1.path, e.strerror or e) from e
    try:
        f2 = open(record2.path, 'rb')
    except OSError as e:
        f1.close()
        raise FileReadError(record2.path, e.strerror or e) from e

    with f1, f2:
        read1 = read2 = 0
        while True:
            chunk1 = _read_chunk(f1, record1, chunk_size)
            chunk2 = _read_chunk(f2, record2, chunk_size)
            read1 += len(chunk1)
            read2 += len(chunk2)

            if len(chunk1) != len(chunk2):
                # One file ended early; at least one no longer matches its size
                _check_size(record1, read1 + _drain(f1, record1, chunk_size))
                _check_size(record2, read2 + _drain(f2, record2, chunk_size))
                return False

            if not chunk1:
                break

            if chunk1 != chunk2:
                _check_size(record1, _current_size(f1, record1))
                _check_size(record2, _current_size(f2, record2))
                return False

    _check_size(record1, read1)
    _check_size(record2, read2)
    return True


def find_same_names(records: List[FileRecord]) -> Dict[str, List[FileRecord]]:
    """
    Group records sharing a base name

    Returns:
        Dictionary of base name to records, only names seen more than once
    """
    by_name = defaultdict(list)
    for record in records:
        by_name[record.base_name].append(record)

    return {name: group for name, group in by_name.items() if len(group) > 1}


def format_size(size_bytes: int) -> str:
    """
    Convert bytes to human-readable format

    Args:
        size_bytes: Size in bytes

    Returns:
        Human readable size string
    """
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.1f} TB"
