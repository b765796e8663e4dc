"""
Exceptions raised by dupe resolver
"""


class DupeResolverError(Exception):
    """Base class for all dupe resolver errors"""


class FileReadError(DupeResolverError):
    """A file could not be opened, read or closed"""

    def __init__(self, path: str, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class ShortReadError(DupeResolverError):
    """Bytes read differ from the size recorded at scan time"""

    def __init__(self, path: str, expected: int, actual: int):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Short read: {path}: expected {expected} bytes, read {actual}"
        )


class ConfigError(DupeResolverError):
    """Rule configuration is malformed or invalid"""


class DeletionError(DupeResolverError):
    """Removing a file from the filesystem failed"""

    def __init__(self, path: str, reason):
        self.path = path
        self.reason = reason
        super().__init__(f"Unable to remove: {path}: {reason}")


class ScanCancelled(DupeResolverError):
    """Processing was interrupted between two files"""
