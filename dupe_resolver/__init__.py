"""
Dupe Resolver - A CLI utility to remove duplicate files by directory rules
"""

__version__ = "1.0.0"
__author__ = "Ilya Boyarnikov"
__description__ = "A tool to find duplicate files and resolve them by directory rules"

from .errors import (
    DupeResolverError,
    FileReadError,
    ShortReadError,
    ConfigError,
    DeletionError,
    ScanCancelled,
)
from .core import (
    FileRecord,
    DuplicateIndex,
    find_files,
    calculate_file_hash,
    calculate_checksums,
    is_identical,
    find_same_names,
    format_size,
)
from .rules import Rule, load_rules, parse_rules
from .resolver import (
    Outcome,
    PairResult,
    ScanResult,
    resolve_duplicate,
    find_and_resolve,
)
from .report import get_report_lines, get_report
