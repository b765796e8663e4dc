"""
Directory rules deciding which copy of a duplicate survives
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import List

from .errors import ConfigError

logger = logging.getLogger(__name__)


def normalize_directory(path: str, resolve_symlinks: bool = False) -> str:
    """Normalize a directory path so trailing separators never affect matching"""
    if resolve_symlinks:
        return os.path.realpath(path)
    return os.path.normpath(path)


@dataclass(frozen=True)
class Rule:
    """Files in keep survive over identical files in remove"""
    keep: str
    remove: str

    def resolved(self, resolve_symlinks: bool) -> "Rule":
        return Rule(
            keep=normalize_directory(self.keep, resolve_symlinks),
            remove=normalize_directory(self.remove, resolve_symlinks),
        )


def _parse_rule(position: int, item) -> Rule:
    if not isinstance(item, dict):
        raise ConfigError(f"Rule {position}: expected an object with 'keep' and 'remove'")

    values = {}
    for key in ("keep", "remove"):
        value = item.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"Rule {position}: '{key}' must be a non-empty string")
        if not os.path.isabs(value):
            raise ConfigError(f"Rule {position}: '{key}' must be an absolute path: {value}")
        values[key] = normalize_directory(value)

    if values["keep"] == values["remove"]:
        raise ConfigError(f"Rule {position}: 'keep' and 'remove' are the same directory: {values['keep']}")

    return Rule(keep=values["keep"], remove=values["remove"])


def parse_rules(data) -> List[Rule]:
    """
    Build the ordered rule list from a decoded configuration document

    Args:
        data: Either a list of rule objects or an object with a "rules" list

    Returns:
        List of rules in document order

    Raises:
        ConfigError: the document is empty or any rule is invalid
    """
    if isinstance(data, dict):
        if "rules" not in data:
            raise ConfigError("Configuration must contain a 'rules' list")
        data = data["rules"]

    if not isinstance(data, list):
        raise ConfigError("Rules must be a list")

    if not data:
        raise ConfigError("Configuration contains no rules")

    return [_parse_rule(i, item) for i, item in enumerate(data, 1)]


def load_rules(path: str) -> List[Rule]:
    """
    Load rules from a JSON file

    Raises:
        ConfigError: the file cannot be read, is not JSON, or holds invalid rules
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Unable to read rules file {path}: {e}") from e
    except ValueError as e:
        raise ConfigError(f"Rules file {path} is not valid JSON: {e}") from e

    rules = parse_rules(data)
    logger.info("Loaded %d rule(s) from %s", len(rules), path)
    return rules
