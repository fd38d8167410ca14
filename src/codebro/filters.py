from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING

from codebro.config import KEY_FILES

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable

PACKAGE_JSON_PRIORITY = 200
BUILD_CONFIG_PRIORITY = 180
KEY_FILE_BONUS = 100
ENTRY_POINT_BONUS = 80

_BUILD_CONFIG_NAMES = frozenset({"tsconfig.json", "vite.config.ts"})
_ENTRY_POINT_PREFIXES = ("index.", "main.")


def normalize_path(relative_path: str) -> str:
    """Return `relative_path` with backslashes turned into forward slashes.

    Args:
        relative_path (str): a path relative to a project root, any platform separator

    Returns:
        str: the same path with `/` separators
    """
    return relative_path.replace("\\", "/")


class PathClassifier:
    """Decide whether a relative path is excluded from scanning.

    Two rule shapes are supported, and a path is excluded if ANY rule matches:

    - `*.ext`: the normalized path ends with `.ext`;
    - anything else: the rule equals the base name or one of the path segments.

    This is deliberately not a glob engine.
    """

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = tuple(patterns)
        self._suffixes = tuple(p[1:] for p in self.patterns if p.startswith("*."))
        self._names = frozenset(p for p in self.patterns if not p.startswith("*."))

    def should_ignore(self, relative_path: str) -> bool:
        """Check a path against the ignore rules.

        Args:
            relative_path (str): path relative to the scanned root

        Returns:
            bool: True if any rule matches
        """
        standardized = normalize_path(relative_path)
        if self._suffixes and standardized.endswith(self._suffixes):
            return True
        # the base name is the last segment, so one pass covers both rules
        return any(part in self._names for part in standardized.split("/"))

    def prunes_directory(self, name: str) -> bool:
        """Whether a directory with this name can be skipped without visiting its files."""
        return name in self._names


def priority_of(relative_path: str, key_files: Collection[str] = KEY_FILES) -> int:
    """Score a file by how much it reveals about the project's stack and entry points.

    Tiers, highest first: `package.json` (200); `tsconfig.json` and
    `vite.config.ts` (180); otherwise a key-file bonus (+100) and an
    `index.`/`main.` prefix bonus (+80) that add up.

    Args:
        relative_path (str): path relative to the project root
        key_files (Collection[str]): base names that earn the key-file bonus

    Returns:
        int: the priority, 0 for ordinary files
    """
    base_name = posixpath.basename(normalize_path(relative_path))

    if base_name == "package.json":
        return PACKAGE_JSON_PRIORITY
    if base_name in _BUILD_CONFIG_NAMES:
        return BUILD_CONFIG_PRIORITY

    priority = 0
    if base_name in key_files:
        priority += KEY_FILE_BONUS
    if base_name.startswith(_ENTRY_POINT_PREFIXES):
        priority += ENTRY_POINT_BONUS
    return priority
