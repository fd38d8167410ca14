from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from codebro.config import NO_FILES_FOUND, ScannedFile
from codebro.exceptions import DirectoryScanError
from codebro.filters import PathClassifier, normalize_path, priority_of
from codebro.logging import logger

if TYPE_CHECKING:
    from codebro.settings import Settings

_BINARY_MARKERS = ("\ufffd", "\x00")


def looks_binary(content: str) -> bool:
    """Whether decoded text carries a replacement character or a NUL byte."""
    return any(marker in content for marker in _BINARY_MARKERS)


class DirectoryScanner:
    """Walk a project tree and produce listings or budgeted file contents.

    The scanner is stateless between calls: scanning an unchanged tree twice
    gives identical results.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.classifier = PathClassifier(settings.ignore_patterns)

    def list_files(self, root: Path) -> list[str]:
        """List every non-ignored file under `root`, dotfiles included.

        Names are sorted within each directory so the order is stable across
        runs and platforms. Ignored directories are pruned.

        Args:
            root (Path): the project root

        Raises:
            DirectoryScanError: if `root` is missing or cannot be listed.

        Returns:
            list[str]: POSIX paths relative to `root`
        """
        root = Path(root).resolve()
        try:
            os.listdir(root)
        except OSError as e:
            raise DirectoryScanError(root=root, reason=e.strerror or str(e)) from e

        def on_error(err: OSError) -> None:
            logger.debug("directory_skipped", path=str(err.filename), reason=str(err))

        results: list[str] = []
        for dirpath, dirs, files in os.walk(root, onerror=on_error):
            dirs[:] = sorted(d for d in dirs if not self.classifier.prunes_directory(d))
            base = Path(dirpath).relative_to(root)
            for name in sorted(files):
                rel = normalize_path((base / name).as_posix())
                if not self.classifier.should_ignore(rel):
                    results.append(rel)
        return results

    def scan_shallow(self, root: Path) -> str:
        """Return the project map: one relative path per line, no content.

        Args:
            root (Path): the project root

        Returns:
            str: newline-joined paths, or `"No files found."` when nothing survives the filters
        """
        files = self.list_files(root)
        logger.info("shallow_scan", root=str(root), files=len(files))
        return "\n".join(files) or NO_FILES_FOUND

    def scan_deep(self, root: Path) -> list[ScannedFile]:
        """Read file contents under a total character budget.

        Files larger than the per-file ceiling, unreadable files and files that
        decode to binary-looking text are skipped. Survivors are ordered by
        priority (stable on ties) and admitted until the next one would push
        the total over `max_total_context_chars`; that file and all the
        following ones are left out.

        Args:
            root (Path): the project root

        Raises:
            DirectoryScanError: if `root` is missing or cannot be listed.

        Returns:
            list[ScannedFile]: the admitted files, highest priority first
        """
        root = Path(root).resolve()
        candidates: list[ScannedFile] = []
        for rel in self.list_files(root):
            full_path = root / rel
            try:
                if full_path.stat().st_size > self.settings.max_file_size_bytes:
                    logger.debug("file_too_big", path=rel)
                    continue
                content = full_path.read_bytes().decode("utf-8", errors="replace")
            except OSError as e:
                logger.debug("file_skipped", path=rel, reason=str(e))
                continue
            if looks_binary(content):
                continue
            candidates.append(
                ScannedFile(
                    path=full_path,
                    relative_path=rel,
                    content=content,
                    priority=priority_of(rel, self.settings.key_files),
                ),
            )

        candidates.sort(key=lambda f: f.priority, reverse=True)

        budget = self.settings.max_total_context_chars
        total = 0
        admitted: list[ScannedFile] = []
        for scanned in candidates:
            if total + len(scanned.content) > budget:
                break
            admitted.append(scanned)
            total += len(scanned.content)

        logger.info(
            "deep_scan",
            root=str(root),
            candidates=len(candidates),
            admitted=len(admitted),
            chars=total,
        )
        return admitted

    def read_file(self, root: Path, relative_path: str) -> ScannedFile | None:
        """Read exactly one file on demand.

        Absence is a normal answer here: callers treat `None` as "new, empty
        file", which is what makes the CREATE workflow possible.

        Args:
            root (Path): the project root
            relative_path (str): path of the file, relative to `root`

        Returns:
            ScannedFile | None: the file, or None if it is missing, unreadable,
                not UTF-8, or outside `root`
        """
        base = Path(root).resolve()
        rel = normalize_path(relative_path.strip())
        full_path = (base / rel).resolve()
        if not full_path.is_relative_to(base):
            return None
        try:
            content = full_path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        return ScannedFile(
            path=full_path,
            relative_path=rel,
            content=content,
            priority=priority_of(rel, self.settings.key_files),
        )
