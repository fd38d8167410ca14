from __future__ import annotations

import difflib
import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from codebro.config import BACKUP_DIR, COLLAPSE_UNCHANGED_OVER, DiffKind, DiffLine
from codebro.exceptions import PatchConflictError, PatchFormatError, UnsafePathError
from codebro.logging import logger

_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def render_diff(old: str, new: str, *, collapse_over: int = COLLAPSE_UNCHANGED_OVER) -> list[DiffLine]:
    """Compute a line-level diff for review.

    Runs of unchanged lines longer than `collapse_over` are folded into one
    summary entry so the output stays short on large files.

    Args:
        old (str): current content ("" for a new file)
        new (str): proposed content
        collapse_over (int): longest unchanged run still shown line by line

    Returns:
        list[DiffLine]: removed, added and unchanged lines in file order
    """
    old_lines = old.splitlines()
    new_lines = new.splitlines()
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    out: list[DiffLine] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            run = old_lines[i1:i2]
            if len(run) > collapse_over:
                out.append(
                    DiffLine(kind=DiffKind.UNCHANGED, text=f"... ({len(run)} unchanged lines)", count=len(run)),
                )
            else:
                out.extend(DiffLine(kind=DiffKind.UNCHANGED, text=line) for line in run)
            continue
        out.extend(DiffLine(kind=DiffKind.REMOVED, text=line) for line in old_lines[i1:i2])
        out.extend(DiffLine(kind=DiffKind.ADDED, text=line) for line in new_lines[j1:j2])
    return out


@dataclass
class _Hunk:
    old_start: int
    old_count: int
    new_count: int
    lines: list[tuple[str, str]] = field(default_factory=list)

    @property
    def before(self) -> list[str]:
        return [text for op, text in self.lines if op in {" ", "-"}]

    @property
    def after(self) -> list[str]:
        return [text for op, text in self.lines if op in {" ", "+"}]

    @property
    def complete(self) -> bool:
        """Whether the header counts are already covered by the lines read so far."""
        return len(self.before) >= self.old_count and len(self.after) >= self.new_count


def _parse_hunks(patch_text: str) -> list[_Hunk]:
    hunks: list[_Hunk] = []
    current: _Hunk | None = None
    lines = patch_text.splitlines()
    for idx, line in enumerate(lines):
        if match := _HUNK_HEADER_RE.match(line):
            old_count = 1 if match.group(2) is None else int(match.group(2))
            new_count = 1 if match.group(4) is None else int(match.group(4))
            current = _Hunk(old_start=int(match.group(1)), old_count=old_count, new_count=new_count)
            hunks.append(current)
            continue
        next_line = lines[idx + 1] if idx + 1 < len(lines) else ""
        file_header = line.startswith("--- ") and next_line.startswith("+++ ")
        # inside an unfinished hunk, "--- x" is a removed "-- x" line
        if line.startswith("diff ") or (file_header and (current is None or current.complete)):
            current = None
            continue
        if current is None:
            continue
        if line.startswith("\\"):  # "\ No newline at end of file"
            continue
        if line[:1] in {" ", "-", "+"}:
            current.lines.append((line[0], line[1:]))
        elif not line:
            # models often drop the leading space of blank context lines
            current.lines.append((" ", ""))
        else:
            current.lines.append((" ", line))
    return [h for h in hunks if h.lines]


def _locate(lines: list[str], block: list[str], expected: int, lower: int) -> int | None:
    """Find `block` in `lines`, trying `expected` first then moving outward."""
    n = len(block)
    upper = len(lines) - n
    if upper < lower:
        return None
    expected = min(max(expected, lower), upper)
    for distance in range(max(expected - lower, upper - expected) + 1):
        for pos in (expected - distance, expected + distance):
            if lower <= pos <= upper and lines[pos : pos + n] == block:
                return pos
    return None


def apply_unified_diff(content: str, patch_text: str, *, file: Path) -> str:
    """Apply a unified diff to `content` and return the result.

    Each hunk is looked up at the line its header names, shifted by the net
    effect of earlier hunks, then at the nearest exact match. No fuzzy
    matching: context must be identical.

    Args:
        content (str): current file content
        patch_text (str): unified diff text
        file (Path): the file being patched, for error messages

    Raises:
        PatchFormatError: if the text holds no hunk.
        PatchConflictError: if a hunk's context or removed lines are not in the file.

    Returns:
        str: the patched content
    """
    hunks = _parse_hunks(patch_text)
    if not hunks:
        raise PatchFormatError(file=file, message="the patch contains no hunk")

    newline = "\r\n" if "\r\n" in content else "\n"
    trailing_newline = content.endswith("\n") or not content
    lines = content.splitlines()

    offset = 0
    lower = 0
    for number, hunk in enumerate(hunks, start=1):
        before, after = hunk.before, hunk.after
        start = hunk.old_start if hunk.old_count == 0 else hunk.old_start - 1
        pos = _locate(lines, before, start + offset, lower) if before else min(max(start + offset, lower), len(lines))
        if pos is None:
            raise PatchConflictError(
                file=file,
                message=f"hunk {number} does not match; the file changed since the patch was generated",
                hunk=number,
            )
        lines[pos : pos + len(before)] = after
        offset = pos - start + len(after) - len(before)
        lower = pos + len(after)

    result = newline.join(lines)
    if lines and trailing_newline:
        result += newline
    return result


class ChangeApplier:
    """Write confirmed changes into a project, keeping backups of what they replace."""

    def __init__(self, root: Path, backup_dir: Path = Path(BACKUP_DIR)) -> None:
        self.root = Path(root).resolve()
        self.backup_root = backup_dir if backup_dir.is_absolute() else self.root / backup_dir

    def resolve(self, relative_path: str) -> Path:
        """Turn a path from a model response into an absolute path inside the project.

        Args:
            relative_path (str): path relative to the project root

        Raises:
            UnsafePathError: if the path escapes the project root.

        Returns:
            Path: the absolute target path
        """
        target = (self.root / relative_path.strip().replace("\\", "/")).resolve()
        if target == self.root or not target.is_relative_to(self.root):
            raise UnsafePathError(root=self.root, target=relative_path)
        return target

    def backup(self, path: Path) -> Path | None:
        """Copy `path` under the backup directory as `<relative path>.bak`.

        A missing source is not an error: it means the change creates the file.

        Args:
            path (Path): the file about to be overwritten or deleted

        Returns:
            Path | None: the backup location, or None when there was nothing to back up
        """
        if not path.is_file():
            return None
        try:
            rel = path.resolve().relative_to(self.root)
        except ValueError:
            rel = Path(path.name)
        destination = self.backup_root / f"{rel.as_posix()}.bak"
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, destination)
        logger.info("backup_written", source=str(path), backup=str(destination))
        return destination

    def write(self, path: Path, content: str) -> None:
        """Create or overwrite `path` with `content`, creating parent directories.

        The content goes to a temporary sibling first and is moved into place
        with `os.replace`, so readers never see a half-written file.

        Args:
            path (Path): the file to write
            content (str): the full new content
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(content)
            if path.exists():
                shutil.copymode(path, tmp)
            os.replace(tmp, path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.info("file_written", path=str(path), chars=len(content))

    def delete(self, path: Path) -> bool:
        """Remove `path` if it exists.

        Returns:
            bool: True if a file was removed
        """
        if not path.is_file():
            return False
        path.unlink()
        logger.info("file_deleted", path=str(path))
        return True

    def apply_patch(self, path: Path, patch_text: str) -> str:
        """Compute the content of `path` after applying `patch_text`.

        Nothing is written; the caller reviews the result and then calls
        `write`. A missing file is only accepted for `/dev/null` diffs.

        Args:
            path (Path): the file to patch
            patch_text (str): unified diff text

        Raises:
            PatchFormatError: if the text holds no hunk.
            PatchConflictError: if the file no longer matches the patch.
            OSError: if the file cannot be read.

        Returns:
            str: the patched content
        """
        if not path.exists() and "--- /dev/null" in patch_text:
            current = ""
        else:
            current = path.read_bytes().decode("utf-8")
        return apply_unified_diff(current, patch_text, file=path)
