from __future__ import annotations

from pathlib import Path

import pytest

from codebro.applier import ChangeApplier, apply_unified_diff, render_diff
from codebro.config import DiffKind, DiffLine
from codebro.exceptions import PatchConflictError, PatchFormatError, UnsafePathError


@pytest.mark.unit
def test_render_diff_marks_replaced_line() -> None:
    lines = render_diff("a\nb\nc", "a\nB\nc")

    assert lines == [
        DiffLine(kind=DiffKind.UNCHANGED, text="a"),
        DiffLine(kind=DiffKind.REMOVED, text="b"),
        DiffLine(kind=DiffKind.ADDED, text="B"),
        DiffLine(kind=DiffKind.UNCHANGED, text="c"),
    ]


@pytest.mark.unit
def test_render_diff_for_new_file_is_all_additions() -> None:
    lines = render_diff("", "x\ny")

    assert [(line.kind, line.text) for line in lines] == [(DiffKind.ADDED, "x"), (DiffKind.ADDED, "y")]


@pytest.mark.unit
def test_render_diff_collapses_long_unchanged_runs() -> None:
    old = "\n".join(str(i) for i in range(10))
    new = "\n".join([*(str(i) for i in range(9)), "nine"])

    lines = render_diff(old, new)

    assert lines[0].kind == DiffKind.UNCHANGED
    assert lines[0].collapsed
    assert lines[0].count == 9
    assert lines[0].text == "... (9 unchanged lines)"
    assert [(line.kind, line.text) for line in lines[1:]] == [(DiffKind.REMOVED, "9"), (DiffKind.ADDED, "nine")]


@pytest.mark.unit
def test_render_diff_keeps_short_unchanged_runs() -> None:
    lines = render_diff("1\n2\n3\n4\nold", "1\n2\n3\n4\nnew")

    assert [line.text for line in lines[:4]] == ["1", "2", "3", "4"]
    assert not any(line.collapsed for line in lines)


@pytest.fixture
def applier(tmp_path: Path) -> ChangeApplier:
    return ChangeApplier(tmp_path)


@pytest.mark.unit
def test_resolve_stays_inside_root(applier: ChangeApplier, tmp_path: Path) -> None:
    assert applier.resolve("src/a.ts") == tmp_path.resolve() / "src" / "a.ts"
    assert applier.resolve("src\\b.ts") == tmp_path.resolve() / "src" / "b.ts"


@pytest.mark.unit
@pytest.mark.parametrize("relative_path", ["../evil.ts", "src/../../evil.ts", "", "."])
def test_resolve_rejects_escaping_paths(applier: ChangeApplier, relative_path: str) -> None:
    with pytest.raises(UnsafePathError):
        applier.resolve(relative_path)


@pytest.mark.unit
def test_backup_of_missing_file_is_a_no_op(applier: ChangeApplier, tmp_path: Path) -> None:
    assert applier.backup(tmp_path / "new.ts") is None
    assert not (tmp_path / ".codebro").exists()


@pytest.mark.unit
def test_backup_copies_file_under_backup_dir(applier: ChangeApplier, tmp_path: Path) -> None:
    source = tmp_path / "src" / "a.ts"
    source.parent.mkdir()
    source.write_text("old", encoding="utf-8")

    backup = applier.backup(source)

    assert backup == tmp_path.resolve() / ".codebro" / "backups" / "src" / "a.ts.bak"
    assert backup.read_text(encoding="utf-8") == "old"


@pytest.mark.unit
def test_backup_dir_can_be_absolute(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    (project / "a.ts").write_text("old", encoding="utf-8")
    applier = ChangeApplier(project, tmp_path / "backups")

    backup = applier.backup(project / "a.ts")

    assert backup == tmp_path / "backups" / "a.ts.bak"


@pytest.mark.unit
def test_write_creates_parents_and_leaves_no_temp_file(applier: ChangeApplier, tmp_path: Path) -> None:
    target = tmp_path / "src" / "deep" / "a.ts"

    applier.write(target, "line\r\nline2")

    assert target.read_bytes() == b"line\r\nline2"
    assert [p.name for p in target.parent.iterdir()] == ["a.ts"]


@pytest.mark.unit
def test_write_overwrites_existing_file(applier: ChangeApplier, tmp_path: Path) -> None:
    target = tmp_path / "a.ts"
    target.write_text("old", encoding="utf-8")

    applier.write(target, "new")

    assert target.read_text(encoding="utf-8") == "new"


@pytest.mark.unit
def test_delete(applier: ChangeApplier, tmp_path: Path) -> None:
    target = tmp_path / "a.ts"
    target.write_text("old", encoding="utf-8")

    assert applier.delete(target)
    assert not target.exists()
    assert not applier.delete(target)


PATCH = "--- a/f.txt\n+++ b/f.txt\n@@ -1,3 +1,3 @@\n a\n-b\n+B\n c"


@pytest.mark.unit
def test_apply_patch_returns_new_content_without_writing(applier: ChangeApplier, tmp_path: Path) -> None:
    target = tmp_path / "f.txt"
    target.write_text("a\nb\nc\n", encoding="utf-8")

    assert applier.apply_patch(target, PATCH) == "a\nB\nc\n"
    assert target.read_text(encoding="utf-8") == "a\nb\nc\n"


@pytest.mark.unit
def test_apply_patch_conflict_when_file_changed(applier: ChangeApplier, tmp_path: Path) -> None:
    target = tmp_path / "f.txt"
    target.write_text("a\nx\nc\n", encoding="utf-8")

    with pytest.raises(PatchConflictError) as exc_info:
        applier.apply_patch(target, PATCH)

    assert exc_info.value.hunk == 1
    assert "changed since the patch was generated" in str(exc_info.value)


@pytest.mark.unit
def test_apply_patch_creates_from_dev_null(applier: ChangeApplier, tmp_path: Path) -> None:
    patch = "--- /dev/null\n+++ b/new.txt\n@@ -0,0 +1,2 @@\n+hello\n+world"

    assert applier.apply_patch(tmp_path / "new.txt", patch) == "hello\nworld\n"


@pytest.mark.unit
def test_apply_patch_on_missing_file_raises(applier: ChangeApplier, tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        applier.apply_patch(tmp_path / "missing.txt", PATCH)


@pytest.mark.unit
def test_apply_unified_diff_without_hunks_is_a_format_error() -> None:
    with pytest.raises(PatchFormatError):
        apply_unified_diff("a\n", "replace b with B please", file=Path("f.txt"))


@pytest.mark.unit
def test_apply_unified_diff_finds_shifted_hunk() -> None:
    patch = "@@ -5,2 +5,2 @@\n b\n-c\n+C"

    assert apply_unified_diff("a\nb\nc\n", patch, file=Path("f.txt")) == "a\nb\nC\n"


@pytest.mark.unit
def test_apply_unified_diff_applies_several_hunks() -> None:
    content = "\n".join(str(i) for i in range(1, 11)) + "\n"
    patch = "@@ -1,2 +1,3 @@\n 1\n+1.5\n 2\n@@ -9,2 +10,2 @@\n 9\n-10\n+ten"

    result = apply_unified_diff(content, patch, file=Path("f.txt"))

    assert result.splitlines() == ["1", "1.5", "2", "3", "4", "5", "6", "7", "8", "9", "ten"]


@pytest.mark.unit
def test_apply_unified_diff_preserves_crlf_and_missing_final_newline() -> None:
    patch = "@@ -1,2 +1,2 @@\n a\n-b\n+B"

    assert apply_unified_diff("a\r\nb\r\n", patch, file=Path("f.txt")) == "a\r\nB\r\n"
    assert apply_unified_diff("a\nb", patch, file=Path("f.txt")) == "a\nB"


@pytest.mark.unit
def test_apply_unified_diff_edits_lines_that_look_like_file_headers() -> None:
    content = "-- old comment\nselect 1;\n"
    patch = "--- a/q.sql\n+++ b/q.sql\n@@ -1,2 +1,2 @@\n--- old comment\n+++ new comment\n select 1;"

    assert apply_unified_diff(content, patch, file=Path("q.sql")) == "++ new comment\nselect 1;\n"


@pytest.mark.unit
def test_apply_unified_diff_skips_file_header_after_finished_hunk() -> None:
    patch = "@@ -1,2 +1,2 @@\n a\n-b\n+B\n--- a/f.txt\n+++ b/f.txt\n@@ -3 +3 @@\n-c\n+C"

    assert apply_unified_diff("a\nb\nc\n", patch, file=Path("f.txt")) == "a\nB\nC\n"
