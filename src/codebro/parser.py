"""Extract structured instructions from free-form model output.

Everything here is best-effort against text we do not control: parsing never
raises, it returns fewer results. `parse_changes` also reports what it dropped
so callers (and tests) can see why a block did not turn into a change.
"""

from __future__ import annotations

import re
from functools import lru_cache

from codebro.config import Analysis, ChangeAction, CodeChange, Markers, ParseDiagnostic, ParseResult

_ACTIONS = "|".join(a.value for a in ChangeAction)
_EXCERPT_CHARS = 80

# fence body: optional, so that an empty ``` ``` block still matches
_FENCE_TAIL = r"[ \t]*\r?\n(?:[ \t]*\r?\n)*[ \t]*```{info}[ \t]*\r?\n(?:(.*?)\r?\n)??[ \t]*```"


def _key(literal: str) -> str:
    # no word character right before the key: FILE: must not match PROFILE:
    return rf"(?<!\w){re.escape(literal)}\s*:?"


@lru_cache(maxsize=8)
def _patterns(markers: Markers) -> tuple[re.Pattern[str], ...]:
    flags = re.IGNORECASE | re.DOTALL
    file_re = re.compile(_key(markers.file) + r"\s*([^\n\r]+)", re.IGNORECASE)
    action_re = re.compile(_key(markers.action) + rf"\s*({_ACTIONS})\b", re.IGNORECASE)
    content_re = re.compile(_key(markers.content) + _FENCE_TAIL.format(info=r"[^\n`]*"), flags)
    patch_re = re.compile(_key(markers.patch) + _FENCE_TAIL.format(info=r"diff"), flags)
    return file_re, action_re, content_re, patch_re


def _excerpt(segment: str) -> str:
    flat = " ".join(segment.split())
    return flat if len(flat) <= _EXCERPT_CHARS else flat[: _EXCERPT_CHARS - 1] + "…"


def _clean_path(raw: str) -> str:
    return raw.strip().strip("`'\"").strip()


def parse_changes(text: str, markers: Markers | None = None) -> ParseResult:
    """Extract file change blocks from a model response.

    The response is split on the start marker and each piece is read on its
    own; the next start marker or the end of the text closes a block, and an
    explicit end marker, when present, cuts off whatever follows it. A block
    becomes a `CodeChange` only when it names both a FILE and an ACTION.
    CONTENT takes precedence over PATCH when a block carries both.

    Args:
        text (str): raw response text
        markers (Markers | None): sentinel literals; defaults to the standard ones

    Returns:
        ParseResult: changes in order of appearance, and a diagnostic for every
            block that was dropped
    """
    markers = markers or Markers()
    file_re, action_re, content_re, patch_re = _patterns(markers)

    changes: list[CodeChange] = []
    diagnostics: list[ParseDiagnostic] = []
    for index, raw_segment in enumerate((text or "").split(markers.start)):
        segment = raw_segment.split(markers.end, 1)[0]
        if not segment.strip():
            continue

        file_match = file_re.search(segment)
        action_match = action_re.search(segment)
        file_name = _clean_path(file_match.group(1)) if file_match else ""

        if not file_name or not action_match:
            preamble = index == 0 and not file_match and not action_match
            if not preamble:
                missing = [name for name, ok in (("FILE", file_name), ("ACTION", action_match)) if not ok]
                diagnostics.append(
                    ParseDiagnostic(
                        segment=index,
                        reason=f"missing {' and '.join(missing)}",
                        excerpt=_excerpt(segment),
                    ),
                )
            continue

        content: str | None = None
        patch: str | None = None
        if content_match := content_re.search(segment):
            content = content_match.group(1) or ""
        elif patch_match := patch_re.search(segment):
            patch = (patch_match.group(1) or "").strip("\r\n")

        changes.append(
            CodeChange(
                file=file_name,
                action=ChangeAction(action_match.group(1).upper()),
                content=content,
                patch=patch,
            ),
        )

    return ParseResult(changes=tuple(changes), diagnostics=tuple(diagnostics))


_TECH_STACK_RE = re.compile(r"Tech Stack:\**[ \t]*([^\n]+)", re.IGNORECASE)
_SUMMARY_RE = re.compile(r"Current State:\**[ \t]*([^\n]+)", re.IGNORECASE)
_ISSUES_RE = re.compile(r"Issues Identified:\**[ \t]*\r?\n(?:[ \t]*\r?\n)*((?:[ \t]*[-*] [^\n]+\n?)+)", re.IGNORECASE)
_PLAN_RE = re.compile(r"Plan to make it runnable:\**[ \t]*\r?\n(?:[ \t]*\r?\n)*((?:[ \t]*\d+\. [^\n]+\n?)+)", re.IGNORECASE)
_STEP_PREFIX_RE = re.compile(r"^\d+\.")


def parse_analysis(text: str) -> Analysis:
    """Read the roadmap sections out of a planning response.

    Recognized headings are `Tech Stack:` (comma list), `Current State:`,
    `Issues Identified:` (bullets) and `Plan to make it runnable:` (numbered
    steps). Missing sections come back empty.

    Args:
        text (str): raw response text

    Returns:
        Analysis: the extracted roadmap
    """
    text = text or ""
    tech_stack: list[str] = []
    if match := _TECH_STACK_RE.search(text):
        tech_stack = [s.strip() for s in match.group(1).strip("* ").split(",") if s.strip()]

    summary = ""
    if match := _SUMMARY_RE.search(text):
        summary = match.group(1).strip()

    issues: list[str] = []
    if match := _ISSUES_RE.search(text):
        bullets = (line.strip() for line in match.group(1).splitlines())
        issues = [b[2:].strip() for b in bullets if b[:2] in {"- ", "* "}]

    plan: list[str] = []
    if match := _PLAN_RE.search(text):
        plan = [
            _STEP_PREFIX_RE.sub("", line.strip()).strip()
            for line in match.group(1).splitlines()
            if _STEP_PREFIX_RE.match(line.strip())
        ]

    return Analysis(tech_stack=tech_stack, summary=summary, issues=issues, plan=plan)
