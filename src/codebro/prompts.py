from __future__ import annotations

import io
import posixpath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from codebro.config import Markers, ScannedFile

EXT2LANG = {
    ".js": "javascript",
    ".jsx": "jsx",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".json": "json",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".md": "markdown",
    ".py": "python",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".sh": "bash",
}

NEW_FILE_PLACEHOLDER = "// New File"

ANALYSIS_SYSTEM_PROMPT = """You are CodeBro, an expert full-stack developer.
Your goal is to analyze a project directory and generate a roadmap to make it a runnable website.

You will receive a PROJECT MAP (list of files) and the content of CORE files.
Your task is to:
1. Identify the primary tech stack.
2. Summarize the current state.
3. Identify missing files, configs, or bugs.
4. Generate a detailed, numbered, step-by-step plan.

Structure your response clearly:
Tech Stack: [Detected tech stack]
Current State: [Brief summary]
Issues Identified:
- [Issue 1]
Plan to make it runnable:
1. [Step 1]
"""


def fence_language(relative_path: str) -> str:
    """Code fence language for a file, "" when unknown."""
    return EXT2LANG.get(posixpath.splitext(relative_path)[1].lower(), "")


def fix_system_prompt(markers: Markers) -> str:
    """System instruction for the fix loop, spelling out the change block format."""
    return (
        f"You are CodeBro. When asked to implement a step, you MUST use the {markers.start} markers. "
        "You have a high-level map of the project, but you only see file content when the user provides it.\n\n"
        "Write every file change as:\n"
        f"{markers.start}\n"
        f"{markers.file} <path relative to the project root>\n"
        f"{markers.action} CREATE | MODIFY | DELETE\n"
        f"{markers.content}\n"
        "```\n<complete new file content>\n```\n"
        f"{markers.end}\n\n"
        f"Instead of {markers.content} you may send {markers.patch} followed by a ```diff block "
        "holding a unified diff against the content you were shown. "
        f"Omit both for {markers.action} DELETE.\n"
        "\n"
        "Structure your first answer as:\n"
        "Tech Stack: ...\nCurrent State: ...\nIssues Identified:\n- ...\nPlan to make it runnable:\n1. ..."
    )


def format_files(files: Sequence[ScannedFile]) -> str:
    """Render files as `FILE:` headers followed by fenced content."""
    out = io.StringIO()
    for scanned in files:
        lang = fence_language(scanned.relative_path)
        out.write(f"FILE: {scanned.relative_path}\nCONTENT:\n```{lang}\n{scanned.content}\n```\n\n")
    return out.getvalue()


def build_analysis_prompt(
    project_map: str,
    core_files: Sequence[ScannedFile],
    deep_files: Sequence[ScannedFile] = (),
) -> str:
    """User prompt for `analyze`: the map, the core config files and optionally more content."""
    prompt = f"Here is my project structure:\n{project_map}\n\nCORE CONFIGURATION:\n{format_files(core_files)}"
    core_paths = {f.relative_path for f in core_files}
    extra = [f for f in deep_files if f.relative_path not in core_paths]
    if extra:
        prompt += f"SOURCE FILES (highest priority first):\n{format_files(extra)}"
    return prompt + "Analyze this and provide a plan."


def build_plan_prompt(project_map: str, package_json: ScannedFile | None) -> str:
    """First user prompt of the fix loop: the map plus `package.json`."""
    core = package_json.content if package_json else "Not found"
    return (
        f"PROJECT MAP:\n{project_map}\n\nCORE FILE (package.json):\n{core}\n\n"
        "Analyze the project structure and provide a roadmap to fix it."
    )


def build_step_prompt(step: str, target_file: str, current: ScannedFile | None) -> str:
    """Surgical prompt for one roadmap step: only the target file is shown."""
    body = current.content if current else NEW_FILE_PLACEHOLDER
    return f"Action: {step}.\n\nTARGET FILE: {target_file}\nCURRENT CONTENT:\n```\n{body}\n```"
