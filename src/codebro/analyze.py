from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from codebro.config import NO_FILES_FOUND, Conversation
from codebro.exceptions import CompletionError, DirectoryScanError
from codebro.logging import logger
from codebro.prompts import ANALYSIS_SYSTEM_PROMPT, build_analysis_prompt
from codebro.scanner import DirectoryScanner

if TYPE_CHECKING:
    from codebro.completion import CompletionClient
    from codebro.config import ScannedFile
    from codebro.console import Terminal
    from codebro.settings import Settings


def read_core_files(scanner: DirectoryScanner, root: Path, names: tuple[str, ...]) -> list[ScannedFile]:
    """Read whichever of the core configuration files exist."""
    return [f for name in names if (f := scanner.read_file(root, name)) is not None]


def analyze_project(
    project_path: Path,
    settings: Settings,
    client: CompletionClient,
    terminal: Terminal,
    *,
    deep: bool = False,
) -> str | None:
    """Map a project, send the map and core files to the model and print its roadmap.

    Args:
        project_path (Path): the project directory
        settings (Settings): configuration
        client (CompletionClient): the completion service
        terminal (Terminal): output surface
        deep (bool): also send file contents, ordered by priority under the character budget

    Returns:
        str | None: the model's analysis, or None when the step was aborted
    """
    root = Path(project_path).resolve()
    scanner = DirectoryScanner(settings)
    terminal.info(f"\nAnalyzing project at: {root}")

    try:
        with terminal.status("Mapping project structure..."):
            project_map = scanner.scan_shallow(root)
    except DirectoryScanError as e:
        terminal.error(f"Failed to map directory: {e}")
        return None
    terminal.success("Project map generated.")

    if project_map == NO_FILES_FOUND:
        terminal.warning("No relevant files found in the directory. Exiting.")
        return None

    terminal.info("Reading core configuration files...")
    core_files = read_core_files(scanner, root, settings.core_files)
    deep_files: list[ScannedFile] = []
    if deep:
        with terminal.status("Reading source files within the context budget..."):
            deep_files = scanner.scan_deep(root)
        terminal.info(f"Including {len(deep_files)} files ({sum(len(f.content) for f in deep_files)} chars).")

    conversation = Conversation()
    conversation.append("system", ANALYSIS_SYSTEM_PROMPT)
    conversation.append("user", build_analysis_prompt(project_map, core_files, deep_files))

    try:
        with terminal.status("Waiting for the model to architect a solution..."):
            response = client.send(conversation.messages, "High-level architectural planning using project map.")
    except CompletionError as e:
        logger.warning("analysis_failed", error=str(e))
        terminal.error(f"Analysis failed: {e}")
        return None

    terminal.success("\n--- Codebase Analysis and Plan ---")
    terminal.text(response)
    terminal.success("----------------------------------")
    terminal.info(f'\nNext step: run "codebro fix {project_path}" to start implementing this plan.')
    return response
