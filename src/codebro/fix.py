from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

from codebro.applier import ChangeApplier, render_diff
from codebro.config import ChangeAction, Conversation
from codebro.exceptions import CompletionError, DirectoryScanError, PatchError, UnsafePathError
from codebro.logging import logger
from codebro.parser import parse_analysis, parse_changes
from codebro.prompts import build_plan_prompt, build_step_prompt, fix_system_prompt
from codebro.scanner import DirectoryScanner

if TYPE_CHECKING:
    from codebro.completion import CompletionClient
    from codebro.config import Analysis, CodeChange
    from codebro.console import Terminal
    from codebro.settings import Settings

EXIT_COMMANDS = frozenset({"exit", "quit"})


def step_index(command: str) -> int | None:
    """Zero-based step index from a command such as "step 2", or None."""
    digits = re.sub(r"\D", "", command)
    if not digits:
        return None
    return int(digits) - 1


class FixSession:
    """Interactive, step-by-step repair of a project.

    The model only ever sees the project map, `package.json` and the single
    file the user names for each step. Every change it proposes is shown as a
    diff and applied only after confirmation, with a backup of what it replaces.
    """

    def __init__(
        self,
        project_path: Path,
        settings: Settings,
        client: CompletionClient,
        terminal: Terminal,
        applier: ChangeApplier | None = None,
    ) -> None:
        self.root = Path(project_path).resolve()
        self.settings = settings
        self.client = client
        self.terminal = terminal
        self.scanner = DirectoryScanner(settings)
        self.applier = applier or ChangeApplier(self.root, settings.backup_dir)
        self.conversation = Conversation()
        self.conversation.append("system", fix_system_prompt(settings.markers))
        self.analysis: Analysis | None = None

    def plan(self) -> bool:
        """Map the project and ask the model for a roadmap.

        Returns:
            bool: True when a roadmap was received
        """
        self.terminal.info(f"\nInitiating budget-friendly fix mode: {self.root}")
        try:
            with self.terminal.status("Mapping project structure..."):
                project_map = self.scanner.scan_shallow(self.root)
        except DirectoryScanError as e:
            self.terminal.error(f"Failed to map directory: {e}")
            return False
        self.terminal.success("Project map generated.")

        package_json = self.scanner.read_file(self.root, "package.json")
        self.conversation.append("user", build_plan_prompt(project_map, package_json))
        try:
            with self.terminal.status("Waiting for the model to architect a solution..."):
                response = self.client.send(self.conversation.messages, "Initial Architecture Planning")
        except CompletionError as e:
            self.terminal.error(f"Analysis failed: {e}")
            return False

        self.conversation.append("assistant", response)
        self.analysis = parse_analysis(response)
        self.terminal.success("Plan ready.")
        self.terminal.bold("\n--- CODEBRO ROADMAP ---")
        self.terminal.text(response)
        return True

    def run(self) -> bool:
        """Plan, then read commands until the user exits.

        Returns:
            bool: False when no roadmap could be obtained
        """
        if not self.plan():
            return False
        while True:
            command = self.terminal.ask('\nNext action (e.g., "step 1", "exit")').lower().strip()
            if command in EXIT_COMMANDS:
                break
            if "step" in command:
                self.run_step(step_index(command))
            elif command:
                self.terminal.warning('Unknown command. Type "step N" or "exit".')
        self.terminal.info("Exiting CodeBro fix mode. Happy coding!")
        return True

    def run_step(self, index: int | None) -> int:
        """Implement one roadmap step.

        Args:
            index (int | None): zero-based step index

        Returns:
            int: how many changes were applied
        """
        plan = self.analysis.plan if self.analysis else []
        if index is None or not 0 <= index < len(plan):
            self.terminal.error("Step not found in the current roadmap.")
            return 0

        step = plan[index]
        self.terminal.info(f"\nImplementing: {step}")
        target_file = self.terminal.ask("Which file should I read for this step? (e.g. src/App.tsx)")
        if not target_file:
            self.terminal.warning("No file given; step skipped.")
            return 0

        current = self.scanner.read_file(self.root, target_file)
        self.conversation.append("user", build_step_prompt(step, target_file, current))
        try:
            with self.terminal.status(f"Reading {target_file} and generating fix..."):
                response = self.client.send(self.conversation.messages, f"Applying fix to {target_file}")
        except CompletionError as e:
            self.terminal.error(f"Generation failed: {e}")
            return 0
        self.conversation.append("assistant", response)
        self.terminal.success(f"Changes suggested for {target_file}.")

        result = parse_changes(response, self.settings.markers)
        for diagnostic in result.diagnostics:
            logger.info("change_block_dropped", segment=diagnostic.segment, reason=diagnostic.reason)
            self.terminal.warning(f"Ignored a change block ({diagnostic.reason}): {diagnostic.excerpt}")
        if not result.changes:
            self.terminal.warning("No file changes found in the response.")
            self.terminal.code(response)
            return 0

        return sum(1 for change in result.changes if self.review_change(change))

    def review_change(self, change: CodeChange) -> bool:
        """Show a change as a diff and apply it if the user confirms.

        Args:
            change (CodeChange): the parsed change

        Returns:
            bool: True if the change was written to disk
        """
        self.terminal.bold(f"\nPROPOSED CHANGE: {change.file} ({change.action})")
        try:
            target = self.applier.resolve(change.file)
        except UnsafePathError as e:
            self.terminal.error(str(e))
            return False

        existing = self.scanner.read_file(self.root, change.file)
        old = existing.content if existing else ""

        try:
            if change.action == ChangeAction.DELETE:
                return self._delete(change, target, old)
            if change.content is not None:
                new = change.content
            elif change.patch is not None:
                new = self.applier.apply_patch(target, change.patch)
            else:
                self.terminal.warning(f"No content or patch provided for {change.file}; skipped.")
                return False

            self.terminal.show_diff(render_diff(old, new))
            if not self.terminal.confirm(f"Apply this change to {change.file}?"):
                return False
            self.applier.backup(target)
            self.applier.write(target, new)
        except PatchError as e:
            self.terminal.error(f"Could not apply patch: {e}")
            return False
        except (OSError, UnicodeDecodeError) as e:
            self.terminal.error(f"Failed to update {change.file}: {e}")
            return False

        self.terminal.success(f"Successfully updated {change.file}")
        return True

    def _delete(self, change: CodeChange, target: Path, old: str) -> bool:
        if not target.is_file():
            self.terminal.warning(f"{change.file} does not exist; nothing to delete.")
            return False
        self.terminal.show_diff(render_diff(old, ""))
        if not self.terminal.confirm(f"Delete {change.file}?"):
            return False
        self.applier.backup(target)
        self.applier.delete(target)
        self.terminal.success(f"Deleted {change.file}")
        return True


def fix_project(project_path: Path, settings: Settings, client: CompletionClient, terminal: Terminal) -> bool:
    """Run an interactive fix session on `project_path`."""
    return FixSession(project_path, settings, client, terminal).run()
