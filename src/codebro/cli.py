"""
codebro: plan and apply fixes to a local web project with a chat completion model.

Usage
-----
    codebro analyze ./my-app            # map the project and print a roadmap
    codebro analyze ./my-app --deep     # also send source files, within the budget
    codebro fix ./my-app                # interactive, step-by-step fixing
    codebro --log-file codebro.log fix ./my-app

The API key is read from XAI_API_KEY, VITE_XAI_API_KEY or API_KEY, either in
the environment or in `.env.local` / `.env`.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import ValidationError

from codebro import __version__
from codebro.analyze import analyze_project
from codebro.completion import CompletionClient
from codebro.console import Terminal
from codebro.exceptions import CodeBroError
from codebro.fix import fix_project
from codebro.logging import logger, setup_logging
from codebro.settings import load_env, load_settings

if TYPE_CHECKING:
    from collections.abc import Sequence


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="codebro",
        description="AI-assisted analysis and step-by-step fixing of a project directory.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("--config", type=Path, default=None, help="YAML file overriding default settings.")

    sub = p.add_subparsers(dest="command", required=True)
    analyze = sub.add_parser("analyze", help="Analyze a project and generate a roadmap.")
    analyze.add_argument("path", type=Path, help="Project directory.")
    analyze.add_argument(
        "--deep",
        action="store_true",
        help="Also send file contents, highest priority first, within the character budget.",
    )
    fix = sub.add_parser("fix", help="Interactively apply the roadmap, one step at a time.")
    fix.add_argument("path", type=Path, help="Project directory.")
    return p


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_file or None)
    terminal = Terminal()

    project = args.path
    if not project.is_dir():
        terminal.error(f"Not a directory: {project}")
        return 1

    load_env()
    try:
        settings = load_settings(args.config)
        client = CompletionClient(settings)
    except (CodeBroError, FileNotFoundError, TypeError, ValidationError, yaml.YAMLError) as e:
        logger.error("startup_failed", error=str(e))
        terminal.error(str(e))
        return 1

    logger.info("command_start", command=args.command, path=str(project))
    if args.command == "analyze":
        ok = analyze_project(project, settings, client, terminal, deep=args.deep) is not None
    else:
        ok = fix_project(project, settings, client, terminal)
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
