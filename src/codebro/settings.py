from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from codebro.config import (
    API_KEY_ENV_VARS,
    BACKUP_DIR,
    CORE_FILES,
    DEFAULT_API_BASE_URL,
    DEFAULT_IGNORED_PATHS,
    DEFAULT_MODEL,
    KEY_FILES,
    MAX_FILE_SIZE_KB,
    MAX_TOTAL_CONTEXT_CHARS,
    Markers,
)

if TYPE_CHECKING:
    from collections.abc import Mapping


class Settings(BaseModel):
    """Immutable configuration threaded into each codebro component."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ignore_patterns: tuple[str, ...] = Field(
        default=DEFAULT_IGNORED_PATHS,
        description="Ignore rules: `*.ext` suffixes or exact path segments.",
    )
    key_files: frozenset[str] = Field(
        default=frozenset(KEY_FILES),
        description="Base names boosted by the priority scorer.",
    )
    core_files: tuple[str, ...] = Field(
        default=CORE_FILES,
        description="Files read verbatim for the analysis prompt.",
    )
    max_file_size_kb: int = Field(default=MAX_FILE_SIZE_KB, gt=0, description="Per-file size ceiling.")
    max_total_context_chars: int = Field(
        default=MAX_TOTAL_CONTEXT_CHARS,
        ge=0,
        description="Deep scan character budget.",
    )
    markers: Markers = Field(default_factory=Markers, description="Change block sentinels.")
    model: str = Field(default=DEFAULT_MODEL, description="Chat completion model name.")
    api_base_url: str = Field(default=DEFAULT_API_BASE_URL, description="OpenAI-compatible endpoint.")
    api_key: str = Field(default="", repr=False, description="API key for the completion service.")
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    backup_dir: Path = Field(default=Path(BACKUP_DIR), description="Backups, relative to the project root.")

    @property
    def max_file_size_bytes(self) -> int:
        """Per-file size ceiling in bytes."""
        return self.max_file_size_kb * 1024


def load_env(cwd: Path | None = None) -> None:
    """Load `.env.local` (preferred) or the nearest `.env` into the process environment.

    Existing environment variables are never overridden.

    Both files are looked up from `cwd` upwards, like `find_dotenv` does from
    the process working directory.

    Args:
        cwd: Directory to start from. Defaults to the current directory.
    """
    if cwd is None:
        env_file = find_dotenv(".env.local", usecwd=True) or find_dotenv(usecwd=True)
    else:
        env_file = _find_upwards(Path(cwd), ".env.local") or _find_upwards(Path(cwd), ".env")
    if env_file:
        load_dotenv(env_file, override=False)


def _find_upwards(start: Path, name: str) -> str:
    for directory in (start, *start.resolve().parents):
        candidate = directory / name
        if candidate.is_file():
            return str(candidate)
    return ""


def api_key_from_env(environ: Mapping[str, str] | None = None) -> str:
    """Return the first non-empty API key among the supported variables."""
    env = os.environ if environ is None else environ
    for name in API_KEY_ENV_VARS:
        value = env.get(name, "").strip()
        if value:
            return value
    return ""


def load_settings(
    config_file: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,  # noqa: ANN401
) -> Settings:
    """Build settings from defaults, an optional YAML file, the environment and overrides.

    Precedence, lowest first: defaults, YAML file, environment (API key only),
    keyword overrides.

    Args:
        config_file: Optional YAML mapping whose keys are `Settings` fields.
        environ: Environment to read the API key from. Defaults to `os.environ`.
        **overrides: Field values that win over everything else.

    Raises:
        FileNotFoundError: if `config_file` is given but does not exist.
        yaml.YAMLError: if `config_file` is not valid YAML.
        TypeError: if the YAML document is not a mapping.

    Returns:
        Settings: the validated, frozen configuration.
    """
    data: dict[str, Any] = {}
    if config_file is not None:
        if not config_file.is_file():
            raise FileNotFoundError(config_file)
        loaded = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            msg = f"{config_file} must contain a mapping, got {type(loaded).__name__}"
            raise TypeError(msg)
        data.update(loaded)

    key = api_key_from_env(environ)
    if key:
        data["api_key"] = key

    data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings.model_validate(data)
