from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path  # noqa: TC003
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

DEFAULT_IGNORED_PATHS: tuple[str, ...] = (
    "node_modules",
    ".git",
    ".vscode",
    ".idea",
    "dist",
    "build",
    ".next",
    ".cache",
    "coverage",
    "logs",
    "tmp",
    "temp",
    "vendor",
    "img",  # images waste context
    "assets",
    "package-lock.json",  # huge and tells the model nothing
    "yarn.lock",
    "*.log",
    "*.tmp",
    "*.bak",
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.svg",
    ".env",
    ".env.local",
    ".codebro",
)

KEY_FILES: tuple[str, ...] = (
    "package.json",
    "tsconfig.json",
    "README.md",
    "index.ts",
    "index.js",
    "server.ts",
    "server.js",
    "App.tsx",
    "App.jsx",
    "main.ts",
    "main.js",
    "webpack.config.js",
    "vite.config.ts",
    "next.config.js",
    "tailwind.config.js",
    "src/index.ts",
    "src/main.ts",
    "public/index.html",
    "assets/index.html",
    "dockerfile",
    "Dockerfile",
    "compose.yml",
    "docker-compose.yml",
)

CORE_FILES: tuple[str, ...] = ("package.json", "tsconfig.json", "vite.config.ts", "server.js")

MAX_FILE_SIZE_KB = 50
MAX_TOTAL_CONTEXT_CHARS = 100_000
NO_FILES_FOUND = "No files found."

DEFAULT_MODEL = "grok-3"
DEFAULT_API_BASE_URL = "https://api.x.ai/v1"
API_KEY_ENV_VARS: tuple[str, ...] = ("XAI_API_KEY", "VITE_XAI_API_KEY", "API_KEY")

BACKUP_DIR = ".codebro/backups"

COLLAPSE_UNCHANGED_OVER = 4


class Markers(BaseModel):
    """Sentinel literals delimiting file change blocks in model output."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: str = Field(default="---CODEBRO_FILE_CHANGE---", description="Opens a change block.")
    end: str = Field(default="---END_CODEBRO_FILE_CHANGE---", description="Optional block terminator.")
    file: str = Field(default="FILE:", description="Target path key.")
    action: str = Field(default="ACTION:", description="Action key.")
    content: str = Field(default="CONTENT:", description="Full content key.")
    patch: str = Field(default="PATCH:", description="Unified diff key.")


class ChangeAction(StrEnum):
    """What a parsed change asks us to do with its target file."""

    CREATE = "CREATE"
    MODIFY = "MODIFY"
    DELETE = "DELETE"


class ScannedFile(BaseModel):
    """A file read from the project, with its scan priority.

    Attributes:
        path: Absolute path to the file on disk.
        relative_path: Path relative to the scanned root, POSIX separators.
        content: Decoded text content.
        priority: Score from the priority scorer; higher survives budget trimming first.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    path: Path = Field(..., description="Absolute file path")
    relative_path: str = Field(..., description="File path relative to the project root")
    content: str = Field(..., description="Decoded text content")
    priority: int = Field(default=0, description="Budget priority")

    @computed_field
    @property
    def size(self) -> int:
        """Number of characters counted against the context budget."""
        return len(self.content)


class CodeChange(BaseModel):
    """A structured file change extracted from a model response."""

    model_config = ConfigDict(frozen=True)

    file: str = Field(..., description="Target path, relative to the project root")
    action: ChangeAction
    content: str | None = Field(default=None, description="Full new content")
    patch: str | None = Field(default=None, description="Unified diff against the current file")


class Message(BaseModel):
    """One turn of a chat conversation."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant", "system"]
    content: str


class Conversation:
    """Ordered chat history. Messages are only ever appended, never edited."""

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    def append(self, role: Literal["user", "assistant", "system"], content: str) -> Message:
        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))


class ParseDiagnostic(BaseModel):
    """Why a segment of a model response did not yield a change."""

    model_config = ConfigDict(frozen=True)

    segment: int = Field(..., ge=0, description="Index of the segment after splitting on the start marker")
    reason: str
    excerpt: str = ""


class ParseResult(BaseModel):
    """Changes found in a response, plus what was dropped and why."""

    model_config = ConfigDict(frozen=True)

    changes: tuple[CodeChange, ...] = ()
    diagnostics: tuple[ParseDiagnostic, ...] = ()


class Analysis(BaseModel):
    """Roadmap extracted from a planning response."""

    model_config = ConfigDict(frozen=True)

    tech_stack: list[str] = Field(default_factory=list)
    summary: str = ""
    issues: list[str] = Field(default_factory=list)
    plan: list[str] = Field(default_factory=list)


class DiffKind(StrEnum):
    """Line classification in a rendered diff."""

    ADDED = auto()
    REMOVED = auto()
    UNCHANGED = auto()


class DiffLine(BaseModel):
    """One line of review output.

    A collapsed run of unchanged lines is a single UNCHANGED entry whose
    ``count`` is the run length and whose ``text`` is a summary.
    """

    model_config = ConfigDict(frozen=True)

    kind: DiffKind
    text: str
    count: int = Field(default=1, ge=1)

    @computed_field
    @property
    def collapsed(self) -> bool:
        """Whether this entry summarizes several unchanged lines."""
        return self.count > 1
