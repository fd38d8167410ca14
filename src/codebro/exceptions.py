from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CodeBroError(Exception):
    """Base exception for errors in the codebro package."""


@dataclass(frozen=True)
class DirectoryScanError(CodeBroError):
    """Raised when the root of a scan cannot be read."""

    root: Path
    reason: str
    message: str = "The project directory could not be read."

    def __str__(self) -> str:
        return f"{self.message} ({self.root}: {self.reason})"


@dataclass(frozen=True)
class CompletionError(CodeBroError):
    """Raised when the remote completion service does not return usable text."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class MissingApiKeyError(CodeBroError):
    """Raised when no API key is configured for the completion service."""

    env_vars: tuple[str, ...]
    message: str = "Missing API key. Set one of the supported environment variables in your .env file."

    def __str__(self) -> str:
        return f"{self.message} ({', '.join(self.env_vars)})"


@dataclass(frozen=True)
class UnsafePathError(CodeBroError):
    """Raised when a change targets a path outside the project root."""

    root: Path
    target: str
    message: str = "Refusing to touch a path outside the project root."

    def __str__(self) -> str:
        return f"{self.message} ({self.target})"


@dataclass(frozen=True)
class PatchError(CodeBroError):
    """Base class for patch application failures."""

    file: Path
    message: str

    def __str__(self) -> str:
        return f"{self.file}: {self.message}"


@dataclass(frozen=True)
class PatchFormatError(PatchError):
    """Raised when the patch text holds no usable hunk."""


@dataclass(frozen=True)
class PatchConflictError(PatchError):
    """Raised when a hunk does not match the file; it changed since the patch was generated."""

    hunk: int = 0
