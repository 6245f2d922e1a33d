# promptgen/core/exceptions.py
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PromptGenError(Exception):
    """Base exception for errors raised by promptgen."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or repr(self)


@dataclass(frozen=True)
class InvalidRootError(PromptGenError):
    """Raised when the requested project root is not a directory."""

    path: Path
    message: str = "The selected path is not a directory."


@dataclass(frozen=True)
class EmptyCommandError(PromptGenError):
    """Raised when a command line contains no program to run."""

    command: str
    message: str = "No program given in command line."


@dataclass(frozen=True)
class CommandSpawnError(PromptGenError):
    """Raised when a child process could not be started."""

    command: str
    reason: str

    @property
    def message(self) -> str:
        return f"Failed to start '{self.command}': {self.reason}"
