"""
Custom exception hierarchy for harness-builder.

All exceptions inherit from HarnessBuilderError so callers can handle build
failures uniformly. Each exception type carries an ErrorCategory, letting a
caller tell bad input, a missing dependency and an external tool failure apart
without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class ErrorCategory(str, Enum):
    """Broad classes of build failure."""

    BAD_INPUT = "bad_input"
    MISSING_DEPENDENCY = "missing_dependency"
    EXTERNAL_TOOL = "external_tool"
    ARCHIVE = "archive"
    INTERNAL = "internal"


@dataclass
class HarnessBuilderError(Exception):
    """Base exception for all harness-builder errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    category: ClassVar[ErrorCategory] = ErrorCategory.INTERNAL

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class PreconditionError(HarnessBuilderError):
    """Raised when the API is used incorrectly, e.g. building without an AUT.

    Never retryable: the caller has to fix its code or configuration.
    """

    category: ClassVar[ErrorCategory] = ErrorCategory.BAD_INPUT


@dataclass
class ValidationError(HarnessBuilderError):
    """Raised when caller-supplied input is invalid."""

    field_name: str | None = None

    category: ClassVar[ErrorCategory] = ErrorCategory.BAD_INPUT

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class ResourceNotFoundError(HarnessBuilderError):
    """Raised when a template or other bundled resource cannot be located."""

    resource: str = ""
    searched: list[str] = field(default_factory=list)
    working_directory: str = ""

    category: ClassVar[ErrorCategory] = ErrorCategory.MISSING_DEPENDENCY

    def __str__(self) -> str:
        searched = ", ".join(self.searched) if self.searched else "nowhere"
        return (
            f"The resource '{self.resource}' was not found. "
            f"Searched: {searched}. Working directory: {self.working_directory}"
        )


@dataclass
class ToolNotFoundError(HarnessBuilderError):
    """Raised when a required external tool is not available."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    category: ClassVar[ErrorCategory] = ErrorCategory.MISSING_DEPENDENCY

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"


@dataclass
class ToolExecutionError(HarnessBuilderError):
    """Raised when an external tool exits with a non-zero status.

    The combined stdout/stderr of the tool is kept verbatim in ``output``.
    """

    tool_name: str = ""
    exit_code: int = 0
    output: str = ""

    category: ClassVar[ErrorCategory] = ErrorCategory.EXTERNAL_TOOL

    def __str__(self) -> str:
        output = self.output.strip()
        detail = f"\n{output}" if output else ""
        return f"[{self.tool_name}] exited with status {self.exit_code}: {self.message}{detail}"


@dataclass
class ArchiveError(HarnessBuilderError):
    """Raised when a package archive cannot be read or written."""

    archive_path: str = ""

    category: ClassVar[ErrorCategory] = ErrorCategory.ARCHIVE

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.archive_path}] {base}" if self.archive_path else base


@dataclass
class ArchiveOpenError(ArchiveError):
    """Raised when a path does not exist or is not a valid zip container."""


@dataclass
class EntryNotFoundError(ArchiveError):
    """Raised when a named entry is absent from an archive."""

    entry_name: str = ""


@dataclass
class SigningIdentityError(HarnessBuilderError):
    """Raised while inspecting a keystore.

    The signature-algorithm resolver always catches this and falls back to
    the default algorithm.
    """

    keystore_path: str = ""
    alias: str = ""

    category: ClassVar[ErrorCategory] = ErrorCategory.BAD_INPUT
