"""Core infrastructure components for harness-builder."""

from .config import Config, RetentionPolicy, get_config
from .exceptions import (
    ArchiveError,
    ArchiveOpenError,
    EntryNotFoundError,
    ErrorCategory,
    HarnessBuilderError,
    PreconditionError,
    ResourceNotFoundError,
    SigningIdentityError,
    ToolExecutionError,
    ToolNotFoundError,
    ValidationError,
)
from .logging import get_logger, setup_logging
from .resources import resolve_resource
from .types import BuildStage, StageResult, StageStatus

__all__ = [
    "Config",
    "RetentionPolicy",
    "get_config",
    "ArchiveError",
    "ArchiveOpenError",
    "EntryNotFoundError",
    "ErrorCategory",
    "HarnessBuilderError",
    "PreconditionError",
    "ResourceNotFoundError",
    "SigningIdentityError",
    "ToolExecutionError",
    "ToolNotFoundError",
    "ValidationError",
    "get_logger",
    "setup_logging",
    "resolve_resource",
    "BuildStage",
    "StageResult",
    "StageStatus",
]
