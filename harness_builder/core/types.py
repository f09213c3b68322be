"""
Core type definitions for harness-builder.

Stage bookkeeping shared by the rebuild and resign pipelines.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

ArtifactPath = Path


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StageStatus(str, Enum):
    """Status of a pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class BuildStage(str, Enum):
    """Stages of the package rebuild pipeline, in execution order."""

    COPY_TEMPLATE = "copy_template"
    STRIP_STALE_ENTRIES = "strip_stale_entries"
    RENDER_MANIFEST = "render_manifest"
    COMPILE_MANIFEST = "compile_manifest"
    SPLICE_MANIFEST = "splice_manifest"
    SIGN = "sign"


class StageResult(BaseModel):
    """Result of a pipeline stage execution."""

    stage_name: str = Field(description="Name of the pipeline stage")
    status: StageStatus = Field(default=StageStatus.PENDING, description="Execution status")
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0)
    artifacts: list[ArtifactPath] = Field(default_factory=list, description="Produced files")
    error_message: str | None = Field(default=None)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def mark_running(self) -> None:
        """Mark stage as started now."""
        self.status = StageStatus.RUNNING
        self.started_at = _utcnow()

    def mark_completed(self, artifacts: list[ArtifactPath] | None = None, **metadata: Any) -> None:
        """Mark stage as successfully completed."""
        self.status = StageStatus.COMPLETED
        self.completed_at = _utcnow()
        self.artifacts = artifacts or []
        self.metadata.update(metadata)
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_failed(self, error: str) -> None:
        """Mark stage as failed."""
        self.status = StageStatus.FAILED
        self.completed_at = _utcnow()
        self.error_message = error
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()
