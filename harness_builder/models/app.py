"""
Application-under-test model.

The pipeline only needs the package name of the application the harness will
instrument; the APK path is kept for callers that start from a file.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import ValidationError
from ..core.logging import get_logger
from ..services.tools import ToolRunner, run_tool

logger = get_logger(__name__)

_PACKAGE_RE = re.compile(r"package:\s*name='([^']+)'")


class AndroidApp(BaseModel):
    """An Android application identified by its package name."""

    model_config = ConfigDict(frozen=True)

    base_package: str = Field(description="Package name, e.g. com.example.app")
    apk_path: Path | None = Field(default=None, description="APK file, when known")

    @property
    def absolute_path(self) -> Path | None:
        """Absolute APK path, if the app was loaded from a file."""
        return self.apk_path.resolve() if self.apk_path is not None else None

    @classmethod
    def from_apk(cls, apk_path: Path, aapt: Path, runner: ToolRunner = run_tool) -> AndroidApp:
        """Read the package name of an APK with ``aapt dump badging``.

        Raises:
            ValidationError: The APK is missing or aapt reports no package
            ToolExecutionError: aapt failed
        """
        if not apk_path.is_file():
            raise ValidationError(message=f"APK file not found: {apk_path}", field_name="apk_path")

        output = runner(aapt, ["dump", "badging", str(apk_path)])
        match = _PACKAGE_RE.search(output)
        if match is None:
            raise ValidationError(
                message=f"No package name in aapt output for {apk_path}",
                field_name="apk_path",
            )

        logger.info("Read application under test", package=match.group(1), apk=str(apk_path))
        return cls(base_package=match.group(1), apk_path=apk_path)
