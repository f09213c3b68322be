"""
External Tool Service.

Runs the Android and Java command-line tools the build depends on (aapt,
jarsigner, keytool) and locates them on disk.
"""

from __future__ import annotations

import re
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ...core.config import ToolsConfig
from ...core.exceptions import ToolExecutionError, ToolNotFoundError
from ...core.logging import get_logger, redact_command

logger = get_logger(__name__)

ToolRunner = Callable[[str | Path, Sequence[str]], str]


def run_tool(
    executable: str | Path,
    args: Sequence[str],
    *,
    timeout: float | None = None,
) -> str:
    """Run an external tool and return its combined stdout and stderr.

    Blocks until the tool exits. There is no timeout unless the caller passes
    one; long compiler and signer runs are expected to finish on their own.

    Args:
        executable: Tool to run
        args: Argument vector, not including the executable
        timeout: Optional deadline in seconds after which the tool is killed

    Returns:
        Combined output as text

    Raises:
        ToolNotFoundError: The executable cannot be started
        ToolExecutionError: The tool exited non-zero or hit the timeout
    """
    cmd = [str(executable), *[str(a) for a in args]]
    tool_name = Path(str(executable)).name
    logger.debug("Running tool", command=redact_command(cmd))

    try:
        result = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise ToolNotFoundError(
            message=f"Cannot execute {executable}",
            tool_name=tool_name,
            expected_path=str(executable),
            cause=e,
        )
    except subprocess.TimeoutExpired as e:
        output = e.output if isinstance(e.output, str) else ""
        raise ToolExecutionError(
            message=f"Timed out after {timeout}s",
            tool_name=tool_name,
            exit_code=-1,
            output=output,
            context={"command": redact_command(cmd)},
            cause=e,
        )

    output = result.stdout or ""
    if result.returncode != 0:
        logger.warning(
            "Tool failed",
            tool=tool_name,
            returncode=result.returncode,
            output=output[:500],
        )
        raise ToolExecutionError(
            message="Command failed",
            tool_name=tool_name,
            exit_code=result.returncode,
            output=output,
            context={"command": redact_command(cmd)},
        )

    return output


class ToolPaths(BaseModel):
    """Explicit tool locations. Unset fields are looked up by ToolLocator."""

    model_config = ConfigDict(frozen=True)

    aapt: Path | None = Field(default=None, description="Manifest compiler")
    jarsigner: Path | None = Field(default=None, description="Code-signing tool")
    platform_jar: Path | None = Field(default=None, description="android.jar passed to aapt -I")
    keytool: Path | None = Field(default=None, description="Keystore inspection tool")


def _version_key(path: Path) -> tuple:
    return tuple(int(n) if n.isdigit() else n for n in re.split(r"[.\-_]", path.name) if n)


def _newest(directories: list[Path]) -> list[Path]:
    try:
        return sorted(directories, key=_version_key, reverse=True)
    except TypeError:
        return sorted(directories, key=lambda p: p.name, reverse=True)


class ToolLocator:
    """Finds tools in explicit overrides, configured locations, the SDK/JDK layout, or PATH."""

    def __init__(self, config: ToolsConfig, overrides: ToolPaths | None = None) -> None:
        self.config = config
        self.overrides = overrides or ToolPaths()

    def _find_tool(self, tool_name: str, configured: Path | None, candidates: list[Path]) -> Path:
        """Find a tool in its configured location, known candidates, or PATH."""
        if configured is not None:
            if configured.exists():
                return configured
            raise ToolNotFoundError(
                message=f"Configured {tool_name} does not exist",
                tool_name=tool_name,
                expected_path=str(configured),
            )

        for candidate in candidates:
            if candidate.exists():
                return candidate

        tool_path = shutil.which(tool_name)
        if tool_path:
            return Path(tool_path)

        raise ToolNotFoundError(
            message=f"Tool not found: {tool_name}",
            tool_name=tool_name,
            expected_path=", ".join(str(c) for c in candidates) or "PATH",
            install_hint=f"Install {tool_name} and add it to PATH, or set ANDROID_HOME/JAVA_HOME",
        )

    def aapt(self) -> Path:
        if self.overrides.aapt is not None:
            return self.overrides.aapt
        candidates: list[Path] = []
        sdk = self.config.android_sdk_root
        if sdk is not None and (sdk / "build-tools").is_dir():
            for build_tools in _newest([d for d in (sdk / "build-tools").iterdir() if d.is_dir()]):
                candidates += [build_tools / "aapt", build_tools / "aapt.exe"]
        return self._find_tool("aapt", self.config.aapt_path, candidates)

    def _jdk_tool(self, tool_name: str, configured: Path | None) -> Path:
        candidates: list[Path] = []
        if self.config.java_home is not None:
            bin_dir = self.config.java_home / "bin"
            candidates += [bin_dir / tool_name, bin_dir / f"{tool_name}.exe"]
        return self._find_tool(tool_name, configured, candidates)

    def jarsigner(self) -> Path:
        if self.overrides.jarsigner is not None:
            return self.overrides.jarsigner
        return self._jdk_tool("jarsigner", self.config.jarsigner_path)

    def keytool(self) -> Path:
        if self.overrides.keytool is not None:
            return self.overrides.keytool
        return self._jdk_tool("keytool", self.config.keytool_path)

    def platform_jar(self) -> Path:
        """Newest installed platform's android.jar."""
        if self.overrides.platform_jar is not None:
            return self.overrides.platform_jar
        if self.config.platform_jar is not None:
            if self.config.platform_jar.is_file():
                return self.config.platform_jar
            raise ToolNotFoundError(
                message="Configured platform jar does not exist",
                tool_name="android.jar",
                expected_path=str(self.config.platform_jar),
            )

        sdk = self.config.android_sdk_root
        platforms = sdk / "platforms" if sdk is not None else None
        if platforms is not None and platforms.is_dir():
            for platform in _newest([d for d in platforms.glob("android-*") if d.is_dir()]):
                jar = platform / "android.jar"
                if jar.is_file():
                    return jar

        raise ToolNotFoundError(
            message="No Android platform jar found",
            tool_name="android.jar",
            expected_path=str(platforms) if platforms else "ANDROID_HOME/platforms",
            install_hint="Install an Android platform with sdkmanager and set ANDROID_HOME",
        )
