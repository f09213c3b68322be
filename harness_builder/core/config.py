"""
Configuration management for harness-builder.

Provides centralized, type-safe process settings with environment variable
overrides and sensible defaults: where the Android and Java tools live, which
harness version to customize, the default signing identity and what happens to
scratch files once a build is done.
"""

from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()

DEFAULT_HARNESS_VERSION = "0.18.1"


class RetentionPolicy(str, Enum):
    """What happens to a build's scratch resources."""

    RETAIN = "retain"
    DELETE_ON_EXIT = "delete_on_exit"
    EAGER = "eager"


def _env_path(*names: str) -> Path | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return Path(value).expanduser()
    return None


class ToolsConfig(BaseModel):
    """External tools configuration."""

    android_sdk_root: Path | None = Field(
        default_factory=lambda: _env_path("ANDROID_HOME", "ANDROID_SDK_ROOT"),
        description="Android SDK root path",
    )
    java_home: Path | None = Field(
        default_factory=lambda: _env_path("JAVA_HOME"),
        description="JDK home providing jarsigner and keytool",
    )
    aapt_path: Path | None = Field(default=None, description="Custom aapt path")
    jarsigner_path: Path | None = Field(default=None, description="Custom jarsigner path")
    keytool_path: Path | None = Field(default=None, description="Custom keytool path")
    platform_jar: Path | None = Field(
        default=None, description="android.jar passed to the manifest compiler"
    )


class HarnessConfig(BaseModel):
    """Which prebuilt harness to customize and where to find its resources."""

    version: str = Field(default=DEFAULT_HARNESS_VERSION, description="Harness package version")
    template_pattern: str = Field(
        default="prebuild/instrumentation-server-{version}.apk",
        description="Harness template resource, formatted with the version",
    )
    manifest_template: str = Field(
        default="AndroidManifestTemplate.xml", description="Manifest template resource"
    )
    resource_dirs: list[Path] = Field(
        default_factory=list, description="Extra directories searched for resources"
    )
    output_dir: Path | None = Field(
        default=None, description="Where produced packages go when no output path is given"
    )

    @property
    def template_resource(self) -> str:
        """Harness template resource name for the configured version."""
        return self.template_pattern.format(version=self.version)


class SigningConfig(BaseModel):
    """Default signing identity and algorithms."""

    default_algorithm: str = Field(default="MD5withRSA", description="Fallback signature algorithm")
    digest_algorithm: str = Field(default="SHA1", description="jarsigner -digestalg value")
    default_alias: str = Field(default="androiddebugkey")
    default_password: SecretStr = Field(default=SecretStr("android"))
    default_keystore: Path = Field(
        default_factory=lambda: Path("~/.android/debug.keystore").expanduser(),
        description="Keystore used when the caller supplies none",
    )
    generate_debug_keystore: bool = Field(
        default=True, description="Create the default keystore with keytool if missing"
    )


class ScratchConfig(BaseModel):
    """Scratch resource configuration."""

    retention: RetentionPolicy = Field(
        default=RetentionPolicy.DELETE_ON_EXIT, description="Scratch cleanup policy"
    )
    base_dir: Path | None = Field(default=None, description="Parent of scratch directories")


class Config(BaseModel):
    """Root configuration for harness-builder."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    harness: HarnessConfig = Field(default_factory=HarnessConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)
    scratch: ScratchConfig = Field(default_factory=ScratchConfig)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        resource_dirs = [
            Path(p).expanduser()
            for p in os.environ.get("HARNESS_RESOURCE_DIRS", "").split(os.pathsep)
            if p
        ]
        return cls(
            log_level=os.environ.get("HARNESS_LOG_LEVEL", "INFO"),  # type: ignore
            tools=ToolsConfig(
                aapt_path=_env_path("HARNESS_AAPT"),
                jarsigner_path=_env_path("HARNESS_JARSIGNER"),
                keytool_path=_env_path("HARNESS_KEYTOOL"),
                platform_jar=_env_path("HARNESS_PLATFORM_JAR"),
            ),
            harness=HarnessConfig(
                version=os.environ.get("HARNESS_VERSION", DEFAULT_HARNESS_VERSION),
                resource_dirs=resource_dirs,
                output_dir=_env_path("HARNESS_OUTPUT_DIR"),
            ),
            signing=SigningConfig(
                default_algorithm=os.environ.get("HARNESS_DEFAULT_SIGALG", "MD5withRSA"),
            ),
            scratch=ScratchConfig(
                retention=RetentionPolicy(
                    os.environ.get("HARNESS_SCRATCH_RETENTION", RetentionPolicy.DELETE_ON_EXIT.value)
                ),
                base_dir=_env_path("HARNESS_SCRATCH_DIR"),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
