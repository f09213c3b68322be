"""
Build configuration model.

An immutable description of one harness build. Each ``with_*`` method returns
a modified copy, so a configuration shared between builds can never change
underneath one of them.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from ..core.config import RetentionPolicy
from .app import AndroidApp
from .signing import SigningIdentity


class BuildConfiguration(BaseModel):
    """Caller-supplied overrides for a harness build.

    Only the application under test is required, and only by ``build``; every
    other field falls back to the process configuration when unset.
    """

    model_config = ConfigDict(frozen=True)

    aut: AndroidApp | None = Field(default=None, description="Application under test")
    output_path: Path | None = Field(default=None, description="Signed package destination")
    signing: SigningIdentity = Field(default_factory=SigningIdentity)
    manifest_template: str | None = Field(default=None, description="Manifest template resource")
    harness_template: str | None = Field(default=None, description="Harness template resource")
    harness_version: str | None = Field(default=None, description="Harness template version")
    retention: RetentionPolicy | None = Field(default=None, description="Scratch cleanup policy")

    def with_application_under_test(self, aut: AndroidApp | str) -> BuildConfiguration:
        if isinstance(aut, str):
            aut = AndroidApp(base_package=aut)
        return self.model_copy(update={"aut": aut})

    def with_output_path(self, output_path: Path) -> BuildConfiguration:
        return self.model_copy(update={"output_path": Path(output_path)})

    def with_keystore_path(self, keystore_path: Path | None) -> BuildConfiguration:
        path = Path(keystore_path) if keystore_path is not None else None
        return self.model_copy(
            update={"signing": self.signing.model_copy(update={"keystore_path": path})}
        )

    def with_keystore_alias(self, alias: str) -> BuildConfiguration:
        return self.model_copy(update={"signing": self.signing.model_copy(update={"alias": alias})})

    def with_keystore_password(self, password: str) -> BuildConfiguration:
        return self.model_copy(
            update={"signing": self.signing.model_copy(update={"password": SecretStr(password)})}
        )

    def with_manifest_template(self, template: str | Path) -> BuildConfiguration:
        return self.model_copy(update={"manifest_template": str(template)})

    def with_harness_template(self, template: str | Path) -> BuildConfiguration:
        return self.model_copy(update={"harness_template": str(template)})

    def with_harness_version(self, version: str) -> BuildConfiguration:
        return self.model_copy(update={"harness_version": version})

    def with_retention(self, retention: RetentionPolicy) -> BuildConfiguration:
        return self.model_copy(update={"retention": retention})

    def with_delete_temp_files(self, delete: bool) -> BuildConfiguration:
        """Shorthand for DELETE_ON_EXIT (True) or RETAIN (False)."""
        policy = RetentionPolicy.DELETE_ON_EXIT if delete else RetentionPolicy.RETAIN
        return self.with_retention(policy)
