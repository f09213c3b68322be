"""
Signing identity model.

Describes the keystore, key alias and password used to sign a package.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr

DEFAULT_KEY_ALIAS = "androiddebugkey"
DEFAULT_KEYSTORE_PASSWORD = "android"


class SigningIdentity(BaseModel):
    """Keystore location, key alias and keystore password.

    Without a keystore path the builder signs with the default debug keystore
    and the default signature algorithm, and no certificate is inspected.
    """

    model_config = ConfigDict(frozen=True)

    keystore_path: Path | None = Field(default=None, description="Keystore file")
    alias: str = Field(default=DEFAULT_KEY_ALIAS, description="Key alias inside the keystore")
    password: SecretStr = Field(
        default=SecretStr(DEFAULT_KEYSTORE_PASSWORD), description="Keystore password"
    )

    @property
    def signature_file_name(self) -> str:
        """Base name jarsigner gives the .SF/.RSA files for this alias.

        First 8 characters of the alias, upper-cased, with characters not
        allowed in a signature file name replaced by underscores.
        """
        return re.sub(r"[^A-Z0-9_\-]", "_", self.alias[:8].upper())
