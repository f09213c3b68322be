"""Signature algorithm resolution and package signing."""

from .service import (
    DEFAULT_DIGEST_ALGORITHM,
    DEFAULT_SIGNATURE_ALGORITHM,
    ensure_debug_keystore,
    jarsigner_arguments,
    java_algorithm_name,
    resolve_signature_algorithm,
    sign_package,
)

__all__ = [
    "DEFAULT_DIGEST_ALGORITHM",
    "DEFAULT_SIGNATURE_ALGORITHM",
    "ensure_debug_keystore",
    "jarsigner_arguments",
    "java_algorithm_name",
    "resolve_signature_algorithm",
    "sign_package",
]
