"""
Signing Service.

Resolves the signature algorithm for a signing identity and signs packages
with jarsigner.
"""

from __future__ import annotations

import re
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import SignatureAlgorithmOID

from ...core.exceptions import SigningIdentityError
from ...core.logging import get_logger
from ...models.signing import SigningIdentity
from ..tools import ToolRunner, run_tool

logger = get_logger(__name__)

DEFAULT_SIGNATURE_ALGORITHM = "MD5withRSA"
DEFAULT_DIGEST_ALGORITHM = "SHA1"

# Certificate signature algorithm -> name as accepted by jarsigner -sigalg
_JAVA_ALGORITHM_NAMES: dict[x509.ObjectIdentifier, str] = {
    SignatureAlgorithmOID.RSA_WITH_MD5: "MD5withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA1: "SHA1withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA224: "SHA224withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA256: "SHA256withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "SHA384withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "SHA512withRSA",
    SignatureAlgorithmOID.RSASSA_PSS: "RSASSA-PSS",
    SignatureAlgorithmOID.ECDSA_WITH_SHA1: "SHA1withECDSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA224: "SHA224withECDSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "SHA256withECDSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "SHA384withECDSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "SHA512withECDSA",
    SignatureAlgorithmOID.DSA_WITH_SHA1: "SHA1withDSA",
    SignatureAlgorithmOID.DSA_WITH_SHA224: "SHA224withDSA",
    SignatureAlgorithmOID.DSA_WITH_SHA256: "SHA256withDSA",
    SignatureAlgorithmOID.ED25519: "Ed25519",
    SignatureAlgorithmOID.ED448: "Ed448",
}

_KEYTOOL_ALGORITHM_RE = re.compile(r"Signature algorithm name:\s*(\S+)")


def java_algorithm_name(certificate: x509.Certificate) -> str:
    """jarsigner name of the algorithm a certificate was signed with."""
    oid = certificate.signature_algorithm_oid
    try:
        return _JAVA_ALGORITHM_NAMES[oid]
    except KeyError:
        raise SigningIdentityError(
            message=f"Unsupported certificate signature algorithm {oid.dotted_string}",
        )


def _algorithm_from_pkcs12(data: bytes, identity: SigningIdentity) -> str:
    store = pkcs12.load_pkcs12(data, identity.password.get_secret_value().encode("utf-8"))
    certs = [store.cert] if store.cert is not None else []
    certs += store.additional_certs

    # Keystore aliases are case-insensitive.
    wanted = identity.alias.lower()
    for entry in certs:
        name = entry.friendly_name.decode("utf-8") if entry.friendly_name else ""
        if name.lower() == wanted:
            return java_algorithm_name(entry.certificate)

    raise SigningIdentityError(
        message=f"No certificate for alias '{identity.alias}'",
        keystore_path=str(identity.keystore_path),
        alias=identity.alias,
    )


def _algorithm_from_keytool(identity: SigningIdentity, keytool: Path, runner: ToolRunner) -> str:
    output = runner(
        keytool,
        [
            "-list",
            "-v",
            "-keystore",
            str(identity.keystore_path),
            "-storepass",
            identity.password.get_secret_value(),
            "-alias",
            identity.alias,
        ],
    )
    match = _KEYTOOL_ALGORITHM_RE.search(output)
    if match is None:
        raise SigningIdentityError(
            message="keytool did not report a signature algorithm",
            keystore_path=str(identity.keystore_path),
            alias=identity.alias,
        )
    return match.group(1)


def resolve_signature_algorithm(
    identity: SigningIdentity,
    default_algorithm: str = DEFAULT_SIGNATURE_ALGORITHM,
    keytool: Path | None = None,
    runner: ToolRunner = run_tool,
) -> str:
    """Pick the jarsigner ``-sigalg`` for a signing identity.

    Without a keystore the default algorithm is returned and nothing is read.
    Otherwise the algorithm of the alias' certificate is used: PKCS#12
    keystores are read directly, other formats (legacy JKS) through
    ``keytool`` when it is available.

    Any failure while loading the keystore or inspecting the certificate
    falls back to ``default_algorithm`` with a warning; it never aborts the
    build.
    """
    if identity.keystore_path is None:
        return default_algorithm

    try:
        data = identity.keystore_path.read_bytes()
        try:
            algorithm = _algorithm_from_pkcs12(data, identity)
        except ValueError as e:
            if keytool is None:
                raise SigningIdentityError(
                    message="Keystore is not PKCS#12 and keytool is unavailable",
                    keystore_path=str(identity.keystore_path),
                    alias=identity.alias,
                    cause=e,
                )
            algorithm = _algorithm_from_keytool(identity, keytool, runner)
    except Exception as e:
        logger.warning(
            "Error getting signature algorithm for jarsigner, using default",
            default=default_algorithm,
            keystore=str(identity.keystore_path),
            reason=str(e),
        )
        return default_algorithm

    logger.debug("Resolved signature algorithm", algorithm=algorithm, alias=identity.alias)
    return algorithm


def jarsigner_arguments(
    unsigned: Path,
    output: Path,
    keystore: Path,
    identity: SigningIdentity,
    algorithm: str,
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM,
) -> list[str]:
    """Argument vector for signing ``unsigned`` into ``output``."""
    return [
        "-sigalg",
        algorithm,
        "-digestalg",
        digest_algorithm,
        "-signedjar",
        str(output.absolute()),
        "-storepass",
        identity.password.get_secret_value(),
        "-keystore",
        str(keystore),
        str(unsigned.absolute()),
        identity.alias,
    ]


def sign_package(
    unsigned: Path,
    output: Path,
    keystore: Path,
    identity: SigningIdentity,
    algorithm: str,
    jarsigner: Path,
    digest_algorithm: str = DEFAULT_DIGEST_ALGORITHM,
    runner: ToolRunner = run_tool,
) -> Path:
    """Sign ``unsigned`` with jarsigner, writing the signed copy to ``output``.

    Raises:
        ToolExecutionError: jarsigner failed
    """
    logger.info("Signing package", package=str(unsigned), algorithm=algorithm, alias=identity.alias)
    output.parent.mkdir(parents=True, exist_ok=True)
    runner(
        jarsigner,
        jarsigner_arguments(unsigned, output, keystore, identity, algorithm, digest_algorithm),
    )
    logger.info("Done signing package", package=str(unsigned), output=str(output))
    return output


def ensure_debug_keystore(
    keystore: Path,
    identity: SigningIdentity,
    keytool: Path,
    runner: ToolRunner = run_tool,
) -> Path:
    """Create the Android debug keystore with keytool if it does not exist yet."""
    if keystore.exists():
        return keystore

    logger.info("Creating debug keystore", keystore=str(keystore), alias=identity.alias)
    keystore.parent.mkdir(parents=True, exist_ok=True)
    password = identity.password.get_secret_value()
    runner(
        keytool,
        [
            "-genkeypair",
            "-keystore",
            str(keystore),
            "-alias",
            identity.alias,
            "-keyalg",
            "RSA",
            "-keysize",
            "2048",
            "-validity",
            "10000",
            "-storepass",
            password,
            "-keypass",
            password,
            "-dname",
            "CN=Android Debug,O=Android,C=US",
        ],
    )
    return keystore
