"""Test configuration for harness-builder."""

import io
import logging
import tempfile
import threading
import zipfile
from pathlib import Path

import pytest
import structlog

from harness_builder.core.config import (
    Config,
    HarnessConfig,
    RetentionPolicy,
    ScratchConfig,
    SigningConfig,
)
from harness_builder.core.logging import LOGGER_NAME
from harness_builder.orchestration import PackageRebuildPipeline
from harness_builder.services.tools import ToolPaths

HARNESS_ENTRIES = [
    ("AndroidManifest.xml", b"\x03\x00\x08\x00stale-binary-manifest", zipfile.ZIP_DEFLATED),
    ("classes.dex", b"dex\n035\x00" + bytes(range(256)) * 4, zipfile.ZIP_DEFLATED),
    ("resources.arsc", b"\x02\x00\x0c\x00" + b"\x00" * 64, zipfile.ZIP_STORED),
    ("res/layout/main.xml", b"\x03\x00\x08\x00layout", zipfile.ZIP_DEFLATED),
    ("assets/", b"", zipfile.ZIP_STORED),
    ("assets/config.json", b'{"port": 8080}', zipfile.ZIP_DEFLATED),
    ("META-INF/MANIFEST.MF", b"Manifest-Version: 1.0\r\n", zipfile.ZIP_DEFLATED),
    ("META-INF/CERT.SF", b"Signature-Version: 1.0\r\n", zipfile.ZIP_DEFLATED),
    ("META-INF/CERT.RSA", b"\x30\x82\x01\x00fake-pkcs7", zipfile.ZIP_DEFLATED),
]


def make_package(path: Path, entries) -> Path:
    """Write a zip package with (name, content, compression) entries."""
    with zipfile.ZipFile(path, "w") as zf:
        for name, content, compression in entries:
            info = zipfile.ZipInfo(name, date_time=(2014, 1, 1, 0, 0, 0))
            info.compress_type = compression
            zf.writestr(info, content)
    return path


def read_package(path: Path) -> dict[str, bytes]:
    """All entries of a package, name -> content."""
    with zipfile.ZipFile(path) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


class FakeToolRunner:
    """Stands in for aapt, jarsigner and keytool.

    aapt ``package`` writes a single-entry package whose AndroidManifest.xml
    holds the source manifest prefixed with ``COMPILED:``. jarsigner copies the
    input package and adds MANIFEST.MF plus the alias' signature files.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, list[str]]] = []
        self.failures: dict[str, tuple[int, str]] = {}
        self.keytool_output = "Signature algorithm name: SHA256withRSA\n"
        self._lock = threading.Lock()

    def fail(self, tool: str, exit_code: int = 1, output: str = "boom") -> None:
        self.failures[tool] = (exit_code, output)

    def calls_to(self, tool: str) -> list[list[str]]:
        return [args for name, args in self.calls if name == tool]

    def __call__(self, executable, args) -> str:
        from harness_builder.core.exceptions import ToolExecutionError

        tool = Path(str(executable)).name
        args = [str(a) for a in args]
        with self._lock:
            self.calls.append((tool, args))

        if tool in self.failures:
            exit_code, output = self.failures[tool]
            raise ToolExecutionError(
                message="Command failed", tool_name=tool, exit_code=exit_code, output=output
            )

        if tool == "aapt" and args[0] == "package":
            manifest = Path(args[args.index("-M") + 1]).read_bytes()
            output = Path(args[args.index("-F") + 1])
            with zipfile.ZipFile(output, "w") as zf:
                zf.writestr("AndroidManifest.xml", b"COMPILED:" + manifest, zipfile.ZIP_DEFLATED)
            return ""

        if tool == "aapt" and args[0] == "dump":
            return "package: name='com.example.app' versionCode='1' versionName='1.0'\n"

        if tool == "jarsigner":
            output = Path(args[args.index("-signedjar") + 1])
            unsigned = Path(args[-2])
            sigfile = args[-1][:8].upper()
            with zipfile.ZipFile(unsigned) as src, zipfile.ZipFile(output, "w") as dest:
                dest.writestr("META-INF/MANIFEST.MF", b"Manifest-Version: 1.0\r\nCreated-By: fake\r\n")
                for info in src.infolist():
                    if info.filename != "META-INF/MANIFEST.MF":
                        dest.writestr(info, src.read(info))
                dest.writestr(f"META-INF/{sigfile}.SF", b"Signature-Version: 1.0\r\n")
                dest.writestr(f"META-INF/{sigfile}.RSA", b"fake-signature")
            return "jar signed.\n"

        if tool == "keytool":
            return self.keytool_output

        raise AssertionError(f"unexpected tool {tool} {args}")


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo whatever logging configuration a test installed."""
    yield
    structlog.reset_defaults()
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def harness_apk_bytes():
    """Bytes of a harness template as the generic build toolchain leaves it.

    Contains a stale manifest and the CERT.* signature of a previous signing.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content, compression in HARNESS_ENTRIES:
            info = zipfile.ZipInfo(name, date_time=(2014, 1, 1, 0, 0, 0))
            info.compress_type = compression
            zf.writestr(info, content)
    return buffer.getvalue()


@pytest.fixture
def resource_dir(temp_dir, harness_apk_bytes):
    """Resource directory holding version 0.18.1 of the harness template."""
    resources = temp_dir / "resources"
    prebuild = resources / "prebuild"
    prebuild.mkdir(parents=True)
    (prebuild / "instrumentation-server-0.18.1.apk").write_bytes(harness_apk_bytes)
    return resources


@pytest.fixture
def settings(temp_dir, resource_dir):
    """Process settings isolated to the temporary directory."""
    return Config(
        harness=HarnessConfig(resource_dirs=[resource_dir], output_dir=temp_dir / "out"),
        signing=SigningConfig(
            default_keystore=temp_dir / "debug.keystore",
            generate_debug_keystore=False,
        ),
        scratch=ScratchConfig(retention=RetentionPolicy.EAGER, base_dir=temp_dir / "scratch"),
    )


@pytest.fixture
def tool_paths(temp_dir):
    """Explicit tool locations so no SDK lookup happens."""
    return ToolPaths(
        aapt=Path("aapt"),
        jarsigner=Path("jarsigner"),
        keytool=Path("keytool"),
        platform_jar=temp_dir / "android.jar",
    )


@pytest.fixture
def fake_runner():
    return FakeToolRunner()


@pytest.fixture
def pipeline(settings, tool_paths, fake_runner):
    """Rebuild pipeline wired to the fake tools."""
    return PackageRebuildPipeline(settings, tool_paths, fake_runner)


@pytest.fixture
def make_apk(temp_dir):
    """Factory writing a package into the temporary directory."""

    def _make(name: str, entries=HARNESS_ENTRIES) -> Path:
        return make_package(temp_dir / name, entries)

    return _make


@pytest.fixture
def read_apk():
    """Reader returning a package's entries as name -> content."""
    return read_package
