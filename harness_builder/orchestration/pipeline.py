"""
Package rebuild pipeline for harness-builder.

Customizes the prebuilt instrumentation-server package for one application
under test and signs the result:

    copy template -> strip stale entries -> render manifest
        -> compile manifest -> splice manifest into package -> sign

The pipeline object holds only collaborators (settings, tool lookup, tool
runner); everything that belongs to one build lives in that build's scratch
space, so a single pipeline can serve concurrent builds.
"""

from __future__ import annotations

import shutil
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from pydantic import BaseModel, Field

from ..core.config import Config, get_config
from ..core.exceptions import EntryNotFoundError, PreconditionError, ToolNotFoundError
from ..core.logging import bind_context, get_logger, unbind_context
from ..core.resources import resolve_resource
from ..core.types import BuildStage, StageResult, StageStatus
from ..models.build import BuildConfiguration
from ..models.signing import SigningIdentity
from ..services.archive import copy_all, copy_entry, delete_entry, new_writer, open_for_read
from ..services.manifest import render_manifest
from ..services.signing import ensure_debug_keystore, resolve_signature_algorithm, sign_package
from ..services.tools import ToolLocator, ToolPaths, ToolRunner, run_tool
from ..storage import ScratchSpace

logger = get_logger(__name__)

MANIFEST_ENTRY = "AndroidManifest.xml"

# Present in every harness template produced by the generic build toolchain.
REQUIRED_STALE_ENTRIES = ("META-INF/CERT.RSA", "META-INF/CERT.SF", MANIFEST_ENTRY)

WELL_KNOWN_SIGNING_ENTRIES = (
    "META-INF/MANIFEST.MF",
    "META-INF/CERT.RSA",
    "META-INF/CERT.SF",
    "META-INF/ANDROIDD.SF",
    "META-INF/ANDROIDD.RSA",
    "META-INF/NDKEYSTO.SF",
    "META-INF/NDKEYSTO.RSA",
)

SIGNATURE_EXTENSIONS = (".SF", ".RSA", ".DSA", ".EC")


class BuildResult(BaseModel):
    """Outcome of a build or resign run."""

    run_id: str = Field(description="Unique run identifier")
    output_path: Path = Field(description="Signed package")
    base_package: str | None = Field(default=None, description="Package of the AUT, for builds")
    signature_algorithm: str = Field(description="jarsigner -sigalg used")
    removed_entries: list[str] = Field(default_factory=list, description="Stale entries deleted")
    scratch_dir: Path | None = Field(
        default=None, description="Scratch directory; gone already unless retained"
    )
    stages: list[StageResult] = Field(default_factory=list)

    def get_stage(self, stage: BuildStage) -> StageResult | None:
        """Get a stage result by stage."""
        for result in self.stages:
            if result.stage_name == stage.value:
                return result
        return None


def stale_signing_entries(identity: SigningIdentity | None = None) -> list[str]:
    """Signing artifacts to strip before (re)signing, in deletion order.

    The well-known names come first, followed by the signature files jarsigner
    would have produced for ``identity``'s alias.
    """
    names = list(WELL_KNOWN_SIGNING_ENTRIES)
    if identity is not None:
        base = f"META-INF/{identity.signature_file_name}"
        for extension in SIGNATURE_EXTENSIONS:
            name = base + extension
            if name not in names:
                names.append(name)
    return names


def strip_entries(package: Path, names: Iterable[str]) -> list[str]:
    """Delete each named entry that exists, ignoring the ones that do not.

    Only a missing entry is tolerated; any other archive error propagates.
    Running this twice on the same package removes nothing the second time.

    Returns:
        Names actually removed, in order
    """
    removed: list[str] = []
    for name in names:
        try:
            delete_entry(package, name)
        except EntryNotFoundError:
            logger.debug("Stale entry not present", package=str(package), entry=name)
            continue
        removed.append(name)
    return removed


def splice_manifest(manifest_package: Path, harness_package: Path, output: Path) -> Path:
    """Write a new package holding the compiled manifest followed by every harness entry.

    The manifest entry goes first; the harness entries follow in their
    original order, each copied with its original content and compression.
    """
    with open_for_read(manifest_package) as manifest_zip, open_for_read(harness_package) as harness_zip:
        with new_writer(output) as writer:
            copy_entry(manifest_zip, MANIFEST_ENTRY, writer)
            copied = copy_all(harness_zip, writer)
    logger.info("Spliced manifest into package", package=str(output), entries=copied + 1)
    return output


@contextmanager
def _stage(result: StageResult) -> Iterator[StageResult]:
    result.mark_running()
    logger.info("Stage started", stage=result.stage_name)
    try:
        yield result
    except Exception as e:
        result.mark_failed(str(e))
        logger.error("Stage failed", stage=result.stage_name, error=str(e))
        raise
    if result.status is StageStatus.RUNNING:
        result.mark_completed()


def _new_run_id() -> str:
    return uuid.uuid4().hex[:12]


class PackageRebuildPipeline:
    """Builds and re-signs instrumentation-server packages.

    Args:
        config: Process settings; defaults to ``get_config()``
        tools: Explicit tool locations, overriding lookup
        runner: Runs external tools; replaceable for supervision or tests
    """

    def __init__(
        self,
        config: Config | None = None,
        tools: ToolPaths | None = None,
        runner: ToolRunner = run_tool,
    ) -> None:
        self.config = config or get_config()
        self.runner = runner
        self.locator = ToolLocator(self.config.tools, tools)

    def _harness_template(self, build_config: BuildConfiguration) -> str:
        if build_config.harness_template:
            return build_config.harness_template
        harness = self.config.harness
        if build_config.harness_version:
            harness = harness.model_copy(update={"version": build_config.harness_version})
        return harness.template_resource

    def _output_file(self, prefix: str, suffix: str) -> Path:
        """Create a uniquely named, caller-owned output file."""
        output_dir = self.config.harness.output_dir
        if output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(prefix=prefix, suffix=suffix, dir=output_dir, delete=False)
        handle.close()
        return Path(handle.name)

    def _keytool(self) -> Path | None:
        try:
            return self.locator.keytool()
        except ToolNotFoundError:
            return None

    def _keystore(self, identity: SigningIdentity) -> Path:
        if identity.keystore_path is not None:
            return identity.keystore_path
        keystore = self.config.signing.default_keystore
        if not keystore.exists() and self.config.signing.generate_debug_keystore:
            ensure_debug_keystore(keystore, identity, self.locator.keytool(), self.runner)
        return keystore

    def _sign(self, unsigned: Path, output: Path, identity: SigningIdentity) -> str:
        keytool = self._keytool() if identity.keystore_path is not None else None
        algorithm = resolve_signature_algorithm(
            identity,
            default_algorithm=self.config.signing.default_algorithm,
            keytool=keytool,
            runner=self.runner,
        )
        sign_package(
            unsigned,
            output,
            keystore=self._keystore(identity),
            identity=identity,
            algorithm=algorithm,
            jarsigner=self.locator.jarsigner(),
            digest_algorithm=self.config.signing.digest_algorithm,
            runner=self.runner,
        )
        return algorithm

    def _sign_to_output(
        self, unsigned: Path, build_config: BuildConfiguration, prefix: str, suffix: str
    ) -> tuple[Path, str]:
        """Sign into the caller's output path, or into a generated one.

        A generated output file is removed again when signing fails; an
        explicit output path is left alone.
        """
        if build_config.output_path is not None:
            output = build_config.output_path
            return output, self._sign(unsigned, output, build_config.signing)

        output = self._output_file(prefix, suffix)
        try:
            algorithm = self._sign(unsigned, output, build_config.signing)
        except Exception:
            output.unlink(missing_ok=True)
            logger.debug("Removed unsigned output", output=str(output))
            raise
        return output, algorithm

    def copy_template(self, build_config: BuildConfiguration, scratch: ScratchSpace) -> Path:
        """Copy the harness template into a fresh scratch package."""
        template = resolve_resource(self._harness_template(build_config), self.config.harness.resource_dirs)
        package = scratch.new_file("instrumentation-server-", ".apk")
        logger.info("Creating customized instrumentation server", package=str(package), template=str(template))
        shutil.copyfile(template, package)
        return package

    def compile_manifest(self, manifest: Path, scratch: ScratchSpace) -> Path:
        """Compile a plain-text manifest into a single-entry package with aapt."""
        manifest_package = scratch.new_file("manifest-", ".apk")
        self.runner(
            self.locator.aapt(),
            [
                "package",
                "-M",
                str(manifest.absolute()),
                "-I",
                str(self.locator.platform_jar()),
                "-F",
                str(manifest_package.absolute()),
                "-f",
            ],
        )
        return manifest_package

    def build(self, build_config: BuildConfiguration) -> BuildResult:
        """Build a signed instrumentation server for the configured AUT.

        Raises:
            PreconditionError: No application under test is set
            ResourceNotFoundError: A template cannot be located
            EntryNotFoundError: The harness template lacks an expected entry
            ToolNotFoundError: aapt, jarsigner or the platform jar is missing
            ToolExecutionError: aapt or jarsigner failed
        """
        if build_config.aut is None:
            raise PreconditionError(message="Application under test required")

        package_id = build_config.aut.base_package
        run_id = _new_run_id()
        retention = build_config.retention or self.config.scratch.retention
        stages = {stage: StageResult(stage_name=stage.value) for stage in BuildStage}
        removed: list[str] = []

        bind_context(run_id=run_id)
        try:
            logger.info("Starting instrumentation server build", target_package=package_id)
            with ScratchSpace(retention, prefix=f"harness-build-{run_id}-", base_dir=self.config.scratch.base_dir) as scratch:
                with _stage(stages[BuildStage.COPY_TEMPLATE]) as stage:
                    harness = self.copy_template(build_config, scratch)
                    stage.mark_completed([harness])

                with _stage(stages[BuildStage.STRIP_STALE_ENTRIES]) as stage:
                    for name in REQUIRED_STALE_ENTRIES:
                        delete_entry(harness, name)
                    optional = [n for n in stale_signing_entries(build_config.signing) if n not in REQUIRED_STALE_ENTRIES]
                    removed = [*REQUIRED_STALE_ENTRIES, *strip_entries(harness, optional)]
                    stage.mark_completed([harness], removed=removed)

                with _stage(stages[BuildStage.RENDER_MANIFEST]) as stage:
                    manifest = render_manifest(
                        build_config.manifest_template or self.config.harness.manifest_template,
                        package_id,
                        scratch,
                        self.config.harness.resource_dirs,
                    )
                    stage.mark_completed([manifest])

                with _stage(stages[BuildStage.COMPILE_MANIFEST]) as stage:
                    manifest_package = self.compile_manifest(manifest, scratch)
                    stage.mark_completed([manifest_package])

                with _stage(stages[BuildStage.SPLICE_MANIFEST]) as stage:
                    unsigned = splice_manifest(
                        manifest_package,
                        harness,
                        scratch.new_file("instrumentation-server-unsigned-", ".apk"),
                    )
                    stage.mark_completed([unsigned])

                with _stage(stages[BuildStage.SIGN]) as stage:
                    output, algorithm = self._sign_to_output(
                        unsigned, build_config, f"instrumentation-{package_id}-", ".apk"
                    )
                    stage.mark_completed([output], algorithm=algorithm)

            logger.info("Instrumentation server built", output=str(output), target_package=package_id)
            return BuildResult(
                run_id=run_id,
                output_path=output,
                base_package=package_id,
                signature_algorithm=algorithm,
                removed_entries=removed,
                scratch_dir=scratch.root,
                stages=list(stages.values()),
            )
        finally:
            unbind_context("run_id")

    def resign(self, package: Path, build_config: BuildConfiguration | None = None) -> BuildResult:
        """Strip signing artifacts from an existing package and sign it again.

        Every stale-entry deletion tolerates absence, so a package without any
        signing artifacts is simply signed. The package is modified in place;
        the signed copy is written to a new file named
        ``resigned-*-<original name>``.

        Raises:
            ArchiveOpenError: ``package`` is missing or not a zip container
            ToolNotFoundError: jarsigner is missing
            ToolExecutionError: jarsigner failed
        """
        build_config = build_config or BuildConfiguration()
        package = Path(package)
        run_id = _new_run_id()
        strip_stage = StageResult(stage_name=BuildStage.STRIP_STALE_ENTRIES.value)
        sign_stage = StageResult(stage_name=BuildStage.SIGN.value)

        bind_context(run_id=run_id)
        try:
            logger.info("Resigning package", package=str(package))
            with _stage(strip_stage) as stage:
                open_for_read(package).close()
                removed = strip_entries(package, stale_signing_entries(build_config.signing))
                stage.mark_completed([package], removed=removed)

            with _stage(sign_stage) as stage:
                output, algorithm = self._sign_to_output(package, build_config, "resigned-", f"-{package.name}")
                stage.mark_completed([output], algorithm=algorithm)

            return BuildResult(
                run_id=run_id,
                output_path=output,
                signature_algorithm=algorithm,
                removed_entries=removed,
                stages=[strip_stage, sign_stage],
            )
        finally:
            unbind_context("run_id")


def build_server(
    build_config: BuildConfiguration,
    config: Config | None = None,
    tools: ToolPaths | None = None,
    runner: ToolRunner = run_tool,
) -> BuildResult:
    """Build a signed instrumentation server; see ``PackageRebuildPipeline.build``."""
    return PackageRebuildPipeline(config, tools, runner).build(build_config)


def resign_package(
    package: Path,
    build_config: BuildConfiguration | None = None,
    config: Config | None = None,
    tools: ToolPaths | None = None,
    runner: ToolRunner = run_tool,
) -> BuildResult:
    """Re-sign an existing package; see ``PackageRebuildPipeline.resign``."""
    return PackageRebuildPipeline(config, tools, runner).resign(package, build_config)

