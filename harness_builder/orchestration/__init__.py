"""Pipeline orchestration for harness-builder."""

from .pipeline import (
    MANIFEST_ENTRY,
    REQUIRED_STALE_ENTRIES,
    WELL_KNOWN_SIGNING_ENTRIES,
    BuildResult,
    PackageRebuildPipeline,
    build_server,
    resign_package,
    splice_manifest,
    stale_signing_entries,
    strip_entries,
)

__all__ = [
    "MANIFEST_ENTRY",
    "REQUIRED_STALE_ENTRIES",
    "WELL_KNOWN_SIGNING_ENTRIES",
    "BuildResult",
    "PackageRebuildPipeline",
    "build_server",
    "resign_package",
    "splice_manifest",
    "stale_signing_entries",
    "strip_entries",
]
