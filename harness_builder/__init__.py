"""
harness-builder: per-application instrumentation server packages.

Takes a prebuilt instrumentation-server APK, points its manifest at an
application under test, and produces a validly signed package that can be
installed next to that application.
"""

from .models import AndroidApp, BuildConfiguration, SigningIdentity
from .orchestration import BuildResult, PackageRebuildPipeline, build_server, resign_package

__version__ = "1.0.0"

__all__ = [
    "AndroidApp",
    "BuildConfiguration",
    "SigningIdentity",
    "BuildResult",
    "PackageRebuildPipeline",
    "build_server",
    "resign_package",
]
