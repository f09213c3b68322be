"""Resource lookup for templates shipped with, or configured for, the builder."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

from .exceptions import ResourceNotFoundError
from .logging import get_logger

logger = get_logger(__name__)

BUNDLED_RESOURCES = Path(__file__).resolve().parent.parent / "resources"


def resolve_resource(name: str | Path, search_dirs: Iterable[Path] = ()) -> Path:
    """Locate a resource file.

    The name is tried as a path first (absolute, or relative to the working
    directory), then inside each of ``search_dirs``, then inside the bundled
    resources directory. A leading slash on a relative-looking name such as
    ``/AndroidManifestTemplate.xml`` does not stop the directory search.

    Raises:
        ResourceNotFoundError: With every searched location and the working
            directory, so a misconfigured search path is easy to spot.
    """
    direct = Path(name).expanduser()
    candidates = [direct]
    relative = Path(str(name).lstrip("/\\"))
    for directory in [*search_dirs, BUNDLED_RESOURCES]:
        candidates.append(directory / relative)

    for candidate in candidates:
        if candidate.is_file():
            logger.debug("Resolved resource", resource=str(name), path=str(candidate))
            return candidate

    raise ResourceNotFoundError(
        message=f"Resource not found: {name}",
        resource=str(name),
        searched=[str(c) for c in candidates],
        working_directory=os.getcwd(),
    )
