"""
Manifest Templating Service.

Renders the harness manifest for a specific application under test by
substituting its package name into the manifest template.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from ...core.logging import get_logger
from ...core.resources import resolve_resource
from ...storage import ScratchSpace

logger = get_logger(__name__)

TARGET_PACKAGE_TOKEN = "${TARGET_PACKAGE}"


def substitute_target_package(template: str, package_id: str) -> str:
    """Replace every occurrence of the placeholder token with ``package_id``.

    The package name is inserted verbatim, without escaping or XML
    validation. A template without the token comes back unchanged.
    """
    return template.replace(TARGET_PACKAGE_TOKEN, package_id)


def render_manifest(
    template: str | Path,
    package_id: str,
    scratch: ScratchSpace,
    search_dirs: Iterable[Path] = (),
) -> Path:
    """Render the manifest template for ``package_id`` into a scratch file.

    Args:
        template: Template resource name or path
        package_id: Package name of the application under test
        scratch: Scratch space that owns the rendered file
        search_dirs: Extra directories searched for the template

    Returns:
        Path of the rendered ``AndroidManifest.xml``

    Raises:
        ResourceNotFoundError: The template cannot be located
    """
    template_path = resolve_resource(template, search_dirs)
    content = template_path.read_text(encoding="utf-8")

    if TARGET_PACKAGE_TOKEN not in content:
        logger.warning(
            "Manifest template has no target package placeholder",
            template=str(template_path),
            token=TARGET_PACKAGE_TOKEN,
        )

    manifest_path = scratch.new_dir("manifest-") / "AndroidManifest.xml"
    logger.info(
        "Adding target package to manifest",
        target_package=package_id,
        manifest=str(manifest_path),
    )
    rendered = substitute_target_package(content, package_id)
    logger.debug("Final manifest", content=rendered)
    manifest_path.write_text(rendered, encoding="utf-8")
    return manifest_path
