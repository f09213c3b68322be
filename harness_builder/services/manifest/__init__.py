"""Manifest template rendering."""

from .service import TARGET_PACKAGE_TOKEN, render_manifest, substitute_target_package

__all__ = ["TARGET_PACKAGE_TOKEN", "render_manifest", "substitute_target_package"]
