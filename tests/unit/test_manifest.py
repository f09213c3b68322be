"""Unit tests for manifest templating and resource lookup."""

import os

import pytest

from harness_builder.core.config import RetentionPolicy
from harness_builder.core.exceptions import ErrorCategory, ResourceNotFoundError
from harness_builder.core.resources import BUNDLED_RESOURCES, resolve_resource
from harness_builder.services.manifest import (
    TARGET_PACKAGE_TOKEN,
    render_manifest,
    substitute_target_package,
)
from harness_builder.storage import ScratchSpace


@pytest.fixture
def scratch(temp_dir):
    with ScratchSpace(RetentionPolicy.RETAIN, base_dir=temp_dir / "scratch") as space:
        yield space


class TestSubstitution:
    """Tests for placeholder substitution."""

    def test_placeholder_replaced(self):
        template = f'<instrumentation android:targetPackage="{TARGET_PACKAGE_TOKEN}" />'

        rendered = substitute_target_package(template, "com.example.app")

        assert "com.example.app" in rendered
        assert TARGET_PACKAGE_TOKEN not in rendered

    def test_every_occurrence_replaced(self):
        template = f"{TARGET_PACKAGE_TOKEN} and {TARGET_PACKAGE_TOKEN}"

        assert substitute_target_package(template, "a.b") == "a.b and a.b"

    def test_missing_placeholder_is_noop(self):
        template = '<manifest package="io.harness.server" />'

        assert substitute_target_package(template, "com.example.app") == template

    def test_package_inserted_verbatim(self):
        rendered = substitute_target_package(TARGET_PACKAGE_TOKEN, "com.example.<weird>&")

        assert rendered == "com.example.<weird>&"


class TestRenderManifest:
    """Tests for rendering the manifest into scratch space."""

    def test_render_bundled_template(self, scratch):
        manifest = render_manifest("AndroidManifestTemplate.xml", "com.example.app", scratch)

        content = manifest.read_text(encoding="utf-8")
        assert manifest.name == "AndroidManifest.xml"
        assert manifest.is_relative_to(scratch.root)
        assert 'android:targetPackage="com.example.app"' in content
        assert TARGET_PACKAGE_TOKEN not in content

    def test_render_template_without_placeholder(self, scratch, temp_dir):
        raw = temp_dir / "raw.xml"
        raw.write_text('<manifest package="raw" />', encoding="utf-8")

        manifest = render_manifest(raw, "com.example.app", scratch)

        assert manifest.read_text(encoding="utf-8") == '<manifest package="raw" />'

    def test_renders_are_unique_per_call(self, scratch):
        first = render_manifest("AndroidManifestTemplate.xml", "com.example.one", scratch)
        second = render_manifest("AndroidManifestTemplate.xml", "com.example.two", scratch)

        assert first != second
        assert "com.example.one" in first.read_text(encoding="utf-8")

    def test_missing_template(self, scratch):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            render_manifest("NoSuchTemplate.xml", "com.example.app", scratch)

        assert exc_info.value.category is ErrorCategory.MISSING_DEPENDENCY
        assert exc_info.value.working_directory == os.getcwd()
        assert "NoSuchTemplate.xml" in str(exc_info.value)


class TestResolveResource:
    """Tests for resource lookup order."""

    def test_search_dirs_before_bundled(self, temp_dir):
        override = temp_dir / "AndroidManifestTemplate.xml"
        override.write_text("override", encoding="utf-8")

        assert resolve_resource("AndroidManifestTemplate.xml", [temp_dir]) == override

    def test_leading_slash_searches_directories(self):
        resolved = resolve_resource("/AndroidManifestTemplate.xml")

        assert resolved == BUNDLED_RESOURCES / "AndroidManifestTemplate.xml"

    def test_searched_locations_reported(self, temp_dir):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            resolve_resource("prebuild/missing.apk", [temp_dir])

        assert str(temp_dir / "prebuild" / "missing.apk") in exc_info.value.searched
