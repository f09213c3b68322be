"""Unit tests for the archive service."""

import zipfile

import pytest

from harness_builder.core.exceptions import ArchiveError, ArchiveOpenError, EntryNotFoundError
from harness_builder.services.archive import (
    copy_all,
    copy_entry,
    delete_entry,
    entries,
    list_entries,
    new_writer,
    open_for_read,
)


class TestOpenForRead:
    """Tests for opening packages."""

    def test_missing_file(self, temp_dir):
        with pytest.raises(ArchiveOpenError) as exc_info:
            open_for_read(temp_dir / "missing.apk")
        assert "missing.apk" in exc_info.value.archive_path

    def test_not_a_zip(self, temp_dir):
        bogus = temp_dir / "bogus.apk"
        bogus.write_bytes(b"definitely not a zip")

        with pytest.raises(ArchiveOpenError):
            open_for_read(bogus)

    def test_entries_in_central_directory_order(self, make_apk):
        apk = make_apk("harness.apk")

        with open_for_read(apk) as archive:
            names = [entry.name for entry in entries(archive)]
            first = next(entries(archive))
            with first.open() as stream:
                content = stream.read()

        assert names[0] == "AndroidManifest.xml"
        assert names[-1] == "META-INF/CERT.RSA"
        assert "assets/" in names
        assert first.size == len(content)


class TestCopyEntry:
    """Tests for entry copying."""

    def test_copy_preserves_content_and_compression(self, make_apk, temp_dir):
        apk = make_apk("harness.apk")
        dest = temp_dir / "copy.apk"

        with open_for_read(apk) as source, new_writer(dest) as writer:
            copy_entry(source, "resources.arsc", writer)
            copy_entry(source, "classes.dex", writer)

        with zipfile.ZipFile(apk) as original, zipfile.ZipFile(dest) as copied:
            assert copied.namelist() == ["resources.arsc", "classes.dex"]
            for name in copied.namelist():
                assert copied.read(name) == original.read(name)
                assert copied.getinfo(name).compress_type == original.getinfo(name).compress_type
                assert copied.getinfo(name).date_time == original.getinfo(name).date_time

    def test_copy_preserves_extra_field(self, temp_dir):
        apk = temp_dir / "aligned.apk"
        with zipfile.ZipFile(apk, "w") as zf:
            info = zipfile.ZipInfo("classes.dex", date_time=(2014, 1, 1, 0, 0, 0))
            # JAR marker extra field written by the jar tool
            info.extra = b"\xfe\xca\x00\x00"
            zf.writestr(info, b"dex")
        dest = temp_dir / "copy.apk"

        with open_for_read(apk) as source, new_writer(dest) as writer:
            copy_entry(source, "classes.dex", writer)

        with zipfile.ZipFile(dest) as copied:
            assert copied.getinfo("classes.dex").extra == b"\xfe\xca\x00\x00"

    def test_copy_missing_entry(self, make_apk, temp_dir):
        apk = make_apk("harness.apk")

        with open_for_read(apk) as source, new_writer(temp_dir / "out.apk") as writer:
            with pytest.raises(EntryNotFoundError) as exc_info:
                copy_entry(source, "lib/armeabi/libmissing.so", writer)

        assert exc_info.value.entry_name == "lib/armeabi/libmissing.so"

    def test_copy_all_with_exclusions(self, make_apk, temp_dir, read_apk):
        apk = make_apk("harness.apk")
        dest = temp_dir / "out.apk"

        with open_for_read(apk) as source, new_writer(dest) as writer:
            copied = copy_all(source, writer, exclude=["META-INF/CERT.SF"])

        original = read_apk(apk)
        result = read_apk(dest)
        assert copied == len(original) - 1
        assert "META-INF/CERT.SF" not in result
        assert list(result) == [n for n in original if n != "META-INF/CERT.SF"]

    def test_writer_rejects_duplicate_names(self, make_apk, temp_dir):
        apk = make_apk("harness.apk")

        with open_for_read(apk) as source, new_writer(temp_dir / "out.apk") as writer:
            copy_entry(source, "classes.dex", writer)
            with pytest.raises(ArchiveError):
                copy_entry(source, "classes.dex", writer)
            assert writer.names == ["classes.dex"]


class TestDeleteEntry:
    """Tests for in-place entry deletion."""

    def test_delete_removes_only_that_entry(self, make_apk, read_apk):
        apk = make_apk("harness.apk")
        before = read_apk(apk)

        delete_entry(apk, "META-INF/CERT.RSA")

        after = read_apk(apk)
        assert "META-INF/CERT.RSA" not in after
        assert after == {k: v for k, v in before.items() if k != "META-INF/CERT.RSA"}

    def test_delete_missing_entry_leaves_package_untouched(self, make_apk):
        apk = make_apk("harness.apk")
        before = apk.read_bytes()

        with pytest.raises(EntryNotFoundError):
            delete_entry(apk, "META-INF/ANDROIDD.SF")

        assert apk.read_bytes() == before
        assert [p.name for p in apk.parent.iterdir() if p.name.endswith(".tmp")] == []

    def test_delete_from_invalid_package(self, temp_dir):
        bogus = temp_dir / "bogus.apk"
        bogus.write_bytes(b"PK but not really")

        with pytest.raises(ArchiveOpenError):
            delete_entry(bogus, "AndroidManifest.xml")

    def test_list_entries(self, make_apk):
        apk = make_apk("harness.apk")
        delete_entry(apk, "AndroidManifest.xml")

        assert "AndroidManifest.xml" not in list_entries(apk)
        assert "classes.dex" in list_entries(apk)
