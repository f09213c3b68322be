"""
Archive Service.

Streaming read/write access to zip-based packages (APKs). Entries are copied
one at a time with their original compression method, timestamps and
attributes, so a copied entry decompresses to exactly the source bytes and
stored (uncompressed) entries stay stored.
"""

from __future__ import annotations

import os
import shutil
import struct
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import IO, Iterable, Iterator

from ...core.exceptions import ArchiveError, ArchiveOpenError, EntryNotFoundError
from ...core.logging import get_logger

logger = get_logger(__name__)

_COPY_CHUNK = 64 * 1024
_ZIP64_EXTRA_ID = 0x0001


def open_for_read(path: Path) -> zipfile.ZipFile:
    """Open a package for reading.

    The returned ZipFile is a context manager; use it in a ``with`` block so
    the file handle is released even when a later step fails.

    Raises:
        ArchiveOpenError: The path does not exist or is not a zip container.
    """
    path = Path(path)
    if not path.is_file():
        raise ArchiveOpenError(message="Package does not exist", archive_path=str(path))
    try:
        return zipfile.ZipFile(path, "r")
    except (zipfile.BadZipFile, OSError) as e:
        raise ArchiveOpenError(
            message="Not a valid zip container", archive_path=str(path), cause=e
        )


@dataclass(frozen=True)
class ArchiveEntry:
    """A single entry of an open package."""

    name: str
    size: int
    compressed_size: int
    info: zipfile.ZipInfo
    archive: zipfile.ZipFile

    def open(self) -> IO[bytes]:
        """Open the entry's decompressed content as a binary stream."""
        return self.archive.open(self.info, "r")


def entries(archive: zipfile.ZipFile) -> Iterator[ArchiveEntry]:
    """Yield the archive's entries in central-directory order.

    Directory entries are included. The sequence can be iterated again only
    by calling this function again.
    """
    for info in archive.infolist():
        yield ArchiveEntry(
            name=info.filename,
            size=info.file_size,
            compressed_size=info.compress_size,
            info=info,
            archive=archive,
        )


def _get_info(archive: zipfile.ZipFile, entry_name: str) -> zipfile.ZipInfo:
    try:
        return archive.getinfo(entry_name)
    except KeyError:
        raise EntryNotFoundError(
            message=f"Entry not found: {entry_name}",
            archive_path=str(archive.filename or ""),
            entry_name=entry_name,
        )


def _without_zip64(extra: bytes) -> bytes:
    """Drop zip64 records (header id 0x0001); the writer emits its own."""
    kept = bytearray()
    offset = 0
    while offset + 4 <= len(extra):
        header_id, size = struct.unpack_from("<HH", extra, offset)
        end = offset + 4 + size
        if header_id != _ZIP64_EXTRA_ID:
            kept += extra[offset:end]
        offset = end
    return bytes(kept)


def _clone_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    """Copy the metadata that defines an entry, leaving offsets and CRC to the writer."""
    clone = zipfile.ZipInfo(info.filename, date_time=info.date_time)
    clone.compress_type = info.compress_type
    clone.comment = info.comment
    clone.create_system = info.create_system
    clone.external_attr = info.external_attr
    clone.internal_attr = info.internal_attr
    clone.flag_bits = info.flag_bits & 0x0800
    clone.extra = _without_zip64(info.extra)
    # Lets the writer decide up front whether the entry needs zip64 headers.
    clone.file_size = info.file_size
    return clone


class ArchiveWriter:
    """Writes a brand-new package entry by entry.

    The central directory is only written by ``close()``; a writer that is
    never closed leaves a corrupt package behind. Entry names must be unique.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        try:
            self._zip = zipfile.ZipFile(self.path, "w", allowZip64=True)
        except OSError as e:
            raise ArchiveError(
                message="Cannot create package", archive_path=str(self.path), cause=e
            )
        self._names: set[str] = set()

    @property
    def names(self) -> list[str]:
        """Names written so far, in order."""
        return [info.filename for info in self._zip.infolist()]

    def _claim(self, name: str) -> None:
        if name in self._names:
            raise ArchiveError(
                message=f"Duplicate entry: {name}", archive_path=str(self.path)
            )
        self._names.add(name)

    def put_entry(self, info: zipfile.ZipInfo, stream: IO[bytes]) -> None:
        """Write one entry, streaming its content from ``stream``."""
        self._claim(info.filename)
        if info.is_dir():
            self._zip.writestr(info, b"")
            return
        with self._zip.open(info, "w", force_zip64=info.file_size > zipfile.ZIP64_LIMIT) as dest:
            shutil.copyfileobj(stream, dest, _COPY_CHUNK)

    def close(self) -> None:
        """Finalize the package by writing its central directory."""
        self._zip.close()

    def __enter__(self) -> ArchiveWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def new_writer(path: Path) -> ArchiveWriter:
    """Create an empty package at ``path`` for writing."""
    return ArchiveWriter(path)


def copy_entry(source: zipfile.ZipFile, entry_name: str, writer: ArchiveWriter) -> None:
    """Stream one entry from ``source`` into ``writer``, keeping its metadata.

    Raises:
        EntryNotFoundError: ``source`` has no entry with that name.
    """
    info = _get_info(source, entry_name)
    with source.open(info, "r") as src:
        writer.put_entry(_clone_info(info), src)


def copy_all(source: zipfile.ZipFile, writer: ArchiveWriter, exclude: Iterable[str] = ()) -> int:
    """Copy every entry of ``source`` in enumeration order, skipping ``exclude``.

    Returns:
        Number of entries copied
    """
    skipped = set(exclude)
    copied = 0
    for entry in entries(source):
        if entry.name in skipped:
            continue
        copy_entry(source, entry.name, writer)
        copied += 1
    return copied


def delete_entry(path: Path, entry_name: str) -> None:
    """Remove a named entry from the package at ``path``, in place.

    The package is rewritten next to the original and swapped in atomically,
    so a failure leaves the original untouched.

    Raises:
        ArchiveOpenError: ``path`` is not a readable package.
        EntryNotFoundError: The package has no such entry.
    """
    path = Path(path)
    with open_for_read(path) as source:
        _get_info(source, entry_name)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        os.close(fd)
        try:
            with new_writer(Path(tmp_name)) as writer:
                copy_all(source, writer, exclude=[entry_name])
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    os.replace(tmp_name, path)
    logger.debug("Deleted entry", package=str(path), entry=entry_name)


def list_entries(path: Path) -> list[str]:
    """Names of all entries in the package at ``path``."""
    with open_for_read(path) as archive:
        return archive.namelist()
