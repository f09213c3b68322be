"""Zip package access: enumerate, copy, delete and write entries."""

from .service import (
    ArchiveEntry,
    ArchiveWriter,
    copy_all,
    copy_entry,
    delete_entry,
    entries,
    list_entries,
    new_writer,
    open_for_read,
)

__all__ = [
    "ArchiveEntry",
    "ArchiveWriter",
    "copy_all",
    "copy_entry",
    "delete_entry",
    "entries",
    "list_entries",
    "new_writer",
    "open_for_read",
]
