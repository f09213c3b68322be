"""
Scratch resource storage.

Every intermediate file a build creates lives in one directory owned by that
build. Directory names carry a random suffix, so concurrent builds never share
a path and need no locking.
"""

from __future__ import annotations

import atexit
import os
import shutil
import tempfile
import threading
from pathlib import Path
from types import TracebackType

from ..core.config import RetentionPolicy
from ..core.logging import get_logger

logger = get_logger(__name__)

_exit_lock = threading.Lock()
_remove_on_exit: set[Path] = set()
_exit_hook_registered = False


def _remove_pending() -> None:
    with _exit_lock:
        pending = list(_remove_on_exit)
        _remove_on_exit.clear()
    for path in pending:
        shutil.rmtree(path, ignore_errors=True)


def schedule_removal_on_exit(path: Path) -> None:
    """Remove ``path`` (file or directory tree) when the interpreter exits."""
    global _exit_hook_registered
    with _exit_lock:
        _remove_on_exit.add(Path(path))
        if not _exit_hook_registered:
            atexit.register(_remove_pending)
            _exit_hook_registered = True


def pending_removals() -> set[Path]:
    """Paths currently scheduled for removal at exit."""
    with _exit_lock:
        return set(_remove_on_exit)


class ScratchSpace:
    """A per-build scratch directory with a cleanup policy.

    Use as a context manager. With ``EAGER`` retention the directory is
    removed when the block exits, whether the build succeeded or not. With
    ``DELETE_ON_EXIT`` it is removed when the process exits. ``RETAIN`` keeps
    it for inspection.
    """

    def __init__(
        self,
        retention: RetentionPolicy = RetentionPolicy.DELETE_ON_EXIT,
        prefix: str = "harness-build-",
        base_dir: Path | None = None,
    ) -> None:
        self.retention = retention
        self.prefix = prefix
        self.base_dir = base_dir
        self._root: Path | None = None

    @property
    def root(self) -> Path:
        """The scratch directory, created on first access."""
        if self._root is None:
            if self.base_dir is not None:
                self.base_dir.mkdir(parents=True, exist_ok=True)
            self._root = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.base_dir))
            if self.retention is RetentionPolicy.DELETE_ON_EXIT:
                schedule_removal_on_exit(self._root)
            logger.debug("Created scratch directory", path=str(self._root), retention=self.retention.value)
        return self._root

    def new_file(self, prefix: str, suffix: str = "") -> Path:
        """Create an empty, uniquely named file in the scratch directory."""
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=self.root)
        os.close(fd)
        return Path(name)

    def new_dir(self, prefix: str) -> Path:
        """Create a uniquely named sub-directory in the scratch directory."""
        return Path(tempfile.mkdtemp(prefix=prefix, dir=self.root))

    def cleanup(self) -> None:
        """Remove the scratch directory now, regardless of policy."""
        if self._root is not None and self._root.exists():
            shutil.rmtree(self._root, ignore_errors=True)
            logger.debug("Removed scratch directory", path=str(self._root))

    def __enter__(self) -> ScratchSpace:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.retention is RetentionPolicy.EAGER:
            self.cleanup()
