"""Filesystem locks used as cross-process leases.

A lock is a small file whose permission mode tells its kind:

- ``0600``: permanent lock, active while the file exists
- ``0644``: temporary lock, active until the file's modification time

Temporary locks store their expiry in the modification time, so a lease
survives process restarts and is shared between all invocations of the
binary. Expired locks are removed when they are checked.
"""

from __future__ import annotations

import os
import stat
import time
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import structlog

from .models import Lock, LockKind

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)

TEMPORARY_LOCK_MODE = 0o644
PERMANENT_LOCK_MODE = 0o600


def _write_lock(path: Path, content: str, mode: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    # write_text honours the umask and keeps the mode of an existing file
    os.chmod(path, mode)


class LockStore:
    """Creates, inspects and removes lock files."""

    def __init__(self) -> None:
        self._log = logger.bind(component="locks")

    def set_permanent(self, path: Path, description: str = "permanent lock") -> None:
        """Create a permanent lock at ``path``."""
        _write_lock(path, description, PERMANENT_LOCK_MODE)
        self._log.debug("permanent_lock_set", path=str(path))

    def set_temporary(
        self,
        path: Path,
        description: str = "timed lock",
        duration: timedelta = timedelta(minutes=2),
    ) -> None:
        """Create a temporary lock at ``path`` valid for ``duration``.

        Both access and modification times are moved to the expiry.
        """
        valid_until = datetime.now(tz=UTC) + duration
        _write_lock(
            path,
            f"{description}\nvalid until: {valid_until.isoformat()}",
            TEMPORARY_LOCK_MODE,
        )

        expiry = path.stat().st_mtime + duration.total_seconds()
        os.utime(path, (expiry, expiry))
        self._log.debug(
            "temporary_lock_set",
            path=str(path),
            valid_until=valid_until.isoformat(),
        )

    def is_active(self, path: Path) -> bool:
        """Check whether the temporary lock at ``path`` is still valid.

        An expired lock is removed.
        """
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            self._log.debug("lock_absent", path=str(path))
            return False

        active = mtime > time.time()
        self._log.debug("lock_checked", path=str(path), active=active)
        if not active:
            self.remove(path)
        return active

    def permanent_exists(self, path: Path) -> bool:
        """Check whether a lock file exists at ``path``."""
        exists = path.exists()
        self._log.debug("permanent_lock_checked", path=str(path), exists=exists)
        return exists

    def kind(self, path: Path) -> LockKind:
        """Return the kind of the lock at ``path`` from its mode."""
        try:
            mode = stat.S_IMODE(path.stat().st_mode)
        except FileNotFoundError:
            return LockKind.UNKNOWN

        if mode == TEMPORARY_LOCK_MODE:
            return LockKind.TEMPORARY
        if mode == PERMANENT_LOCK_MODE:
            return LockKind.PERMANENT
        return LockKind.UNKNOWN

    def read(self, path: Path) -> Lock | None:
        """Return a snapshot of the lock at ``path``, or None if absent."""
        try:
            info = path.stat()
            description = path.read_text()
        except FileNotFoundError:
            return None

        kind = self.kind(path)
        expires_at = None
        if kind is LockKind.TEMPORARY:
            expires_at = datetime.fromtimestamp(info.st_mtime, tz=UTC)
        return Lock(path=path, kind=kind, description=description, expires_at=expires_at)

    def remove(self, path: Path) -> None:
        """Remove the lock at ``path``. A missing file is not an error."""
        self._log.debug("lock_removed", path=str(path))
        path.unlink(missing_ok=True)
