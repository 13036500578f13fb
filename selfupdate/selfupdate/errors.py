"""Exceptions raised by the self-update engine.

Transport errors (``NetworkError``) are absorbed by the orchestrator into
lease state. Integrity, security and swap errors always reach the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class SelfUpdateError(Exception):
    """Base exception for self-update operations."""


class ConfigError(SelfUpdateError):
    """The home or configuration directory cannot be resolved or created."""


class NetworkError(SelfUpdateError):
    """Release provider unreachable or answering with a non-200 status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        """Initialize network error.

        Args:
            message: Error message.
            status_code: HTTP status code, None for transport failures.
            retryable: Whether a later attempt may succeed.
        """
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class AuthResolutionError(SelfUpdateError):
    """The local credential store is unreadable or cannot be parsed."""


class NoMatchingAssetError(SelfUpdateError):
    """The selected release has no binary for the current platform."""


class ChecksumMismatchError(SelfUpdateError):
    """Published and computed checksums disagree."""

    def __init__(self, expected: str, computed: str, path: Path | None = None) -> None:
        self.expected = expected
        self.computed = computed
        self.path = path
        super().__init__(
            f"downloaded archive is corrupted, checksum mismatch: "
            f"computed {computed} != expected {expected}"
        )


class ArchiveError(SelfUpdateError):
    """The downloaded archive cannot be read."""


class ArchiveSecurityError(ArchiveError):
    """An archive entry would be written outside the destination directory."""

    def __init__(self, entry: str) -> None:
        self.entry = entry
        super().__init__(f"probable arbitrary file access attempt with entry {entry!r}")


class SwapError(SelfUpdateError):
    """A filesystem step of the binary replacement failed.

    Depending on the failed step, no binary may be installed at ``target``
    afterwards.
    """

    def __init__(self, step: str, source: Path, target: Path, cause: OSError) -> None:
        self.step = step
        self.source = source
        self.target = target
        self.cause = cause
        super().__init__(
            f"binary swap failed at step {step!r} "
            f"(source={source}, target={target}): "
            f"[errno {cause.errno}] {cause.strerror or cause}"
        )
