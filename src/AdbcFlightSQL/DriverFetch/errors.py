"""Exception hierarchy shared across target resolution, download, and install.

The fetch pipeline spans configuration parsing, HTTP retrieval, digest
verification, archive unpacking, and filesystem placement. Every failure is
fatal to the build step, but the hierarchy keeps the categories apart so the
CLI and callers can report a precise reason (unsupported platform versus a
tampered wheel, for example) while still catching :class:`DriverFetchError`
at the top.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "DriverFetchError",
    "ConfigurationError",
    "UnsupportedTargetError",
    "DownloadFailure",
    "ManifestError",
    "MissingArtifactError",
    "IntegrityError",
    "ChecksumMismatchError",
    "ArchiveStructureError",
    "InstallError",
]


class DriverFetchError(RuntimeError):
    """Base exception for driver resolution, download, or install failures."""


class ConfigurationError(DriverFetchError):
    """Raised when configuration inputs or environment overrides are invalid."""


class UnsupportedTargetError(ConfigurationError):
    """Raised when no driver variant exists for the requested target."""

    def __init__(self, target: str) -> None:
        super().__init__(f"Unsupported target '{target}' for ADBC FlightSQL driver")
        self.target = target


class DownloadFailure(DriverFetchError):
    """Raised when an HTTP request fails or returns a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ManifestError(DriverFetchError):
    """Raised when release metadata cannot be parsed."""


class MissingArtifactError(ManifestError):
    """Raised when a release does not list the expected artifact."""


class IntegrityError(DriverFetchError):
    """Raised when downloaded content fails integrity checks."""


class ChecksumMismatchError(IntegrityError):
    """Raised when the computed digest differs from the advertised one."""

    def __init__(self, *, algorithm: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Artifact checksum mismatch ({algorithm}): expected {expected}, got {actual}"
        )
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual


class ArchiveStructureError(DriverFetchError):
    """Raised when an archive does not contain the expected entries."""


class InstallError(DriverFetchError):
    """Raised when the extracted library cannot be written to its destination."""
