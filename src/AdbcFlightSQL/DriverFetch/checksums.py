"""Checksum normalisation and verification helpers.

The PyPI JSON API advertises a SHA-256 digest per release file; the conda
channel flow has none. These helpers normalise whatever digest is available,
compare it against the downloaded bytes, and make the "nothing to verify" case
an explicit, logged outcome instead of a silent one.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Optional

from .errors import ChecksumMismatchError, ManifestError

_SUPPORTED_ALGORITHMS = {"md5", "sha1", "sha256", "sha512"}
_HEX_DIGEST = re.compile(r"[0-9a-f]{32,128}")


@dataclass(slots=True, frozen=True)
class ExpectedChecksum:
    """Expected checksum derived from release metadata."""

    algorithm: str
    value: str

    @classmethod
    def parse(cls, value: str, algorithm: str = "sha256") -> "ExpectedChecksum":
        """Return a normalised checksum, rejecting malformed declarations."""

        candidate = (algorithm or "sha256").strip().lower()
        if candidate not in _SUPPORTED_ALGORITHMS:
            raise ManifestError(f"unsupported checksum algorithm '{candidate}'")
        if not isinstance(value, str):
            raise ManifestError("checksum value must be a string")
        digest = value.strip().lower()
        if not _HEX_DIGEST.fullmatch(digest):
            raise ManifestError(f"checksum value must be a hexadecimal digest, got '{value}'")
        return cls(algorithm=candidate, value=digest)


def compute_digest(data: bytes, algorithm: str = "sha256") -> str:
    """Return the hex digest of ``data``."""

    hasher = hashlib.new(algorithm)
    hasher.update(data)
    return hasher.hexdigest()


def verify_digest(
    data: bytes,
    expected: Optional[ExpectedChecksum],
    *,
    logger: Optional[logging.Logger] = None,
) -> bool:
    """Check ``data`` against ``expected``.

    Returns:
        ``True`` when a digest was verified, ``False`` when none was supplied
        and verification was skipped.

    Raises:
        ChecksumMismatchError: If the computed digest differs.
    """

    log = logger or logging.getLogger("AdbcFlightSQL.DriverFetch")
    if expected is None:
        log.warning(
            "no checksum advertised; skipping integrity verification",
            extra={"stage": "verify", "bytes": len(data)},
        )
        return False

    actual = compute_digest(data, expected.algorithm)
    if actual.lower() != expected.value.lower():
        raise ChecksumMismatchError(
            algorithm=expected.algorithm,
            expected=expected.value,
            actual=actual,
        )
    log.info(
        "checksum verified",
        extra={"stage": "verify", "checksum_algorithm": expected.algorithm},
    )
    return True


__all__ = ["ExpectedChecksum", "compute_digest", "verify_digest"]
