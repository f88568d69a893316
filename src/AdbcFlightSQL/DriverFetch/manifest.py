"""PyPI release metadata for the FlightSQL driver wheels.

The package index publishes ``/pypi/<package>/<version>/json`` with a ``urls``
array describing every file of the release. Only three keys matter here:
``filename`` (matched exactly against the platform wheel name), ``url`` (where
the wheel lives), and ``digests.sha256`` (checked after download).
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .checksums import ExpectedChecksum
from .errors import ManifestError, MissingArtifactError
from .net import fetch_bytes
from .settings import PYPI_PACKAGE, HttpSettings

LOGGER = logging.getLogger("AdbcFlightSQL.DriverFetch")


class ReleaseDigests(BaseModel):
    """Digest block of one release file."""

    model_config = ConfigDict(extra="ignore")

    sha256: Optional[str] = None


class ReleaseFile(BaseModel):
    """One downloadable file listed by a release."""

    model_config = ConfigDict(extra="ignore")

    filename: str
    url: str
    digests: ReleaseDigests = Field(default_factory=ReleaseDigests)

    def expected_checksum(self) -> Optional[ExpectedChecksum]:
        """Return the advertised SHA-256 digest, if any."""

        if not self.digests.sha256:
            return None
        return ExpectedChecksum.parse(self.digests.sha256, "sha256")


class ReleaseManifest(BaseModel):
    """Files published for a single release version."""

    model_config = ConfigDict(extra="ignore")

    files: List[ReleaseFile] = Field(validation_alias=AliasChoices("urls", "files"))

    def find(self, filename: str) -> Optional[ReleaseFile]:
        """Return the entry whose filename equals ``filename`` exactly."""

        return next((entry for entry in self.files if entry.filename == filename), None)


def release_metadata_url(base_url: str, version: str, package: str = PYPI_PACKAGE) -> str:
    """Return the JSON API URL describing ``package`` at ``version``."""

    return f"{base_url.rstrip('/')}/{package}/{version}/json"


def parse_release_manifest(payload: bytes) -> ReleaseManifest:
    """Deserialize a JSON API response body.

    Raises:
        ManifestError: If the body is not JSON or lacks the expected shape.
    """

    try:
        return ReleaseManifest.model_validate_json(payload)
    except PydanticValidationError as exc:
        raise ManifestError(f"Malformed release metadata: {exc}") from exc


def fetch_release_manifest(
    base_url: str,
    version: str,
    *,
    http: Optional[HttpSettings] = None,
) -> ReleaseManifest:
    """Download and parse the release metadata for ``version``."""

    url = release_metadata_url(base_url, version)
    LOGGER.debug("fetching release metadata", extra={"stage": "manifest", "url": url})
    payload = fetch_bytes(url, http=http, purpose="PyPI metadata")
    return parse_release_manifest(payload)


def find_release_file(manifest: ReleaseManifest, filename: str, *, version: str) -> ReleaseFile:
    """Return the manifest entry for ``filename`` or fail loudly."""

    entry = manifest.find(filename)
    if entry is None:
        raise MissingArtifactError(f"PyPI release {version} missing wheel {filename}")
    return entry


__all__ = [
    "ReleaseDigests",
    "ReleaseFile",
    "ReleaseManifest",
    "release_metadata_url",
    "parse_release_manifest",
    "fetch_release_manifest",
    "find_release_file",
]
