# === NAVMAP v1 ===
# {
#   "module": "AdbcFlightSQL.DriverFetch.pipeline",
#   "purpose": "Resolve, download, verify, extract, and install the FlightSQL driver",
#   "sections": [
#     {"id": "artifact", "name": "DriverArtifact", "anchor": "ART", "kind": "class"},
#     {"id": "sources", "name": "Per-source Acquisition", "anchor": "SRC", "kind": "helpers"},
#     {"id": "entry", "name": "fetch_driver", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Linear fetch pipeline for the ADBC FlightSQL driver library.

:func:`fetch_driver` runs one build step end to end::

    target -> output path -> cache check
           -> (pypi: metadata -> wheel -> sha256 -> unzip)
            | (conda: channel url -> package -> unpack)
           -> install -> DriverArtifact

Every failure raises a :class:`~AdbcFlightSQL.DriverFetch.errors.DriverFetchError`
subclass. Verification and extraction complete before anything touches the
output path, so a bad artifact never leaves a library behind.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional

from .channel import channel_url_for
from .checksums import verify_digest
from .extraction import extract_from_conda, extract_from_wheel
from .install import check_existing, install_library
from .manifest import fetch_release_manifest, find_release_file
from .net import fetch_bytes
from .publish import BuildOutputs
from .settings import FetchSettings, HttpSettings
from .targets import PlatformVariant

LOGGER = logging.getLogger("AdbcFlightSQL.DriverFetch")

Source = Literal["pypi", "conda", "cache"]


@dataclass(frozen=True, slots=True)
class DriverArtifact:
    """Outcome of a fetch run.

    Attributes:
        path: Absolute path of the installed library.
        version: Driver version the library belongs to.
        source: Registry the bytes came from, or ``"cache"`` on a cache hit.
        downloaded: ``True`` when network traffic occurred.
        source_member: Archive member the library was taken from.
    """

    path: Path
    version: str
    source: Source
    downloaded: bool
    source_member: Optional[str] = None

    def outputs(self) -> BuildOutputs:
        """Return the values to publish to the build."""

        return BuildOutputs(lib_path=self.path, version=self.version)


# --- Per-source acquisition -----------------------------------------------------


def _install_from_pypi(
    settings: FetchSettings,
    variant: PlatformVariant,
    destination: Path,
    http: HttpSettings,
    log: logging.Logger,
) -> str:
    version = settings.version
    wheel_name = variant.wheel_filename(version)
    manifest = fetch_release_manifest(settings.pypi_base_url, version, http=http)
    entry = find_release_file(manifest, wheel_name, version=version)

    log.info(
        "downloading wheel",
        extra={"stage": "download", "wheel_filename": wheel_name, "url": entry.url},
    )
    data = fetch_bytes(entry.url, http=http, purpose="PyPI wheel")
    verify_digest(data, entry.expected_checksum(), logger=log)

    member, payload = extract_from_wheel(data, variant.lib_filename)
    install_library(payload, destination, logger=log)
    return member


def _install_from_conda(
    settings: FetchSettings,
    variant: PlatformVariant,
    destination: Path,
    http: HttpSettings,
    log: logging.Logger,
) -> str:
    url = channel_url_for(settings, variant)
    log.info("downloading conda package", extra={"stage": "download", "url": url})
    data = fetch_bytes(url, http=http, purpose="Conda package")
    log.warning(
        "conda channel artifacts carry no advertised digest; installing unverified",
        extra={"stage": "verify", "url": url, "bytes": len(data)},
    )

    with tempfile.TemporaryDirectory(prefix="adbc-flightsql-") as scratch:
        scratch_dir = Path(scratch)
        library = extract_from_conda(
            data,
            variant.conda_library_name,
            scratch_dir,
            lib_dir=variant.conda_lib_dir,
        )
        install_library(library, destination, logger=log)
        return library.relative_to(scratch_dir / "pkg").as_posix()


# --- Public API -----------------------------------------------------------------


def fetch_driver(
    settings: FetchSettings,
    *,
    logger: Optional[logging.Logger] = None,
) -> DriverArtifact:
    """Make the driver library available at its resolved output path.

    A non-empty file already at the output path is returned as-is without any
    network traffic. Otherwise the configured source is contacted and the
    library installed there.

    Raises:
        UnsupportedTargetError: The target has no known platform variant.
        DownloadFailure: Metadata or artifact could not be retrieved.
        ManifestError: Release metadata is malformed or lacks the wheel.
        IntegrityError: The wheel digest does not match the advertised one.
        ArchiveStructureError: The archive does not hold the library.
        InstallError: The library could not be written.
    """

    log = logger or LOGGER
    variant = settings.resolve_variant()
    destination = settings.resolve_output_path(variant)
    version = settings.effective_version()
    log.info(
        "resolved driver target",
        extra={
            "stage": "resolve",
            "target": variant.target,
            "source": settings.source,
            "version": version,
            "path": str(destination),
        },
    )

    if check_existing(destination, logger=log):
        return DriverArtifact(path=destination, version=version, source="cache", downloaded=False)

    http = settings.http_settings()
    if settings.source == "conda":
        member = _install_from_conda(settings, variant, destination, http, log)
    else:
        member = _install_from_pypi(settings, variant, destination, http, log)

    return DriverArtifact(
        path=destination,
        version=version,
        source=settings.source,
        downloaded=True,
        source_member=member,
    )


__all__ = ["DriverArtifact", "fetch_driver"]
