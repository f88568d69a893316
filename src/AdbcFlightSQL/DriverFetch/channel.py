"""Conda channel artifact addressing.

Channel packages are fetched without a metadata round-trip: the URL is fully
determined by channel, platform subdir, package name, version, and build
string. Channels do not hand out a digest through this path, so the pipeline
skips integrity verification for it and says so in the log.
"""

from __future__ import annotations

from .settings import CONDA_PACKAGE, FetchSettings
from .targets import PlatformVariant


def conda_artifact_filename(version: str, build: str, package: str = CONDA_PACKAGE) -> str:
    """Return the ``.conda`` filename for one package build."""

    return f"{package}-{version}-{build}.conda"


def conda_artifact_url(
    base_url: str,
    channel: str,
    subdir: str,
    version: str,
    build: str,
    package: str = CONDA_PACKAGE,
) -> str:
    """Return the download URL of a channel artifact."""

    filename = conda_artifact_filename(version, build, package)
    return f"{base_url.rstrip('/')}/{channel.strip('/')}/{subdir}/{filename}"


def channel_url_for(settings: FetchSettings, variant: PlatformVariant) -> str:
    """Return the artifact URL for ``variant`` under ``settings``."""

    return conda_artifact_url(
        settings.conda_base_url,
        settings.conda_channel,
        variant.conda_subdir,
        settings.conda_version,
        settings.effective_conda_build(variant),
    )


__all__ = ["conda_artifact_filename", "conda_artifact_url", "channel_url_for"]
