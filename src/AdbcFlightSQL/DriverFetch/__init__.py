# === NAVMAP v1 ===
# {
#   "module": "AdbcFlightSQL.DriverFetch",
#   "purpose": "Package initialization for AdbcFlightSQL.DriverFetch",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for fetching the prebuilt ADBC FlightSQL driver library.

This facade exposes the fetch pipeline, its settings and error types, and the
``DRIVER_PATH``/``DRIVER_VERSION`` constants recorded by the build step once
``adbc-flightsql-fetch fetch --package-constants`` has run.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__version__ = "0.1.0"

_EXPORT_MAP = {
    "fetch_driver": ".pipeline",
    "DriverArtifact": ".pipeline",
    "FetchSettings": ".settings",
    "HttpSettings": ".settings",
    "load_settings": ".settings",
    "PlatformVariant": ".targets",
    "SUPPORTED_TARGETS": ".targets",
    "variant_for_target": ".targets",
    "detect_host_target": ".targets",
    "BuildOutputs": ".publish",
    "setup_logging": ".logging_config",
    "DriverFetchError": ".errors",
    "ConfigurationError": ".errors",
    "UnsupportedTargetError": ".errors",
    "DownloadFailure": ".errors",
    "ManifestError": ".errors",
    "MissingArtifactError": ".errors",
    "IntegrityError": ".errors",
    "ChecksumMismatchError": ".errors",
    "ArchiveStructureError": ".errors",
    "InstallError": ".errors",
}

_BUILD_CONSTANTS = ("DRIVER_PATH", "DRIVER_VERSION")

__all__ = [*_EXPORT_MAP, *_BUILD_CONSTANTS, "__version__"]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .errors import (
        ArchiveStructureError,
        ChecksumMismatchError,
        ConfigurationError,
        DownloadFailure,
        DriverFetchError,
        InstallError,
        IntegrityError,
        ManifestError,
        MissingArtifactError,
        UnsupportedTargetError,
    )
    from .logging_config import setup_logging
    from .pipeline import DriverArtifact, fetch_driver
    from .publish import BuildOutputs
    from .settings import FetchSettings, HttpSettings, load_settings
    from .targets import (
        SUPPORTED_TARGETS,
        PlatformVariant,
        detect_host_target,
        variant_for_target,
    )

    DRIVER_PATH: str
    DRIVER_VERSION: str


def __getattr__(name: str) -> Any:
    """Lazily import API exports and the generated build constants."""

    if name in _BUILD_CONSTANTS:
        try:
            generated = import_module(f"{__name__}._driver_build")
        except ModuleNotFoundError as exc:
            if exc.name != f"{__name__}._driver_build":
                raise
            raise AttributeError(
                f"module '{__name__}' has no attribute '{name}'; "
                "run 'adbc-flightsql-fetch fetch --package-constants' to generate it"
            ) from exc
        return getattr(generated, name)

    module_name = _EXPORT_MAP.get(name)
    if module_name is not None:
        module = import_module(module_name, __name__)
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted(set(globals()) | set(__all__))
