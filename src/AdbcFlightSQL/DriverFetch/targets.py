# === NAVMAP v1 ===
# {
#   "module": "AdbcFlightSQL.DriverFetch.targets",
#   "purpose": "Map build target identifiers onto platform-specific driver artifact names",
#   "sections": [
#     {"id": "variant", "name": "PlatformVariant", "anchor": "VAR", "kind": "api"},
#     {"id": "table", "name": "Supported Target Table", "anchor": "TAB", "kind": "constants"},
#     {"id": "lookup", "name": "Target Lookup", "anchor": "LKP", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Target resolution for the FlightSQL driver artifacts.

Each supported build target maps onto a :class:`PlatformVariant` describing how
the driver is named on PyPI (the wheel platform suffix), how it is named on a
Conda channel (subdir and build string), and the shared library filename that
must be pulled out of either archive. The table is built once at import time
and exposed read-only; unknown targets are always a hard failure.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from .errors import UnsupportedTargetError

WHEEL_PACKAGE = "adbc_driver_flightsql"
UNIX_LIB = "libadbc_driver_flightsql.so"
MACOS_LIB = "libadbc_driver_flightsql.dylib"
WINDOWS_LIB = "adbc_driver_flightsql.dll"


@dataclass(frozen=True, slots=True)
class PlatformVariant:
    """Platform-specific naming and extraction parameters.

    Attributes:
        target: Build target triple the variant was resolved from.
        wheel_suffix: Python/ABI/platform tag portion of the wheel filename.
        lib_filename: Name of the shared library inside the wheel and on disk.
        conda_subdir: Conda channel platform directory (``linux-64`` etc).
        conda_build: Default build string of the channel artifact, if known.
        conda_lib_dir: Directory of the unpacked conda tree holding the library.
        conda_lib_filename: Library name inside the conda package when it differs
            from ``lib_filename``.
    """

    target: str
    wheel_suffix: str
    lib_filename: str
    conda_subdir: str
    conda_build: Optional[str] = None
    conda_lib_dir: str = "lib"
    conda_lib_filename: Optional[str] = None

    @property
    def conda_library_name(self) -> str:
        """Return the library name to look for inside the conda package."""

        return self.conda_lib_filename or self.lib_filename

    def wheel_filename(self, version: str) -> str:
        """Return the PyPI wheel filename for ``version``."""

        return f"{WHEEL_PACKAGE}-{version}-{self.wheel_suffix}"


# The macOS wheels ship the driver with a ``.so`` suffix while the conda
# packages use the native ``.dylib`` name. The installed file keeps
# ``lib_filename`` either way so the output path does not depend on the source.
# The ``conda_build`` strings belong to the 1.9.0 conda-forge packages and are
# not applied to any other version.
_TARGETS = {
    "x86_64-unknown-linux-gnu": PlatformVariant(
        target="x86_64-unknown-linux-gnu",
        wheel_suffix=(
            "py3-none-manylinux1_x86_64.manylinux2014_x86_64"
            ".manylinux_2_17_x86_64.manylinux_2_5_x86_64.whl"
        ),
        lib_filename=UNIX_LIB,
        conda_subdir="linux-64",
        conda_build="h5888daf_0",
    ),
    "aarch64-unknown-linux-gnu": PlatformVariant(
        target="aarch64-unknown-linux-gnu",
        wheel_suffix="py3-none-manylinux2014_aarch64.manylinux_2_17_aarch64.whl",
        lib_filename=UNIX_LIB,
        conda_subdir="linux-aarch64",
        conda_build="h5ad3122_0",
    ),
    "x86_64-apple-darwin": PlatformVariant(
        target="x86_64-apple-darwin",
        wheel_suffix="py3-none-macosx_10_15_x86_64.whl",
        lib_filename=UNIX_LIB,
        conda_subdir="osx-64",
        conda_build="h240833e_0",
        conda_lib_filename=MACOS_LIB,
    ),
    "aarch64-apple-darwin": PlatformVariant(
        target="aarch64-apple-darwin",
        wheel_suffix="py3-none-macosx_11_0_arm64.whl",
        lib_filename=UNIX_LIB,
        conda_subdir="osx-arm64",
        conda_build="h286801f_0",
        conda_lib_filename=MACOS_LIB,
    ),
    "x86_64-pc-windows-msvc": PlatformVariant(
        target="x86_64-pc-windows-msvc",
        wheel_suffix="py3-none-win_amd64.whl",
        lib_filename=WINDOWS_LIB,
        conda_subdir="win-64",
        conda_build="he0c23c2_0",
        conda_lib_dir="Library/bin",
    ),
}

SUPPORTED_TARGETS: Mapping[str, PlatformVariant] = MappingProxyType(_TARGETS)

_HOST_TRIPLES = {
    ("linux", "x86_64"): "x86_64-unknown-linux-gnu",
    ("linux", "amd64"): "x86_64-unknown-linux-gnu",
    ("linux", "aarch64"): "aarch64-unknown-linux-gnu",
    ("linux", "arm64"): "aarch64-unknown-linux-gnu",
    ("darwin", "x86_64"): "x86_64-apple-darwin",
    ("darwin", "arm64"): "aarch64-apple-darwin",
    ("darwin", "aarch64"): "aarch64-apple-darwin",
    ("windows", "amd64"): "x86_64-pc-windows-msvc",
    ("windows", "x86_64"): "x86_64-pc-windows-msvc",
}


def variant_for_target(target: str) -> PlatformVariant:
    """Return the variant registered for ``target``.

    Raises:
        UnsupportedTargetError: If ``target`` is not in :data:`SUPPORTED_TARGETS`.
    """

    variant = SUPPORTED_TARGETS.get(target)
    if variant is None:
        raise UnsupportedTargetError(target)
    return variant


def detect_host_target(system: Optional[str] = None, machine: Optional[str] = None) -> str:
    """Return the target triple matching the running interpreter's host."""

    system_name = (system or platform.system()).lower()
    machine_name = (machine or platform.machine()).lower()
    triple = _HOST_TRIPLES.get((system_name, machine_name))
    if triple is None:
        raise UnsupportedTargetError(f"{machine_name}-{system_name}")
    return triple


__all__ = [
    "PlatformVariant",
    "SUPPORTED_TARGETS",
    "variant_for_target",
    "detect_host_target",
]
