# === NAVMAP v1 ===
# {
#   "module": "AdbcFlightSQL.DriverFetch.publish",
#   "purpose": "Publish the resolved driver path and version to the surrounding build",
#   "sections": [
#     {"id": "outputs", "name": "BuildOutputs", "anchor": "OUT", "kind": "api"},
#     {"id": "emit", "name": "Env Lines, Env Files & Constants Module", "anchor": "EMT", "kind": "api"},
#     {"id": "stamp", "name": "Rerun Fingerprint & Stamp", "anchor": "STP", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Build metadata publishing.

The fetch step hands two values to the rest of the build: the absolute library
path and the driver version. They are emitted as ``KEY=VALUE`` lines on stdout,
optionally appended to an env file (the GitHub Actions ``$GITHUB_ENV``
convention), and optionally baked into a generated Python module exposing
``DRIVER_PATH`` and ``DRIVER_VERSION`` constants.

A stamp file records a fingerprint of the watched environment inputs and of
this package's own source. :func:`is_stale` compares against it so the build
re-runs the step only when one of those inputs changed or the library went
missing.
"""

from __future__ import annotations

import contextlib
import hashlib
import json
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from .errors import InstallError
from .settings import (
    ENV_CONDA_BASE_URL,
    ENV_CONDA_BUILD,
    ENV_CONDA_CHANNEL,
    ENV_CONDA_VERSION,
    ENV_LIB_PATH,
    ENV_PYPI_BASE,
    ENV_SOURCE,
    ENV_VERSION,
)

OUTPUT_LIB_PATH = "ADBC_FLIGHTSQL_LIB_PATH"
OUTPUT_LIB_VERSION = "ADBC_FLIGHTSQL_LIB_VERSION"

RERUN_IF_ENV_CHANGED = (
    ENV_VERSION,
    ENV_LIB_PATH,
    ENV_SOURCE,
    ENV_CONDA_VERSION,
    ENV_CONDA_CHANNEL,
    ENV_CONDA_BUILD,
    ENV_CONDA_BASE_URL,
    ENV_PYPI_BASE,
    "TARGET",
    "OUT_DIR",
)

PACKAGE_DIR = Path(__file__).resolve().parent
CONSTANTS_MODULE_NAME = "_driver_build"
DEFAULT_CONSTANTS_MODULE = PACKAGE_DIR / f"{CONSTANTS_MODULE_NAME}.py"


@dataclass(frozen=True, slots=True)
class BuildOutputs:
    """Values published to the build once the library is in place."""

    lib_path: Path
    version: str

    def as_env(self) -> Dict[str, str]:
        """Return the outputs keyed by their published variable names."""

        return {
            OUTPUT_LIB_PATH: str(self.lib_path),
            OUTPUT_LIB_VERSION: self.version,
        }


def env_lines(outputs: BuildOutputs) -> List[str]:
    """Return ``KEY=VALUE`` lines for ``outputs``."""

    return [f"{key}={value}" for key, value in outputs.as_env().items()]


def _atomic_write_text(path: Path, text: str) -> None:
    temp_path = path.with_name(f".{path.name}.tmp-{uuid.uuid4().hex[:8]}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_text(text, encoding="utf-8")
        os.replace(temp_path, path)
    except OSError as exc:
        # The temp file may not exist, or its parent may not be a directory.
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise InstallError(f"Failed to write {path}: {exc}") from exc


def append_env_file(path: Path, outputs: BuildOutputs) -> None:
    """Append the outputs to an env file consumed by later build steps."""

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as stream:
            for line in env_lines(outputs):
                stream.write(line + "\n")
    except OSError as exc:
        raise InstallError(f"Failed to append build outputs to {path}: {exc}") from exc


def render_constants_module(outputs: BuildOutputs) -> str:
    """Return the source of the generated constants module."""

    return (
        '"""Driver location recorded by adbc-flightsql-fetch. Generated; do not edit."""\n'
        "\n"
        f"DRIVER_PATH = {str(outputs.lib_path)!r}\n"
        f"DRIVER_VERSION = {outputs.version!r}\n"
    )


def write_constants_module(outputs: BuildOutputs, path: Optional[Path] = None) -> Path:
    """Write ``DRIVER_PATH``/``DRIVER_VERSION`` constants to a Python module."""

    target = path or DEFAULT_CONSTANTS_MODULE
    _atomic_write_text(target, render_constants_module(outputs))
    return target


# --- Rerun fingerprint & stamp --------------------------------------------------


def _source_files() -> List[Path]:
    return sorted(
        path for path in PACKAGE_DIR.glob("*.py") if path.stem != CONSTANTS_MODULE_NAME
    )


def build_fingerprint(environ: Mapping[str, str]) -> str:
    """Hash the watched environment inputs together with this package's source."""

    hasher = hashlib.sha256()
    for name in RERUN_IF_ENV_CHANGED:
        value = environ.get(name)
        hasher.update(name.encode("utf-8"))
        hasher.update(b"=" + value.encode("utf-8") if value is not None else b"\x00")
        hasher.update(b"\n")
    for source in _source_files():
        hasher.update(source.name.encode("utf-8"))
        hasher.update(source.read_bytes())
    return hasher.hexdigest()


def write_stamp(stamp_path: Path, outputs: BuildOutputs, environ: Mapping[str, str]) -> None:
    """Record the fingerprint and outputs of a successful run."""

    payload = {
        "fingerprint": build_fingerprint(environ),
        "watched_env": list(RERUN_IF_ENV_CHANGED),
        "outputs": outputs.as_env(),
    }
    _atomic_write_text(stamp_path, json.dumps(payload, indent=2, sort_keys=True) + "\n")


def _load_stamp(stamp_path: Path) -> Optional[Tuple[str, BuildOutputs]]:
    try:
        payload = json.loads(stamp_path.read_text(encoding="utf-8"))
        outputs = payload["outputs"]
        return str(payload["fingerprint"]), BuildOutputs(
            lib_path=Path(outputs[OUTPUT_LIB_PATH]),
            version=str(outputs[OUTPUT_LIB_VERSION]),
        )
    except (OSError, ValueError, KeyError, TypeError):
        return None


def read_stamp(stamp_path: Path) -> Optional[BuildOutputs]:
    """Return the outputs stored in ``stamp_path``, or ``None`` if unusable."""

    loaded = _load_stamp(stamp_path)
    return loaded[1] if loaded is not None else None


def is_stale(stamp_path: Path, environ: Mapping[str, str]) -> bool:
    """Return ``True`` when the fetch step must run again."""

    loaded = _load_stamp(stamp_path)
    if loaded is None:
        return True
    fingerprint, outputs = loaded
    if fingerprint != build_fingerprint(environ):
        return True
    try:
        return outputs.lib_path.stat().st_size == 0
    except OSError:
        return True


__all__ = [
    "OUTPUT_LIB_PATH",
    "OUTPUT_LIB_VERSION",
    "RERUN_IF_ENV_CHANGED",
    "BuildOutputs",
    "env_lines",
    "append_env_file",
    "render_constants_module",
    "write_constants_module",
    "build_fingerprint",
    "write_stamp",
    "read_stamp",
    "is_stale",
]
