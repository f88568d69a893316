"""Placement of the extracted driver library at its final path."""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import stat
import uuid
from pathlib import Path
from typing import Optional, Union

from .errors import InstallError

LOGGER = logging.getLogger("AdbcFlightSQL.DriverFetch")

LIBRARY_MODE = (
    stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH
)  # 0o755


def check_existing(path: Path, *, logger: Optional[logging.Logger] = None) -> bool:
    """Return ``True`` when ``path`` already holds a usable library.

    A non-empty file is trusted as-is; its checksum is not re-verified. A
    zero-byte file is left over from an interrupted run and is removed so the
    caller fetches again.
    """

    log = logger or LOGGER
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise InstallError(f"Cannot inspect existing library {path}: {exc}") from exc

    if size > 0:
        log.info(
            "using cached driver library",
            extra={"stage": "install", "path": str(path), "bytes": size},
        )
        return True

    log.warning(
        "removing empty driver library left by an earlier run",
        extra={"stage": "install", "path": str(path)},
    )
    try:
        path.unlink()
    except OSError as exc:
        raise InstallError(f"Cannot remove empty library {path}: {exc}") from exc
    return False


def _apply_permissions(destination: Path, source: Optional[Path]) -> None:
    if os.name == "posix":
        os.chmod(destination, LIBRARY_MODE)
    elif source is not None:
        shutil.copymode(source, destination)


def install_library(
    source: Union[bytes, Path],
    destination: Path,
    *,
    logger: Optional[logging.Logger] = None,
) -> Path:
    """Write ``source`` to ``destination`` and mark it executable.

    The content goes to a sibling temporary file first and is renamed over the
    destination, so a reader never observes a half-written library and an
    existing file is replaced in one step.

    Args:
        source: Library bytes, or a path whose content is copied.
        destination: Final library path; parent directories are created.

    Returns:
        The destination path.

    Raises:
        InstallError: If any filesystem operation fails.
    """

    log = logger or LOGGER
    temp_path = destination.with_name(f".{destination.name}.tmp-{os.getpid()}-{uuid.uuid4().hex[:8]}")
    source_path = source if isinstance(source, Path) else None
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if source_path is not None:
            shutil.copyfile(source_path, temp_path)
        else:
            temp_path.write_bytes(source)
        _apply_permissions(temp_path, source_path)
        os.replace(temp_path, destination)
    except OSError as exc:
        # The temp file may not exist, or its parent may not be a directory.
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise InstallError(f"Failed to install driver library at {destination}: {exc}") from exc

    log.info(
        "installed driver library",
        extra={
            "stage": "install",
            "path": str(destination),
            "bytes": destination.stat().st_size,
        },
    )
    return destination


__all__ = ["LIBRARY_MODE", "check_existing", "install_library"]
