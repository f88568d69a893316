# === NAVMAP v1 ===
# {
#   "module": "AdbcFlightSQL.DriverFetch.extraction",
#   "purpose": "Locate and unpack the driver library from wheel and conda archives",
#   "sections": [
#     {"id": "wheel", "name": "Flat Zip (Wheel) Extraction", "anchor": "WHL", "kind": "api"},
#     {"id": "paths", "name": "Member Path Validation", "anchor": "PTH", "kind": "helpers"},
#     {"id": "tar", "name": "Compressed Tar Unpacking", "anchor": "TAR", "kind": "helpers"},
#     {"id": "conda", "name": "Nested Archive (Conda) Extraction", "anchor": "CND", "kind": "api"},
#     {"id": "select", "name": "Library Selection", "anchor": "SEL", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Archive extraction for driver artifacts.

Two archive shapes reach this module:

* PyPI wheels are plain zip files. The library is read straight out of the
  first member whose name ends with the expected filename.
* Conda ``.conda`` packages are zip containers holding a ``pkg-*.tar.zst`` (or
  the older ``.tar.bz2``) payload. The payload is decompressed and unpacked
  with libarchive into a scratch directory, and the library is then picked
  out of the package's library directory. Versioned sonames mean the plain
  ``libfoo.so`` entry is often a symlink, so selection falls back to a prefix
  scan that prefers real files over links.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import List, Optional, Tuple

import libarchive

from .errors import ArchiveStructureError

LOGGER = logging.getLogger("AdbcFlightSQL.DriverFetch")

INNER_PREFIX = "pkg-"
_INNER_FILTERS = {".tar.zst": "zstd", ".tar.bz2": "bzip2"}


# --- Flat zip (wheel) extraction ----------------------------------------------


def extract_from_wheel(data: bytes, lib_filename: str) -> Tuple[str, bytes]:
    """Return ``(member_name, payload)`` for the library inside a wheel.

    Raises:
        ArchiveStructureError: If the archive is not a zip or lacks the library.
    """

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            members = archive.infolist()
            for info in members:
                if info.is_dir():
                    continue
                if info.filename.endswith(lib_filename):
                    return info.filename, archive.read(info)
    except zipfile.BadZipFile as exc:
        raise ArchiveStructureError(f"Wheel is not a valid zip archive: {exc}") from exc

    raise ArchiveStructureError(
        f"Wheel did not contain {lib_filename}; searched {len(members)} entries"
    )


# --- Member path validation ---------------------------------------------------


def _validate_member_path(member_name: str) -> Path:
    """Validate archive member paths to prevent traversal attacks."""

    normalized = member_name.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    relative = PurePosixPath(normalized)
    if relative.is_absolute():
        raise ArchiveStructureError(f"Unsafe absolute path detected in archive: {member_name}")
    if not relative.parts:
        raise ArchiveStructureError(f"Empty path detected in archive: {member_name}")
    if any(part in {"", ".", ".."} for part in relative.parts):
        raise ArchiveStructureError(f"Unsafe path detected in archive: {member_name}")
    return Path(*relative.parts)


def _validate_link_target(root: Path, link_path: Path, link_target: str) -> None:
    """Ensure a symlink placed at ``link_path`` resolves inside ``root``."""

    if not link_target or os.path.isabs(link_target):
        raise ArchiveStructureError(f"Unsafe link target in archive: {link_target!r}")
    resolved = os.path.normpath(os.path.join(link_path.parent, link_target))
    root_str = os.path.normpath(str(root))
    if os.path.commonpath([root_str, resolved]) != root_str:
        raise ArchiveStructureError(f"Link escapes extraction root: {link_target!r}")


# --- Compressed tar unpacking -------------------------------------------------


def unpack_tar(data: bytes, destination: Path, *, compression: str) -> List[Path]:
    """Unpack a compressed tar held in memory into ``destination``.

    Args:
        data: Compressed tar bytes.
        destination: Directory receiving the tree; created if missing.
        compression: libarchive filter name (``zstd`` or ``bzip2``).

    Returns:
        Paths of regular files and symlinks written, in header order.
    """

    destination.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    try:
        with libarchive.memory_reader(data, format_name="tar", filter_name=compression) as archive:
            for entry in archive:
                relative = _validate_member_path(entry.pathname)
                target = destination / relative
                if entry.isdir:
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                if entry.issym:
                    _validate_link_target(destination, target, entry.linkpath)
                    try:
                        os.symlink(entry.linkpath, target)
                    except OSError as exc:
                        LOGGER.debug(
                            "symlink not created",
                            extra={"stage": "extract", "member": entry.pathname, "error": str(exc)},
                        )
                        continue
                    written.append(target)
                elif entry.islnk:
                    source = destination / _validate_member_path(entry.linkpath)
                    shutil.copyfile(source, target)
                    written.append(target)
                elif entry.isfifo or entry.isblk or entry.ischr or entry.issock:
                    LOGGER.debug(
                        "skipping special archive entry",
                        extra={"stage": "extract", "member": entry.pathname},
                    )
                else:
                    with target.open("wb") as stream:
                        for block in entry.get_blocks():
                            stream.write(block)
                    written.append(target)
    except libarchive.ArchiveError as exc:
        raise ArchiveStructureError(f"Failed to unpack {compression} tar payload: {exc}") from exc
    return written


# --- Nested archive (conda) extraction ----------------------------------------


def _inner_compression(name: str) -> Optional[str]:
    base = PurePosixPath(name).name
    if not base.startswith(INNER_PREFIX):
        return None
    for suffix, compression in _INNER_FILTERS.items():
        if base.endswith(suffix):
            return compression
    return None


def read_inner_package(data: bytes) -> Tuple[str, bytes, str]:
    """Return ``(member_name, payload, compression)`` of the ``pkg-`` entry.

    Raises:
        ArchiveStructureError: Unless exactly one ``pkg-*.tar.zst``/``.tar.bz2``
            member is present.
    """

    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            candidates = [
                (info, _inner_compression(info.filename))
                for info in archive.infolist()
                if _inner_compression(info.filename) is not None
            ]
            if len(candidates) != 1:
                raise ArchiveStructureError(
                    f"Expected exactly one {INNER_PREFIX}*.tar.zst or .tar.bz2 entry in "
                    f"conda package, found {len(candidates)}"
                )
            info, compression = candidates[0]
            return info.filename, archive.read(info), compression
    except zipfile.BadZipFile as exc:
        raise ArchiveStructureError(f"Conda package is not a valid zip archive: {exc}") from exc


def extract_from_conda(
    data: bytes,
    lib_filename: str,
    scratch_dir: Path,
    *,
    lib_dir: str = "lib",
) -> Path:
    """Unpack a ``.conda`` package into ``scratch_dir`` and locate the library.

    The returned path lives inside ``scratch_dir``; callers own the scratch
    directory's lifetime and must copy the file out before discarding it.
    """

    member, payload, compression = read_inner_package(data)
    unpack_root = scratch_dir / "pkg"
    files = unpack_tar(payload, unpack_root, compression=compression)
    LOGGER.debug(
        "unpacked conda payload",
        extra={"stage": "extract", "member": member, "files": len(files)},
    )
    return select_library(unpack_root / lib_dir, lib_filename)


# --- Library selection --------------------------------------------------------


def _split_library_name(lib_filename: str) -> Tuple[str, str]:
    stem, _, rest = lib_filename.partition(".")
    return stem, f".{rest}" if rest else ""


def _same_suffix_family(name: str, stem: str, suffix: str) -> bool:
    """Return ``True`` for ``libfoo.so.1``/``libfoo.1.dylib`` style variants."""

    if not name.startswith(stem):
        return False
    rest = name[len(stem):]
    if not rest.startswith(".") or not suffix:
        return False
    return rest == suffix or rest.startswith(suffix + ".") or rest.endswith(suffix)


def select_library(directory: Path, lib_filename: str) -> Path:
    """Pick the library file for ``lib_filename`` from ``directory``.

    An exact name that resolves to a file wins. Otherwise the sorted listing is
    scanned for names sharing the base name and suffix family; the first
    regular file wins, and a symlink is only kept if no regular file follows.

    Raises:
        ArchiveStructureError: If nothing usable matches.
    """

    if not directory.is_dir():
        raise ArchiveStructureError(f"Library directory missing from package: {directory.name}")

    exact = directory / lib_filename
    if exact.is_file():
        return exact

    stem, suffix = _split_library_name(lib_filename)
    chosen: Optional[Path] = None
    for candidate in sorted(directory.iterdir(), key=lambda path: path.name):
        if not _same_suffix_family(candidate.name, stem, suffix):
            continue
        if candidate.is_symlink():
            if chosen is None:
                chosen = candidate
            continue
        if candidate.is_file():
            chosen = candidate
            break

    if chosen is None or not chosen.is_file():
        raise ArchiveStructureError(
            f"Package did not contain {lib_filename} or a compatible variant in {directory.name}/"
        )
    LOGGER.info(
        "selected library variant",
        extra={"stage": "extract", "requested": lib_filename, "selected": chosen.name},
    )
    return chosen


__all__ = [
    "extract_from_wheel",
    "extract_from_conda",
    "read_inner_package",
    "unpack_tar",
    "select_library",
]
