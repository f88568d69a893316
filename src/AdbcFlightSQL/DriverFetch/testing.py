"""Testing utilities for exercising the driver fetcher without a network.

Provides a registry stub that serves canned responses through an
:class:`httpx.MockTransport`, a context manager installing it as the shared
client, and builders producing wheels and ``.conda`` packages in memory with
the layouts the real registries publish.
"""

from __future__ import annotations

import contextlib
import hashlib
import io
import json
import stat
import tarfile
import zipfile
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

import httpx
import libarchive

from .net import configure_http_client, reset_http_client

__all__ = [
    "StubResponse",
    "RegistryStub",
    "TarMember",
    "use_mock_http_client",
    "pypi_release_payload",
    "build_wheel",
    "build_tar_bz2",
    "build_tar_zst",
    "build_conda",
]

_PACKAGE_STEM = "libadbc-driver-flightsql-1.9.0-h5888daf_0"
_TAR_SUFFIXES = {"bzip2": ".tar.bz2", "zstd": ".tar.zst"}
DEFAULT_INNER_NAME = f"pkg-{_PACKAGE_STEM}.tar.bz2"


@contextlib.contextmanager
def use_mock_http_client(transport: httpx.BaseTransport, **client_kwargs) -> Iterator[httpx.Client]:
    """Temporarily install an HTTPX client backed by ``transport``."""

    default_http = client_kwargs.pop("default_http", None)
    client = httpx.Client(transport=transport, **client_kwargs)
    configure_http_client(client=client, default_http=default_http)
    try:
        yield client
    finally:
        reset_http_client()
        client.close()


@dataclass
class StubResponse:
    """HTTP response definition served by :class:`RegistryStub`."""

    status: int = 200
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)


class RegistryStub:
    """Serve canned responses per URL and record every request.

    Responses queued for one URL are served in order; the last one repeats.
    Unknown URLs receive a 404.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, List[StubResponse]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        url: str,
        body: bytes = b"",
        *,
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.routes.setdefault(url, []).append(
            StubResponse(status=status, body=body, headers=dict(headers or {}))
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get(str(request.url))
        if not queue:
            return httpx.Response(404, content=b"not found")
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(reply.status, content=reply.body, headers=reply.headers)

    def urls(self) -> List[str]:
        return [str(request.url) for request in self.requests]


def pypi_release_payload(
    files: Mapping[str, bytes],
    *,
    base_url: str = "https://files.example.invalid/packages",
    digests: Optional[Mapping[str, str]] = None,
) -> bytes:
    """Return a JSON API body listing ``files`` with their SHA-256 digests.

    ``digests`` overrides the computed digest per filename, which lets tests
    advertise a wrong checksum.
    """

    overrides = dict(digests or {})
    urls: List[Dict[str, object]] = []
    for filename, data in files.items():
        urls.append(
            {
                "filename": filename,
                "url": f"{base_url.rstrip('/')}/{filename}",
                "packagetype": "bdist_wheel",
                "digests": {"sha256": overrides.get(filename, hashlib.sha256(data).hexdigest())},
            }
        )
    return json.dumps({"info": {"name": "adbc-driver-flightsql"}, "urls": urls}).encode("utf-8")


def build_wheel(members: Mapping[str, bytes]) -> bytes:
    """Return a zip archive holding ``members``."""

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, data in members.items():
            archive.writestr(name, data)
    return buffer.getvalue()


@dataclass
class TarMember:
    """One entry of a synthetic conda payload."""

    name: str
    data: bytes = b""
    symlink_to: Optional[str] = None
    directory: bool = False
    mode: int = 0o644


def build_tar_bz2(members: Iterable[TarMember]) -> bytes:
    """Return a bzip2-compressed tar holding ``members`` in order."""

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:bz2") as archive:
        for member in members:
            info = tarfile.TarInfo(member.name)
            if member.directory:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                archive.addfile(info)
            elif member.symlink_to is not None:
                info.type = tarfile.SYMTYPE
                info.linkname = member.symlink_to
                archive.addfile(info)
            else:
                info.size = len(member.data)
                info.mode = member.mode
                archive.addfile(info, io.BytesIO(member.data))
    return buffer.getvalue()


def build_tar_zst(members: Iterable[TarMember]) -> bytes:
    """Return a zstd-compressed GNU tar holding ``members`` in order."""

    chunks: List[bytes] = []

    def collect(data) -> int:
        chunks.append(bytes(data))
        return len(data)

    with libarchive.custom_writer(collect, "gnutar", filter_name="zstd") as archive:
        for member in members:
            if member.directory:
                archive.add_file_from_memory(member.name, 0, b"", filetype=stat.S_IFDIR, permission=0o755)
            elif member.symlink_to is not None:
                archive.add_file_from_memory(
                    member.name,
                    0,
                    b"",
                    filetype=stat.S_IFLNK,
                    permission=0o777,
                    linkpath=member.symlink_to,
                )
            else:
                archive.add_file_from_memory(
                    member.name, len(member.data), member.data, permission=member.mode
                )
    return b"".join(chunks)


def build_conda(
    members: Sequence[TarMember],
    *,
    compression: str = "bzip2",
    inner_names: Optional[Sequence[str]] = None,
) -> bytes:
    """Return a ``.conda`` package whose ``pkg-`` payload holds ``members``.

    ``compression`` is ``bzip2`` or ``zstd`` (the format conda-build emits).
    Every name in ``inner_names`` receives the same payload, so passing two
    names produces an ambiguous package and passing none produces one without
    a payload.
    """

    if inner_names is None:
        inner_names = (f"pkg-{_PACKAGE_STEM}{_TAR_SUFFIXES[compression]}",)
    payload = build_tar_zst(members) if compression == "zstd" else build_tar_bz2(members)
    info_payload = build_tar_bz2([TarMember("info/index.json", b"{}")])
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
        archive.writestr("metadata.json", b'{"conda_pkg_format_version": 2}')
        for inner_name in inner_names:
            archive.writestr(inner_name, payload)
        archive.writestr(f"info-{_PACKAGE_STEM}.tar.bz2", info_payload)
    return buffer.getvalue()
