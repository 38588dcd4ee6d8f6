"""
Helpers shared by the fmlgen tests: an in-memory HTTP session and release archives.
"""

import hashlib
import io
import zipfile
from typing import Dict, Iterator, List, Optional, Set, Tuple

import requests

ARCHIVE_MEMBERS = {
    "x86_64": "x86_64-apple-darwin/release/nimbus-fml",
    "arm64": "aarch64-apple-darwin/release/nimbus-fml",
}


class FakeResponse:
    """Enough of requests.Response for the fetcher."""

    def __init__(self, url: str, status_code: int, content: bytes = b"", interrupted: bool = False):
        self.url = url
        self.status_code = status_code
        self.content = content
        self.interrupted = interrupted

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} for url: {self.url}", response=self)

    def iter_content(self, chunk_size: int = 1) -> Iterator[bytes]:
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]
            if self.interrupted:
                raise requests.ConnectionError(f"connection reset while reading {self.url}")

    def close(self) -> None:
        pass

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class FakeSession:
    """
    Serves registered URLs from memory and records every request.

    Unregistered URLs answer 404.
    """

    def __init__(self, routes: Optional[Dict[str, Tuple[int, bytes]]] = None):
        self.routes: Dict[str, Tuple[int, bytes]] = dict(routes or {})
        self.requests: List[Tuple[str, str]] = []
        self.interrupted: Set[str] = set()
        self.unreachable: Set[str] = set()

    def serve(self, url: str, content: bytes, status_code: int = 200) -> None:
        self.routes[url] = (status_code, content)

    def _respond(self, method: str, url: str) -> FakeResponse:
        self.requests.append((method, url))
        if url in self.unreachable:
            raise requests.ConnectionError(f"cannot connect to {url}")
        status_code, content = self.routes.get(url, (404, b"not found"))
        if method != "GET":
            return FakeResponse(url, status_code)
        return FakeResponse(url, status_code, content, interrupted=url in self.interrupted)

    def serve_interrupted(self, url: str, content: bytes) -> None:
        """Serve the first chunk of `content`, then drop the connection."""
        self.serve(url, content)
        self.interrupted.add(url)

    def head(self, url: str, **kwargs) -> FakeResponse:
        return self._respond("HEAD", url)

    def get(self, url: str, **kwargs) -> FakeResponse:
        return self._respond("GET", url)

    def count(self, method: str, url: str) -> int:
        return self.requests.count((method, url))

    def fetched(self, url: str) -> bool:
        return any(u == url for _, u in self.requests)


def make_archive(x86_64_content: bytes = b"x86_64 fml", arm64_content: bytes = b"arm64 fml") -> bytes:
    """Build a nimbus-fml.zip holding one binary per architecture."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(ARCHIVE_MEMBERS["x86_64"], x86_64_content)
        archive.writestr(ARCHIVE_MEMBERS["arm64"], arm64_content)
    return buffer.getvalue()


def checksum_for(archive: bytes, name: str = "nimbus-fml.zip") -> bytes:
    """A checksum file in `shasum` format for the archive."""
    return f"{hashlib.sha256(archive).hexdigest()}  {name}\n".encode()


def make_corrupt_archive(member: str, size: int = 100000) -> bytes:
    """
    A stored (uncompressed) archive whose member payload no longer matches
    its CRC-32, so reading the member fails partway through.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED) as archive:
        archive.writestr(member, b"A" * size)
    data = bytearray(buffer.getvalue())
    offset = data.index(b"A" * 100) + size // 2
    data[offset] = ord("B")
    return bytes(data)
