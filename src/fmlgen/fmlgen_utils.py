"""
This file contains various utility functions like I/O operations, handling paths, etc.
"""

import hashlib
import logging
import os
import pathlib
import platform
import re
import stat
import zipfile
import zlib
from typing import List, Optional, Tuple

import requests

from fmlgen.artifact_models import Architecture
from fmlgen.fmlgen_exceptions import ArtifactError, ChecksumMismatch, DownloadFailure
from fmlgen.fmlgen_logger import FmlLogger

CHUNK_SIZE = 64 * 1024
HEX_DIGEST_PATTERN = re.compile(r"[0-9a-fA-F]+")


class FileUtils:
    """
    Utility functions for downloading, verifying and unpacking artifacts
    """

    @staticmethod
    def head_status(session: requests.Session, url: str, timeout: float) -> int:
        """
        Issue a HEAD request, following redirects, and return the final status code.

        Transport errors are reported as status 0 so that callers treat them
        like any other non-OK answer.
        """
        try:
            response = session.head(url, allow_redirects=True, timeout=timeout)
        except requests.RequestException:
            return 0
        return response.status_code

    @staticmethod
    def fetch_bytes(session: requests.Session, url: str, timeout: float) -> bytes:
        """
        GET a small resource and return its body.

        Raises:
            DownloadFailure: On transport errors or a non-2xx response
        """
        try:
            response = session.get(url, allow_redirects=True, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DownloadFailure(f"Failed to fetch {url}: {e}") from e
        return response.content

    @staticmethod
    def download_file(
        logger: FmlLogger,
        session: requests.Session,
        url: str,
        target_path: pathlib.Path,
        timeout: float,
    ) -> None:
        """
        Stream a URL to a file.

        The body is written to `<target>.part` and renamed once complete, so the
        target only ever exists with its full content.

        Raises:
            DownloadFailure: On transport errors or a non-2xx response
        """
        logger.log(f"Downloading {url} to {target_path}", logging.DEBUG)
        partial_path = target_path.with_name(target_path.name + ".part")
        try:
            with session.get(url, stream=True, allow_redirects=True, timeout=timeout) as response:
                response.raise_for_status()
                with open(partial_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except requests.RequestException as e:
            if partial_path.exists():
                partial_path.unlink()
            raise DownloadFailure(f"Failed to download {url}: {e}") from e
        os.replace(partial_path, target_path)

    @staticmethod
    def sha256_of(path: pathlib.Path) -> str:
        digest = hashlib.sha256()
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                digest.update(chunk)
        return digest.hexdigest()

    @staticmethod
    def parse_checksum_file(text: str) -> List[Tuple[str, str]]:
        """
        Parse the `shasum` output format.

        Each line is `<hex digest> <space><space or *><file name>`; blank lines
        and comments are skipped, as are lines whose digest is not hexadecimal.

        Returns:
            List of (digest, file name) pairs, digests lower-cased
        """
        entries = []
        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            parts = line.split(None, 1)
            if len(parts) != 2:
                continue
            digest, name = parts
            if not HEX_DIGEST_PATTERN.fullmatch(digest):
                continue
            entries.append((digest.lower(), name.lstrip("*").strip()))
        return entries

    @staticmethod
    def verify_checksum_file(logger: FmlLogger, checksum_path: pathlib.Path) -> None:
        """
        Check every file listed in a checksum file against its SHA-256 digest,
        resolving file names relative to the checksum file's directory.

        Raises:
            ChecksumMismatch: If an entry does not match, a listed file is
                missing, or the checksum file lists nothing
        """
        directory = checksum_path.parent
        entries = FileUtils.parse_checksum_file(checksum_path.read_text(errors="replace"))
        if not entries:
            raise ChecksumMismatch(f"No checksum entries found in {checksum_path}")

        for expected, name in entries:
            if "/" in name or "\\" in name or name in (".", ".."):
                raise ChecksumMismatch(
                    f"{checksum_path.name} lists {name!r} outside {directory}"
                )
            target = directory / name
            if not target.is_file():
                raise ChecksumMismatch(f"{name} listed in {checksum_path.name} is missing")
            actual = FileUtils.sha256_of(target)
            if actual != expected:
                raise ChecksumMismatch(
                    f"{name}: expected sha256 {expected}, got {actual}"
                )
            logger.log(f"{name}: OK", logging.INFO)

    @staticmethod
    def extract_member(archive_path: pathlib.Path, member: str, target_path: pathlib.Path) -> None:
        """
        Extract a single archive member to `target_path`, dropping the member's
        directory prefix, overwriting any existing file and marking it executable.

        The member is written to `<target>.part` and renamed once complete, so
        `target_path` never holds a truncated executable.

        Raises:
            ArtifactError: If the archive is unreadable, corrupt or lacks the member
        """
        partial_path = target_path.with_name(target_path.name + ".part")
        try:
            with zipfile.ZipFile(archive_path) as archive:
                try:
                    info = archive.getinfo(member)
                except KeyError:
                    raise ArtifactError(f"{member} not found in {archive_path}")
                with archive.open(info) as source, open(partial_path, "wb") as destination:
                    for chunk in iter(lambda: source.read(CHUNK_SIZE), b""):
                        destination.write(chunk)
        except (zipfile.BadZipFile, zlib.error, OSError) as e:
            partial_path.unlink(missing_ok=True)
            raise ArtifactError(f"Failed to extract {member} from {archive_path}: {e}") from e
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise

        mode = os.stat(partial_path).st_mode
        os.chmod(partial_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        os.replace(partial_path, target_path)


class PlatformUtils:
    """
    This class provides utilities for platform detection and identification.
    """

    @staticmethod
    def get_machine() -> str:
        return platform.machine()

    @staticmethod
    def get_architecture(machine: Optional[str] = None) -> Architecture:
        """
        Returns the Architecture of the host, or of `machine` when given.
        """
        return Architecture.from_machine(machine if machine is not None else PlatformUtils.get_machine())
