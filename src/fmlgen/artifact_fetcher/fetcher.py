"""
Artifact fetcher implementation.

Handles downloading, caching and unpacking prebuilt nimbus-fml binaries.
"""

import logging
from typing import Optional

import requests

from fmlgen.artifact_models import (
    ArtifactLocation,
    CacheEntry,
    Endpoint,
    VersionSpec,
)
from fmlgen.fmlgen_config import FmlConfig
from fmlgen.fmlgen_exceptions import ChecksumMismatch, UnsupportedArchitecture
from fmlgen.fmlgen_logger import FmlLogger
from fmlgen.fmlgen_utils import FileUtils, PlatformUtils

HTTP_OK = 200


class ArtifactFetcher:
    """
    Produces a verified, cached nimbus-fml executable for a version.

    A cached version directory is reused as long as its checksum file matches
    the one currently published. Otherwise, or when a fresh copy is requested,
    the directory is deleted and rebuilt from scratch.
    """

    def __init__(
        self,
        config: FmlConfig,
        logger: FmlLogger,
        session: Optional[requests.Session] = None,
        machine: Optional[str] = None,
    ):
        """
        Initialize the artifact fetcher.

        Args:
            config: Configuration holding the cache root, URL templates and refresh flag
            logger: Logger for progress and error messages
            session: HTTP session to use, a new requests.Session by default
            machine: Host machine name overriding `platform.machine()`
        """
        self.config = config
        self.logger = logger
        self.session = session or requests.Session()
        self.machine = machine

    def locate(self, version: VersionSpec) -> ArtifactLocation:
        """
        Resolve the version to the endpoint that publishes it.

        The release archive is preferred. If its checksum file does not answer
        200 OK, both URLs switch to the CI artifact index.
        """
        location = ArtifactLocation.from_template(
            version, Endpoint.RELEASE, self.config.release_url_template, self.config.artifact_name
        )
        status = FileUtils.head_status(self.session, location.checksum_url, self.config.timeout)
        if status == HTTP_OK:
            return location

        self.logger.log(
            f"{location.checksum_url} answered {status or 'nothing'}, using the CI artifact index",
            logging.INFO,
        )
        return ArtifactLocation.from_template(
            version, Endpoint.CI, self.config.ci_url_template, self.config.artifact_name
        )

    def is_stale(self, entry: CacheEntry, location: ArtifactLocation) -> bool:
        """
        Freshness check of a cache entry against the published checksum.

        An entry that has an archive or executable but no checksum file cannot
        be checked and is considered stale as well.

        Returns:
            True if the entry must be discarded
        """
        stored = entry.stored_checksum()
        if stored is None:
            if entry.has_archive() or entry.has_binary():
                self.logger.log(f"{entry.directory} has no checksum file, redownloading", logging.INFO)
                return True
            return False

        self.logger.log("Checking if we need to redownload the FML", logging.INFO)
        remote = FileUtils.fetch_bytes(self.session, location.checksum_url, self.config.timeout)
        if remote != stored:
            self.logger.log("The checksums don't match, redownloading the new FML", logging.INFO)
            return True
        return False

    def fetch(self, version: VersionSpec) -> str:
        """
        Returns the absolute path to a verified executable for the version.

        Raises:
            DownloadFailure: If the archive or its checksum cannot be fetched
            ChecksumMismatch: If the archive does not match its checksum file
            UnsupportedArchitecture: If the host has no matching binary
            ArtifactError: If the archive lacks the expected binary
        """
        location = self.locate(version)
        entry = CacheEntry(
            cache_root=self.config.nimbus_dir,
            version=version,
            artifact_name=self.config.artifact_name,
        )

        stale = self.is_stale(entry, location)
        if self.config.fresh or stale:
            entry.remove()
        entry.ensure()

        if not entry.has_archive():
            self.download(entry, location)

        if not entry.has_binary():
            self.extract(entry)

        return str(entry.binary_path.absolute())

    def download(self, entry: CacheEntry, location: ArtifactLocation) -> None:
        """
        Download the archive and its checksum file into the entry, then verify them.

        A failed verification removes the entry, so the next run starts over.
        """
        self.logger.log(f"Downloading to {entry.directory}", logging.INFO)
        FileUtils.download_file(
            self.logger, self.session, location.archive_url, entry.archive_path, self.config.timeout
        )
        FileUtils.download_file(
            self.logger, self.session, location.checksum_url, entry.checksum_path, self.config.timeout
        )
        try:
            FileUtils.verify_checksum_file(self.logger, entry.checksum_path)
        except ChecksumMismatch:
            entry.remove()
            raise

    def extract(self, entry: CacheEntry) -> None:
        """
        Unpack the executable matching the host architecture from the entry's archive.
        """
        machine = self.machine if self.machine is not None else PlatformUtils.get_machine()
        architecture = PlatformUtils.get_architecture(machine)
        member = architecture.archive_member(self.config.artifact_name)
        if member is None:
            raise UnsupportedArchitecture(
                f"Unsupported architecture {machine!r}. nimbus-fml can only run on Mac devices running x86_64 or arm64"
            )
        self.logger.log(f"Extracting {member} to {entry.binary_path}", logging.INFO)
        FileUtils.extract_member(entry.archive_path, member, entry.binary_path)
