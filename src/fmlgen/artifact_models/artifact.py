"""
Pydantic data models for the versioned nimbus-fml artifact.

A release of application-services publishes a zip archive holding one
nimbus-fml executable per target triple, alongside a sha256 checksum file.
These models capture the version being fetched, the pair of URLs it was
resolved to and the per-version cache directory it is unpacked into.
"""

import pathlib
import re
import shutil
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fmlgen.fmlgen_exceptions import ConfigurationError

# Tags of rust-components-swift carry a `.0.` middle segment so that they
# line up with SwiftPM versioning; the application-services release does not.
MIDDLE_ZERO_SEGMENT = ".0."
DERIVED_VERSION_PATTERN = re.compile(r"^\d+(\.\d+){1,2}$")


class VersionSpec(BaseModel):
    """
    The version of application-services whose nimbus-fml should be used.

    Either supplied explicitly (any non-empty reference, used verbatim) or
    derived from the project, in which case it has been normalized.
    """

    model_config = ConfigDict(frozen=True)

    value: str = Field(..., description="Version or reference of nimbus-fml")
    derived: bool = Field(False, description="Whether the version was sniffed from the project")

    @field_validator("value")
    @classmethod
    def _usable_as_directory_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("version must not be empty")
        # The version names its cache directory under the cache root.
        if "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError(f"version must not be a path: {value!r}")
        return value

    @staticmethod
    def normalize(raw: str) -> str:
        """
        Collapse every literal `.0.` segment to `.`.

        Args:
            raw: A version as found in the project, e.g. "120.0.1"

        Returns:
            The release version, e.g. "120.1"
        """
        return raw.replace(MIDDLE_ZERO_SEGMENT, ".")

    @classmethod
    def from_derived(cls, raw: str) -> "VersionSpec":
        """
        Build a VersionSpec from a version sniffed out of project metadata.

        Raises:
            ValueError: If the raw value is not a numeric dotted version
        """
        raw = raw.strip()
        if not DERIVED_VERSION_PATTERN.match(raw):
            raise ValueError(f"Not a numeric dotted version: {raw!r}")
        return cls(value=cls.normalize(raw), derived=True)

    @classmethod
    def explicit(cls, reference: str) -> "VersionSpec":
        """
        Build a VersionSpec from a user supplied version or reference.

        Raises:
            ConfigurationError: If the reference is empty or looks like a path
        """
        try:
            return cls(value=reference, derived=False)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid nimbus-fml version {reference!r}: {e}") from e

    def __str__(self) -> str:
        return self.value


class Endpoint(str, Enum):
    """Distribution endpoints an artifact can be fetched from."""

    RELEASE = "release"
    CI = "ci"


class ArtifactLocation(BaseModel):
    """The checksum and archive URLs of a version on one endpoint."""

    model_config = ConfigDict(frozen=True)

    version: VersionSpec
    endpoint: Endpoint
    checksum_url: str
    archive_url: str

    @classmethod
    def from_template(
        cls,
        version: VersionSpec,
        endpoint: Endpoint,
        url_template: str,
        artifact_name: str,
    ) -> "ArtifactLocation":
        """
        Expand an endpoint URL template for the given version.

        Args:
            version: The version being fetched
            endpoint: Which endpoint the template belongs to
            url_template: Base URL containing a `{version}` placeholder
            artifact_name: Name of the artifact, e.g. "nimbus-fml"

        Returns:
            ArtifactLocation pointing at `<base><name>.sha256` and `<base><name>.zip`
        """
        base = url_template.format(version=version.value)
        return cls(
            version=version,
            endpoint=endpoint,
            checksum_url=f"{base}{artifact_name}.sha256",
            archive_url=f"{base}{artifact_name}.zip",
        )


class CacheEntry(BaseModel):
    """
    On-disk cache of one version: `<cache_root>/<version>/bin/`.

    The archive, its checksum file and the extracted executable are kept side
    by side. Invalidation removes the whole directory.
    """

    cache_root: pathlib.Path
    version: VersionSpec
    artifact_name: str = "nimbus-fml"

    @property
    def directory(self) -> pathlib.Path:
        return self.cache_root / self.version.value / "bin"

    @property
    def archive_path(self) -> pathlib.Path:
        return self.directory / f"{self.artifact_name}.zip"

    @property
    def checksum_path(self) -> pathlib.Path:
        return self.directory / f"{self.artifact_name}.sha256"

    @property
    def binary_path(self) -> pathlib.Path:
        return self.directory / self.artifact_name

    def has_checksum(self) -> bool:
        return self.checksum_path.is_file()

    def has_archive(self) -> bool:
        return self.archive_path.is_file()

    def has_binary(self) -> bool:
        return self.binary_path.is_file()

    def stored_checksum(self) -> Optional[bytes]:
        """Return the raw bytes of the cached checksum file, if any."""
        if not self.has_checksum():
            return None
        return self.checksum_path.read_bytes()

    def remove(self) -> None:
        """Delete the cache directory of this version, all or nothing."""
        shutil.rmtree(self.directory, ignore_errors=True)

    def ensure(self) -> pathlib.Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory


class Architecture(str, Enum):
    """Host CPU architectures nimbus-fml is published for."""

    X86_64 = "x86_64"
    ARM64 = "arm64"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_machine(cls, machine: str) -> "Architecture":
        """
        Map the value of `platform.machine()` to an Architecture.

        Anything other than "x86_64" or "arm64" is UNSUPPORTED.
        """
        try:
            architecture = cls(machine)
        except ValueError:
            return cls.UNSUPPORTED
        return architecture

    def target_triple(self) -> Optional[str]:
        return _TARGET_TRIPLES.get(self)

    def archive_member(self, artifact_name: str) -> Optional[str]:
        """
        Path of this architecture's executable inside the release archive.

        Returns:
            e.g. "aarch64-apple-darwin/release/nimbus-fml", or None if unsupported
        """
        triple = self.target_triple()
        if triple is None:
            return None
        return f"{triple}/release/{artifact_name}"


_TARGET_TRIPLES: Dict[Architecture, str] = {
    Architecture.X86_64: "x86_64-apple-darwin",
    Architecture.ARM64: "aarch64-apple-darwin",
}
