"""
Version resolver implementation.

The nimbus-fml release matching a project is the application-services release
its rust-components-swift Swift package was built from. That version is not
declared anywhere structured, so it is pattern matched out of the Xcode project.
"""

import logging
import pathlib
import re
from typing import Callable, List, Optional

from fmlgen.artifact_models import VersionSpec
from fmlgen.fmlgen_config import FmlConfig
from fmlgen.fmlgen_exceptions import VersionNotFound
from fmlgen.fmlgen_logger import FmlLogger

# Lines searched after a matching line, like `grep -A 3`.
CONTEXT_LINES = 3

PACKAGE_REFERENCE = 'XCRemoteSwiftPackageReference "rust-components-swift"'
TRIPLE_PATTERN = re.compile(r"\d+\.\d+\.\d+")
LOCAL_REPOSITORY_PATTERN = re.compile(r'repositoryURL = "file://(/\w[^"]+)"')
PACKAGE_SWIFT_VERSION_PATTERN = re.compile(r"\d+\.0\.\d+")


def _with_context(lines: List[str], predicate: Callable[[str], bool]) -> List[str]:
    """Returns every line matching `predicate` followed by up to CONTEXT_LINES lines."""
    selected = []
    for index, line in enumerate(lines):
        if predicate(line):
            selected.extend(lines[index:index + CONTEXT_LINES + 1])
    return selected


class VersionResolver:
    """
    Determines which version of nimbus-fml to fetch.

    Two strategies are tried in order against the project's `project.pbxproj`:
    `from_repo_metadata` reads the version pinned for the remote package, and
    `from_local_override` follows a `file://` package reference to the
    Package.swift of a local checkout.
    """

    def __init__(self, config: FmlConfig, logger: FmlLogger):
        self.config = config
        self.logger = logger

    def resolve(self) -> VersionSpec:
        """
        Returns the version to use.

        Raises:
            VersionNotFound: If no version was given and none could be derived
        """
        if self.config.version:
            self.logger.log(f"Using requested nimbus-fml version {self.config.version}", logging.INFO)
            return VersionSpec.explicit(self.config.version)

        project_file = self.config.project_file
        try:
            project_text = project_file.read_text(errors="replace")
        except OSError as e:
            self.logger.log(f"Cannot read {project_file}: {e}", logging.WARNING)
            project_text = ""

        number_string = self.from_repo_metadata(project_text)
        if number_string is None:
            number_string = self.from_local_override(project_text)

        if number_string is None:
            raise VersionNotFound(
                f"No {self.config.package_url} package was detected in {project_file}. "
                "The package must be added as a project dependency."
            )

        version = VersionSpec.from_derived(number_string)
        self.logger.log(
            f"Derived application-services version {version} from {number_string}",
            logging.INFO,
        )
        return version

    def from_repo_metadata(self, project_text: str) -> Optional[str]:
        """
        Find the version pinned for the rust-components-swift package.

        Args:
            project_text: Contents of project.pbxproj

        Returns:
            The first `MAJOR.MINOR.PATCH` near a mention of the package URL, or None
        """
        lines = project_text.splitlines()
        for line in _with_context(lines, lambda l: self.config.package_url in l):
            match = TRIPLE_PATTERN.search(line)
            if match:
                return match.group(0)
        return None

    def from_local_override(self, project_text: str) -> Optional[str]:
        """
        Find the version of a local rust-components-swift checkout.

        When building against a checkout set up with rust_components_local.sh,
        the package reference points at a `file://` URL; the version is then
        read from that checkout's Package.swift.

        Args:
            project_text: Contents of project.pbxproj

        Returns:
            The `MAJOR.0.PATCH` version declared in Package.swift, or None
        """
        lines = project_text.splitlines()
        local_path = None
        for line in _with_context(lines, lambda l: PACKAGE_REFERENCE in l):
            match = LOCAL_REPOSITORY_PATTERN.search(line)
            if match:
                local_path = match.group(1)
                break
        if local_path is None:
            return None

        package_swift = pathlib.Path(local_path) / "Package.swift"
        self.logger.log(f"Reading local rust-components-swift version from {package_swift}", logging.DEBUG)
        try:
            package_text = package_swift.read_text(errors="replace")
        except OSError as e:
            self.logger.log(f"Cannot read {package_swift}: {e}", logging.WARNING)
            return None

        for line in package_text.splitlines():
            if "let version =" not in line:
                continue
            match = PACKAGE_SWIFT_VERSION_PATTERN.search(line)
            if match:
                return match.group(0)
        return None
