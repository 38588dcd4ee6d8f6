"""
Configuration parameters for fmlgen.

Settings are layered, lowest precedence first: built-in defaults, the Xcode
build environment, `fml.toml`, `fml.local.toml` and finally command-line flags.
"""

import logging
import pathlib
from typing import Any, Dict, List, Mapping, Optional

try:
    import tomllib
except ModuleNotFoundError:
    # Python < 3.11
    import tomli as tomllib

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fmlgen.fmlgen_exceptions import ConfigurationError
from fmlgen.fmlgen_logger import FmlLogger

CONFIG_FILE_NAME = "fml.toml"
LOCAL_CONFIG_FILE_NAME = "fml.local.toml"
CONFIG_SECTION = "fml"

DEFAULT_PACKAGE_URL = "https://github.com/mozilla/rust-components-swift"
DEFAULT_RELEASE_URL_TEMPLATE = "https://archive.mozilla.org/pub/app-services/releases/{version}/"
DEFAULT_CI_URL_TEMPLATE = (
    "https://firefox-ci-tc.services.mozilla.com/api/index/v1/task/"
    "project.application-services.v2.nimbus-fml.{version}/artifacts/public%2Fbuild%2F"
)

FML_TOML_SCHEMA = """
# fmlgen configuration, checked in alongside the project.
# Developer specific overrides go in fml.local.toml, which should not be committed.

[fml]
# Channel passed to `nimbus-fml generate`
channel = "developer"

# Optional per build configuration channels; take precedence over `channel`
# [fml.channels]
# Debug = "developer"
# Release = "release"

# Feature manifest to validate, relative to the source root
# fml_file = "MyApp/nimbus.fml.yaml"

# Inputs passed to `nimbus-fml generate`, defaults to the project name
# modules = ["MyApp"]

# Additional repo files for imported manifests
# repo_files = ["repos.versions.json"]

# Run nimbus-fml from a local application-services checkout
# local_source = "/path/to/application-services"
"""


class FmlConfig(BaseModel):
    """
    Configuration parameters
    """

    model_config = ConfigDict(extra="forbid")

    source_root: pathlib.Path = Field(..., description="Root of the Xcode project")
    project: str = Field(..., description="Name of the Xcode project, without .xcodeproj")
    build_configuration: str = Field("Debug", description="Xcode build configuration")

    fml_file: Optional[str] = Field(None, description="Feature manifest to validate")
    modules: List[str] = Field(default_factory=list, description="Inputs to generate code for")
    repo_files: List[str] = Field(default_factory=list)
    channel: Optional[str] = None
    channels: Dict[str, str] = Field(default_factory=dict)
    language: str = "swift"
    output_dir: Optional[str] = Field(None, description="Overrides `<module>/Generated`")

    nimbus_dir: Optional[pathlib.Path] = Field(None, description="Root of the per-version artifact cache")
    cache_dir: Optional[pathlib.Path] = Field(None, description="Cache directory handed to nimbus-fml")

    version: Optional[str] = Field(None, description="Explicit nimbus-fml version or reference")
    fresh: bool = Field(False, description="Re-download nimbus-fml even if cached")
    local_source: Optional[pathlib.Path] = Field(None, description="Local application-services checkout")

    package_url: str = DEFAULT_PACKAGE_URL
    release_url_template: str = DEFAULT_RELEASE_URL_TEMPLATE
    ci_url_template: str = DEFAULT_CI_URL_TEMPLATE
    artifact_name: str = "nimbus-fml"
    timeout: float = 60.0
    verbose: bool = False

    def model_post_init(self, __context: Any) -> None:
        self.source_root = self.source_root.absolute()
        for name in ("nimbus_dir", "cache_dir", "local_source"):
            path = getattr(self, name)
            if path is not None and not path.is_absolute():
                setattr(self, name, self.source_root / path)
        if self.nimbus_dir is None:
            self.nimbus_dir = self.source_root / "build" / "nimbus"
        if self.cache_dir is None:
            self.cache_dir = self.nimbus_dir / "fml-cache"
        if not self.modules:
            self.modules = [self.project]
        if self.fml_file is None:
            self.fml_file = f"{self.project}/nimbus.fml.yaml"

    @property
    def project_file(self) -> pathlib.Path:
        """The `project.pbxproj` of the Xcode project."""
        return self.source_root / f"{self.project}.xcodeproj" / "project.pbxproj"

    def channel_for_build(self) -> str:
        """
        Returns the channel for the current build configuration.

        Raises:
            ConfigurationError: If neither a per-configuration nor a default channel is set
        """
        channel = self.channels.get(self.build_configuration, self.channel)
        if not channel:
            raise ConfigurationError(
                f"No channel configured for build configuration {self.build_configuration!r}; "
                f"set `channel` in {CONFIG_FILE_NAME}"
            )
        return channel

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FmlConfig":
        """
        Create an FmlConfig, reporting invalid settings as ConfigurationError.
        """
        try:
            return cls(**d)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid fmlgen configuration: {e}") from e


def load_config_files(config_dir: pathlib.Path, logger: FmlLogger) -> Dict[str, Any]:
    """
    Load `fml.toml` and then `fml.local.toml` from a directory.

    Both files are optional. Keys of the `[fml]` table in the local file
    override those of the shared one.

    Returns:
        The merged `[fml]` settings

    Raises:
        ConfigurationError: If a file is not valid TOML
    """
    merged: Dict[str, Any] = {}
    for name in (CONFIG_FILE_NAME, LOCAL_CONFIG_FILE_NAME):
        path = config_dir / name
        if not path.is_file():
            continue
        logger.log(f"Using {path} as config", logging.INFO)
        try:
            with open(path, "rb") as f:
                toml_dict = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Failed to parse {path}: {e}") from e
        section = toml_dict.get(CONFIG_SECTION, {})
        if not isinstance(section, dict):
            raise ConfigurationError(f"[{CONFIG_SECTION}] in {path} must be a table")
        merged.update(section)
    return merged


def detect_project(source_root: pathlib.Path) -> str:
    """
    Returns the name of the first `*.xcodeproj` in the source root.

    Raises:
        ConfigurationError: If there is none
    """
    candidates = sorted(source_root.glob("*.xcodeproj"))
    if not candidates:
        raise ConfigurationError(f"No .xcodeproj found in {source_root}; set PROJECT")
    return candidates[0].stem


def config_from_environment(
    env: Mapping[str, str], cwd: pathlib.Path, logger: FmlLogger
) -> Dict[str, Any]:
    """
    Derive settings from the environment of an Xcode "Run Script" build phase.

    When run outside Xcode, SOURCE_ROOT falls back to the working directory,
    PROJECT to the first `.xcodeproj` found there and CONFIGURATION to Debug.

    Returns:
        Settings suitable for FmlConfig
    """
    settings: Dict[str, Any] = {}

    source_root = env.get("SOURCE_ROOT")
    if not source_root:
        logger.log(
            "No $SOURCE_ROOT defined. Execute this as a build step in Xcode. Guessing it as CWD",
            logging.WARNING,
        )
        source_root = str(cwd)
    settings["source_root"] = pathlib.Path(source_root)

    project = env.get("PROJECT")
    if not project:
        logger.log("No $PROJECT defined. Execute this as a build step in Xcode.", logging.WARNING)
        project = detect_project(settings["source_root"])
        logger.log(f"Detected it as {project}", logging.WARNING)
    settings["project"] = project

    configuration = env.get("CONFIGURATION")
    if not configuration:
        logger.log(
            "No $CONFIGURATION defined. Execute this as a build step in Xcode. Guessing it as Debug",
            logging.WARNING,
        )
        configuration = "Debug"
    settings["build_configuration"] = configuration

    input_count = env.get("SCRIPT_INPUT_FILE_COUNT", "0")
    try:
        has_inputs = int(input_count) > 0
    except ValueError:
        has_inputs = False
    if has_inputs and env.get("SCRIPT_INPUT_FILE_0"):
        settings["fml_file"] = env["SCRIPT_INPUT_FILE_0"]

    if env.get("MOZ_APPSERVICES_LOCAL"):
        settings["local_source"] = pathlib.Path(env["MOZ_APPSERVICES_LOCAL"])

    return settings


def build_config(
    env: Mapping[str, str],
    cwd: pathlib.Path,
    logger: FmlLogger,
    overrides: Optional[Dict[str, Any]] = None,
    config_dir: Optional[pathlib.Path] = None,
) -> FmlConfig:
    """
    Layer environment defaults, config files and explicit overrides into an FmlConfig.

    Args:
        env: Environment of the build step
        cwd: Working directory, used when SOURCE_ROOT is unset
        logger: Logger for warnings about guessed settings
        overrides: Settings from the command line; None values are ignored
        config_dir: Directory holding fml.toml, defaults to the source root

    Returns:
        The final FmlConfig
    """
    settings = config_from_environment(env, cwd, logger)
    file_settings = load_config_files(config_dir or settings["source_root"], logger)
    settings.update(file_settings)
    settings.update(_without_none(overrides or {}))
    return FmlConfig.from_dict(settings)


def _without_none(d: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if v is not None}

