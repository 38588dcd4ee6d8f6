"""
Validates a feature manifest and generates code for each configured module.
"""

import logging
import os
import pathlib
from typing import List, Optional

import requests

from fmlgen.artifact_fetcher import ArtifactFetcher
from fmlgen.fmlgen_config import FmlConfig
from fmlgen.fmlgen_exceptions import ConfigurationError
from fmlgen.fmlgen_logger import FmlLogger
from fmlgen.tool_invoker import ToolInvoker, generate_args, validate_args
from fmlgen.version_resolver import VersionResolver

LOCAL_FML_CRATE = pathlib.PurePath("components", "support", "nimbus-fml")


class BinaryLocator:
    """
    Works out how nimbus-fml is to be launched.

    With a local application-services checkout configured, nimbus-fml is built
    and run from source through cargo. Otherwise a prebuilt binary matching the
    project's version is fetched.
    """

    def __init__(
        self,
        config: FmlConfig,
        logger: FmlLogger,
        session: Optional[requests.Session] = None,
        home: Optional[pathlib.Path] = None,
    ):
        self.config = config
        self.logger = logger
        self.session = session
        self.home = home or pathlib.Path.home()

    def command_prefix(self) -> List[str]:
        if self.config.local_source is not None:
            manifest_path = self.config.local_source / LOCAL_FML_CRATE / "Cargo.toml"
            cargo = self.home / ".cargo" / "bin" / "cargo"
            self.logger.log(f"Running nimbus-fml from {self.config.local_source}", logging.INFO)
            return [str(cargo), "run", "--manifest-path", str(manifest_path), "--"]

        version = VersionResolver(self.config, self.logger).resolve()
        binary_path = ArtifactFetcher(self.config, self.logger, session=self.session).fetch(version)
        return [binary_path]


class FmlRunner:
    """
    Runs `nimbus-fml validate` on the feature manifest, then
    `nimbus-fml generate` once per module.
    """

    def __init__(
        self,
        config: FmlConfig,
        logger: FmlLogger,
        locator: Optional[BinaryLocator] = None,
    ):
        self.config = config
        self.logger = logger
        self.locator = locator or BinaryLocator(config, logger)

    def output_dir_for(self, module: str) -> str:
        """
        Returns where code generated from `module` is written.

        Modules that are single manifest files generate into
        `<project>/Generated`, directories into `<module>/Generated` unless an
        output directory is configured.
        """
        if (self.config.source_root / module).is_file():
            return f"{self.config.project}/Generated"
        return self.config.output_dir or f"{module}/Generated"

    def run(self) -> None:
        """
        Raises:
            ConfigurationError: If there is no manifest or no channel
            FmlException: If resolving the binary or running it fails
        """
        if not self.config.fml_file:
            raise ConfigurationError("No input files provided for the Nimbus Feature Manifest.")
        channel = self.config.channel_for_build()

        prefix = self.locator.command_prefix()
        source_root = str(self.config.source_root)
        cache_dir = str(self.config.cache_dir)
        self.logger.log(f"SOURCE_ROOT={source_root}", logging.INFO)

        invoker = ToolInvoker(prefix, self.logger, cwd=source_root, display_root=source_root)
        invoker.run(validate_args(self.config.repo_files, cache_dir, self.config.fml_file))

        for module in self.config.modules:
            output_dir = self.output_dir_for(module)
            os.makedirs(self.config.source_root / output_dir, exist_ok=True)
            invoker.run(
                generate_args(
                    self.config.repo_files,
                    channel,
                    self.config.language,
                    cache_dir,
                    module,
                    output_dir,
                )
            )
