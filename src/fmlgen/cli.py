"""
Command line entry point, meant to run as an Xcode "Run Script" build phase.

It can also be run from a terminal in the source root, or anywhere once
PROJECT, CONFIGURATION and SOURCE_ROOT are exported.
"""

import argparse
import logging
import os
import pathlib
import sys
from typing import Any, Dict, List, Mapping, Optional

from fmlgen.fml_runner import FmlRunner
from fmlgen.fmlgen_config import FML_TOML_SCHEMA, FmlConfig, build_config
from fmlgen.fmlgen_exceptions import (
    ConfigurationError,
    FmlException,
    SubprocessFailure,
    UnsupportedArchitecture,
    VersionNotFound,
)
from fmlgen.fmlgen_logger import LOG_FORMAT, FmlLogger

DESCRIPTION = """\
Nimbus Feature Manifest Language generator.

Generates the code needed to interact with Nimbus, exposing features which are
experimentable. For more information, check out https://experimenter.info/fml-spec
"""

EXIT_FAILURE = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fmlgen",
        description=DESCRIPTION,
        epilog="Configuration is read from fml.toml and fml.local.toml:\n" + FML_TOML_SCHEMA,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "fml_file",
        nargs="?",
        metavar="FILE",
        help="Feature manifest to validate. Defaults to $PROJECT/nimbus.fml.yaml.",
    )
    parser.add_argument(
        "-a",
        "--use-fml-version",
        dest="version",
        metavar="REF",
        help="Version or reference of nimbus-fml to use. If missing, derives from the project.pbxproj file.",
    )
    parser.add_argument(
        "-F",
        "--fresh",
        action="store_true",
        default=None,
        help="Re-download the nimbus-fml binary.",
    )
    parser.add_argument(
        "-o",
        "--output",
        dest="output_dir",
        metavar="DIR",
        help="Directory generated code is written to. Defaults to <module>/Generated.",
    )
    parser.add_argument(
        "--config-dir",
        type=pathlib.Path,
        help="Directory holding fml.toml and fml.local.toml. Defaults to the source root.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Log every step.",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "fml_file": args.fml_file,
        "version": args.version,
        "fresh": args.fresh,
        "output_dir": args.output_dir,
        "verbose": args.verbose,
    }


def exit_code_for(error: FmlException) -> int:
    """
    Map a failure to the process exit status.

    The code generator's own exit status is passed through.
    """
    if isinstance(error, SubprocessFailure):
        if error.returncode < 0:
            # Killed by a signal
            return 128 - error.returncode
        return error.returncode
    if isinstance(error, (VersionNotFound, UnsupportedArchitecture, ConfigurationError)):
        return EXIT_USAGE
    return EXIT_FAILURE


def run(config: FmlConfig, logger: FmlLogger) -> None:
    FmlRunner(config, logger).run()


def main(argv: Optional[List[str]] = None, env: Optional[Mapping[str, str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(format=LOG_FORMAT)
    logger = FmlLogger(verbose=bool(args.verbose))
    environment = os.environ if env is None else env

    try:
        config = build_config(
            environment,
            pathlib.Path.cwd(),
            logger,
            overrides=overrides_from_args(args),
            config_dir=args.config_dir,
        )
        logger.set_verbose(config.verbose)
        run(config, logger)
    except FmlException as e:
        logger.log(f"Error: {e}", logging.ERROR)
        return exit_code_for(e)
    return 0


if __name__ == "__main__":
    sys.exit(main())
