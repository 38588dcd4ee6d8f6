"""
fmlgen fetches the nimbus-fml code generator matching a project's
application-services version and runs it to validate a feature manifest and
generate code from it.
"""

from fmlgen.artifact_fetcher import ArtifactFetcher
from fmlgen.fml_runner import BinaryLocator, FmlRunner
from fmlgen.fmlgen_config import FmlConfig, build_config
from fmlgen.fmlgen_logger import FmlLogger
from fmlgen.tool_invoker import ToolInvoker
from fmlgen.version_resolver import VersionResolver

__all__ = [
    "ArtifactFetcher",
    "BinaryLocator",
    "FmlConfig",
    "FmlLogger",
    "FmlRunner",
    "ToolInvoker",
    "VersionResolver",
    "build_config",
]
