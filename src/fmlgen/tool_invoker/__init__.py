"""
Invocation of the nimbus-fml command-line protocol.
"""

from .invoker import ToolInvoker, validate_args, generate_args

__all__ = ["ToolInvoker", "validate_args", "generate_args"]
