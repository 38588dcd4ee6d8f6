"""
Version resolution for the nimbus-fml code generator.

This package handles:
1. Honouring an explicitly requested version
2. Sniffing the rust-components-swift version out of an Xcode project
3. Following a local rust-components-swift checkout to its Package.swift
"""

from .resolver import VersionResolver

__all__ = ["VersionResolver"]
