"""
Artifact models for the nimbus-fml code generator.

This package provides Pydantic data models describing which version of the
generator is needed, where its archive lives, how it is cached on disk and
which binary inside the archive matches the host.
"""

from .artifact import (
    VersionSpec,
    Endpoint,
    ArtifactLocation,
    CacheEntry,
    Architecture,
)

__all__ = [
    "VersionSpec",
    "Endpoint",
    "ArtifactLocation",
    "CacheEntry",
    "Architecture",
]
