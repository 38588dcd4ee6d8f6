"""
Artifact fetcher.

This package handles:
1. Choosing between the release archive and the CI artifact index
2. Checking whether a cached copy is still current
3. Downloading and verifying archives
4. Extracting the executable for the host architecture
"""

from .fetcher import ArtifactFetcher

__all__ = ["ArtifactFetcher"]
