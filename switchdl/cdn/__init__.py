"""
Content Downloader Layer.

This package defines the downloader contract, the shared HTTP session pool and
the metadata-only titledb downloader used when no content plugin is configured.
"""

from .base import CDNDownloader, ContentArtifact
from .plugin import load_downloader

__all__ = ["CDNDownloader", "ContentArtifact", "load_downloader"]
