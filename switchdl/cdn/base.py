"""
The contract between the library and a content downloader.

All content access (CDN requests, decryption, repacking) lives behind these
interfaces so that the collection and download logic can be exercised with
any implementation.
"""

from abc import ABC, abstractmethod

from switchdl.models.title import Title


class ContentArtifact(ABC):
    """The raw result of downloading one title at one version."""

    @abstractmethod
    async def repack(self, dest_path: str) -> bool:
        """
        Packs the downloaded content into a single archive at `dest_path`.

        Returns:
            True on success, False otherwise. A partial file may be left behind
            on failure; the caller is responsible for removing it.
        """


class CDNDownloader(ABC):
    """Base class for content downloaders."""

    @abstractmethod
    async def get_latest_versions(self) -> dict[str, int]:
        """Returns the latest known version for each base game ID."""

    @abstractmethod
    async def download_title(
        self, title: Title, version: int, dest_dir: str, repack: bool, verify: bool
    ) -> ContentArtifact:
        """Downloads the content of `title` at `version` into `dest_dir`."""

    @abstractmethod
    async def download_remote_image(self, title: Title) -> None:
        """Fetches the title's icon into the local image cache."""

    async def close(self) -> None:
        """Releases any network resources held by the downloader."""
