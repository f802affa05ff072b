"""
A metadata-only downloader backed by a public title database: latest versions
come from a `versions.json` document and icons from a URL template. It does
not provide title content.
"""

import logging
from pathlib import Path

from switchdl.cdn.base import CDNDownloader, ContentArtifact
from switchdl.cdn.http import HttpFetcher
from switchdl.core.identity import base_game_id, normalize_title_id
from switchdl.exceptions import DownloaderError
from switchdl.models.config import LibraryConfig
from switchdl.models.title import Title
from switchdl.storage.cache import CacheManager

log = logging.getLogger(__name__)

VERSIONS_CACHE_KEY = "latest_versions"


def parse_versions(document: dict) -> dict[str, int]:
    """
    Reduces a versions document to the highest version per base game ID.

    Accepts both ``{"<id>": {"<version>": "<date>", ...}}`` and
    ``{"<id>": <version>}`` shapes; malformed entries are skipped.
    """
    latest: dict[str, int] = {}
    for raw_id, entry in document.items():
        title_id = normalize_title_id(raw_id)
        base_id = base_game_id(title_id) if title_id else None
        if not base_id:
            continue
        try:
            if isinstance(entry, dict):
                versions = [int(v) for v in entry]
                version = max(versions) if versions else 0
            else:
                version = int(entry)
        except (TypeError, ValueError):
            log.debug(f"Skipping malformed versions entry for {raw_id}: {entry!r}")
            continue
        latest[base_id] = max(latest.get(base_id, 0), version)
    return latest


class TitleDBDownloader(CDNDownloader):
    """
    Provides latest versions and icons from a title database. Subclasses add
    content downloads by overriding `download_title`.
    """

    def __init__(self, config: LibraryConfig, fetcher: HttpFetcher | None = None):
        self.config = config
        self.fetcher = fetcher or HttpFetcher()
        self.images_path = Path(config.images_path)
        self.cache = CacheManager(
            Path(config.config_path), max_age_days=config.cache_max_age_days
        )

    async def get_latest_versions(self) -> dict[str, int]:
        cache_key = f"{VERSIONS_CACHE_KEY}:{self.config.versions_url}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            log.debug("Loaded latest versions from cache.")
            return {k: int(v) for k, v in cached.items()}

        if not self.config.versions_url:
            return {}

        log.info(f"Fetching latest versions from [dim]{self.config.versions_url}[/dim]")
        document = await self.fetcher.fetch_json(self.config.versions_url)
        if not isinstance(document, dict):
            raise DownloaderError(
                f"Unexpected versions document from {self.config.versions_url}."
            )
        versions = parse_versions(document)
        self.cache.set(cache_key, versions)
        return versions

    async def download_title(
        self, title: Title, version: int, dest_dir: str, repack: bool, verify: bool
    ) -> ContentArtifact:
        raise DownloaderError(
            "No content downloader is configured. Set 'downloader' in the "
            "configuration file to a CDNDownloader implementation."
        )

    async def download_remote_image(self, title: Title) -> None:
        if not self.config.icon_url_template:
            return
        self.images_path.mkdir(parents=True, exist_ok=True)
        url = self.config.icon_url_template.format(title_id=title.title_id)
        destination = self.images_path / f"{title.title_id}.jpg"
        await self.fetcher.download_file(url, str(destination))
        log.debug(f"Cached icon for {title.title_id}")
