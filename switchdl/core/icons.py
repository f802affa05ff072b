"""
Loads title icons from the local image cache, fetching missing ones through
the downloader when asked to.
"""

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

from switchdl.cdn.base import CDNDownloader
from switchdl.core.identity import is_base_game_id
from switchdl.models.title import CollectionItem, Title

log = logging.getLogger(__name__)

BLANK_IMAGE = "blank.jpg"


class TitleIconLoader:
    """Resolves each title's icon to a cached image or the blank placeholder."""

    def __init__(self, images_path: Path, downloader: CDNDownloader):
        self.images_path = images_path
        self.downloader = downloader

    @property
    def blank_image(self) -> str:
        return str(self.images_path / BLANK_IMAGE)

    def local_image(self, title_id: str) -> str | None:
        if not self.images_path.is_dir():
            self.images_path.mkdir(parents=True, exist_ok=True)
            return None
        location = self.images_path / f"{title_id}.jpg"
        return str(location) if location.is_file() else None

    async def load_title_icon(self, title: Title, download_remote: bool = False) -> str:
        """
        Sets `title.icon`. Only base games are fetched remotely; any failure
        leaves the blank placeholder.
        """
        image = self.local_image(title.title_id)
        if image is None and download_remote and is_base_game_id(title.title_id):
            try:
                await self.downloader.download_remote_image(title)
                image = self.local_image(title.title_id)
            except Exception as e:
                log.debug(f"Icon download failed for {title.title_id}: {e}")

        title.icon = image or self.blank_image
        return title.icon

    async def load_title_icons(
        self, items: Iterable[CollectionItem], preload: bool = False
    ) -> int:
        """
        Loads every icon concurrently, one task per title, with no ordering
        between them. Returns the number of titles that got a real image.
        """
        tasks = [
            asyncio.create_task(self.load_title_icon(item.title, preload))
            for item in items
        ]
        if not tasks:
            return 0
        results = await asyncio.gather(*tasks, return_exceptions=True)
        loaded = sum(
            1 for r in results if isinstance(r, str) and r != self.blank_image
        )
        log.info(f"Loaded {loaded}/{len(tasks)} title icons.")
        return loaded
