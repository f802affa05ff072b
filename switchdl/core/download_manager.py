"""
The orchestrator that validates download requests, expands download scopes,
runs the downloads and records their results in the collection.
"""

import asyncio
import json
import logging
import time
from pathlib import Path

import aiohttp
from rich.markup import escape

from switchdl.cdn.base import CDNDownloader
from switchdl.core.collection import CollectionIndex, DiagnosticKind
from switchdl.core.identity import is_base_game_id, is_dlc_id, is_update_id
from switchdl.core.repack import RepackCoordinator
from switchdl.core.scope import (
    DownloadRequest,
    DownloadScope,
    DownloadStep,
    plan_downloads,
)
from switchdl.exceptions import InvalidArgumentError, RepackFailureError, SwitchDLError
from switchdl.models.config import LibraryConfig
from switchdl.models.stats import DownloadReport, DownloadStats, StepResult
from switchdl.models.title import CollectionItem, CollectionState, Game, Title, Update
from switchdl.utils.path import create_dir

log = logging.getLogger(__name__)


class DownloadManager:
    """
    Orchestrates downloads for one collection. Sub-downloads of a scope run
    strictly one after another; concurrent calls must not share an index.
    """

    def __init__(
        self,
        config: LibraryConfig,
        index: CollectionIndex,
        downloader: CDNDownloader,
        repacker: RepackCoordinator | None = None,
    ):
        self.config = config
        self.index = index
        self.downloader = downloader
        self.roms_path = Path(config.roms_path)
        self.repacker = repacker or RepackCoordinator(
            self.roms_path,
            remove_content_after_repack=config.remove_content_after_repack,
            extension=config.rom_extension,
        )
        self.stats = DownloadStats()

    def save_session_stats(self):
        """Appends the current session's stats to a history file."""
        stats_file = Path(self.config.config_path) / "session_history.jsonl"
        try:
            with open(stats_file, "a", encoding="utf-8") as f:
                session_data = {
                    "timestamp": int(time.time()),
                    "titles_downloaded": self.stats.titles_downloaded,
                    "titles_failed": self.stats.titles_failed,
                    "repacks_failed": self.stats.repacks_failed,
                    "updates_attached": self.stats.updates_attached,
                    "total_size_downloaded": self.stats.total_size_downloaded,
                    "duration_seconds": round(self.stats.elapsed, 2),
                    "titles_processed_count": len(self.stats.titles_processed),
                }
                json.dump(session_data, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save session stats:[/] {e}")

    @staticmethod
    def validate_request(title: Title | None, version: int) -> None:
        """
        Version 0 is only valid for base games and DLC, any other version only
        for updates.

        Raises:
            InvalidArgumentError: If the combination is not downloadable.
        """
        if title is None:
            raise InvalidArgumentError("No title selected for download.")
        title_id = title.title_id
        if version < 0:
            raise InvalidArgumentError(f"Invalid version {version} for {title_id}.")
        if version == 0:
            if not (is_base_game_id(title_id) or is_dlc_id(title_id)):
                raise InvalidArgumentError(
                    f"Don't try to download an update with version 0! ({title_id})"
                )
        elif is_base_game_id(title_id):
            raise InvalidArgumentError(
                f"Don't try to download an update using a base game's ID! ({title_id})"
            )
        elif is_dlc_id(title_id):
            raise InvalidArgumentError(
                f"Don't try to download an update using a DLC ID! ({title_id})"
            )
        elif not is_update_id(title_id):
            raise InvalidArgumentError(f"{title_id} is not an update title ID.")

    async def download_title(
        self, title: Title | None, version: int, repack: bool, verify: bool
    ) -> Path:
        """
        Downloads a single title at a single version into
        `<roms_path>/<TITLEID>` and repacks it if requested.

        Returns:
            The archive path when repacking, otherwise the raw content directory.
        """
        self.validate_request(title, version)

        content_dir = self.roms_path / title.title_id
        create_dir(content_dir)

        log.info(f"[bold cyan]▶ Downloading:[/] {escape(str(title))} v{version}")
        artifact = await self.downloader.download_title(
            title, version, str(content_dir), repack, verify
        )
        return await self.repacker.finalize(
            artifact, title, version, content_dir, repack
        )

    async def _run_request(
        self, request: DownloadRequest, repack: bool, verify: bool
    ) -> Path:
        path = await self.download_title(request.title, request.version, repack, verify)

        if request.step is DownloadStep.UPDATES:
            if self.index.attach_update(request.title) is not None:
                self.stats.updates_attached += 1
        elif request.item is not None:
            request.item.state = CollectionState.OWNED
            request.item.rom_path = str(path.resolve())
            if path.is_file():
                request.item.size = path.stat().st_size

        if path.is_file():
            self.stats.total_size_downloaded += path.stat().st_size
        self.stats.titles_downloaded += 1
        return path

    async def download_game(
        self,
        item: CollectionItem | None,
        version: int,
        scope: DownloadScope,
        repack: bool,
        verify: bool,
    ) -> DownloadReport:
        """
        Downloads a title and/or its updates and DLC as selected by `scope`.

        Steps run in order. A failing step is recorded in the returned report
        and the remaining steps still run.

        Raises:
            InvalidArgumentError: If there is no target title or the scope
            cannot apply to it.
        """
        if item is None or item.title is None:
            raise InvalidArgumentError("No title selected for download.")

        requests = plan_downloads(self.index, item, version, scope)
        report = DownloadReport(title_id=item.title_id)
        self.stats.titles_processed.add(item.title_id)

        if not requests:
            log.info(f"Nothing to download for {escape(str(item.title))}.")
            return report

        for request in requests:
            result = StepResult(request)
            try:
                result.path = await self._run_request(request, repack, verify)
            except RepackFailureError as e:
                self.stats.repacks_failed += 1
                self.stats.titles_failed += 1
                result.error = e
                self.index.report(
                    DiagnosticKind.REPACK_FAILED, request.title.title_id, str(e)
                )
            except (
                SwitchDLError,
                aiohttp.ClientError,
                asyncio.TimeoutError,
                OSError,
            ) as e:
                self.stats.titles_failed += 1
                result.error = e
                log.error(f"[red]  ✗ Failed:[/] {escape(str(request))} ({e})")
            report.steps.append(result)

        return report

    async def download_update(
        self, item: CollectionItem, version: int, repack: bool, verify: bool
    ) -> Update | None:
        """Downloads a single update version and attaches it to its game."""
        title = item.title
        if not isinstance(title, (Game, Update)):
            raise InvalidArgumentError(f"{title} has no updates.")
        update = title.get_update_title(version)
        await self.download_title(update, version, repack, verify)
        return self.index.attach_update(update)
