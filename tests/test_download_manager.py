"""
Tests for the DownloadManager orchestration.
"""
import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from switchdl.core.collection import DiagnosticKind
from switchdl.core.download_manager import DownloadManager
from switchdl.core.scope import DownloadScope
from switchdl.exceptions import DownloaderError, InvalidArgumentError
from switchdl.models.title import DLC, VERSION_STRIDE, CollectionState, Game

from conftest import DLC1_ID, DLC2_ID, GAME_ID, UPDATE_ID, FakeArtifact


@pytest.fixture
def game_item(index):
    item = index.upsert_game(GAME_ID, name="Some Game")
    item.title.latest_version = 3 * VERSION_STRIDE
    index.attach_dlc(GAME_ID, DLC(DLC1_ID, name="[DLC] One", game_id=GAME_ID))
    index.attach_dlc(GAME_ID, DLC(DLC2_ID, name="[DLC] Two", game_id=GAME_ID))
    return item


@pytest.fixture
def manager(config, index, mock_downloader):
    return DownloadManager(config, index, mock_downloader)


def _calls(mock_downloader):
    return [(c.args[0].title_id, c.args[1]) for c in mock_downloader.download_title.call_args_list]


@pytest.mark.asyncio
async def test_download_title_base_at_version_zero(manager, mock_downloader, config):
    game = Game(GAME_ID, name="Some Game")

    path = await manager.download_title(game, 0, repack=False, verify=True)

    assert path == Path(config.roms_path) / GAME_ID
    assert path.is_dir()
    mock_downloader.download_title.assert_called_once_with(
        game, 0, str(path), False, True
    )


@pytest.mark.asyncio
async def test_download_title_base_with_update_version_fails(manager, mock_downloader):
    with pytest.raises(InvalidArgumentError):
        await manager.download_title(
            Game(GAME_ID), VERSION_STRIDE, repack=False, verify=False
        )
    mock_downloader.download_title.assert_not_called()


@pytest.mark.asyncio
async def test_download_title_update_at_version_zero_fails(manager, mock_downloader):
    update = Game(GAME_ID).get_update_title(0)

    with pytest.raises(InvalidArgumentError):
        await manager.download_title(update, 0, repack=False, verify=False)
    mock_downloader.download_title.assert_not_called()


@pytest.mark.asyncio
async def test_download_title_dlc_with_version_fails(manager):
    with pytest.raises(InvalidArgumentError):
        await manager.download_title(
            DLC(DLC1_ID, game_id=GAME_ID), VERSION_STRIDE, repack=False, verify=False
        )


@pytest.mark.asyncio
async def test_download_title_without_title_fails(manager):
    with pytest.raises(InvalidArgumentError):
        await manager.download_title(None, 0, repack=False, verify=False)


@pytest.mark.asyncio
async def test_download_title_repacks_into_roms_path(manager, config):
    path = await manager.download_title(
        Game(GAME_ID, name="Some Game"), 0, repack=True, verify=False
    )

    assert path == Path(config.roms_path) / f"Some Game [{GAME_ID}][v0].nsp"
    assert path.read_bytes() == b"NSP0content"


@pytest.mark.asyncio
async def test_download_game_all_runs_in_order(manager, mock_downloader, game_item):
    report = await manager.download_game(
        game_item,
        3 * VERSION_STRIDE,
        DownloadScope.BASE_AND_UPDATE_AND_DLC,
        repack=True,
        verify=False,
    )

    assert _calls(mock_downloader) == [
        (GAME_ID, 0),
        (UPDATE_ID, 3 * VERSION_STRIDE),
        (UPDATE_ID, 2 * VERSION_STRIDE),
        (UPDATE_ID, VERSION_STRIDE),
        (DLC1_ID, 0),
        (DLC2_ID, 0),
    ]
    assert report.ok
    assert len(report.steps) == 6


@pytest.mark.asyncio
async def test_download_game_records_results(manager, index, game_item):
    await manager.download_game(
        game_item,
        2 * VERSION_STRIDE,
        DownloadScope.BASE_AND_UPDATE_AND_DLC,
        repack=True,
        verify=False,
    )

    assert game_item.state == CollectionState.OWNED
    assert game_item.rom_path.endswith(f"Some Game [{GAME_ID}][v0].nsp")
    assert game_item.size == len(b"NSP0content")
    assert game_item.title.update_versions == [VERSION_STRIDE, 2 * VERSION_STRIDE]
    assert index.lookup(DLC1_ID).state == CollectionState.OWNED
    assert manager.stats.titles_downloaded == 5
    assert manager.stats.updates_attached == 2


@pytest.mark.asyncio
async def test_download_game_continues_after_a_failed_step(
    manager, mock_downloader, index, game_item
):
    def _download(title, version, *args):
        if version == 2 * VERSION_STRIDE:
            raise DownloaderError("CDN refused the request")
        return FakeArtifact()

    mock_downloader.download_title.side_effect = _download

    report = await manager.download_game(
        game_item,
        3 * VERSION_STRIDE,
        DownloadScope.UPDATE_AND_DLC,
        repack=True,
        verify=False,
    )

    assert len(report.steps) == 5
    assert [s.request.version for s in report.failed] == [2 * VERSION_STRIDE]
    assert isinstance(report.failed[0].error, DownloaderError)
    assert game_item.title.update_versions == [VERSION_STRIDE, 3 * VERSION_STRIDE]
    assert index.lookup(DLC2_ID).state == CollectionState.OWNED
    assert manager.stats.titles_failed == 1


@pytest.mark.asyncio
async def test_download_game_reports_repack_failures(
    manager, mock_downloader, index, game_item, config
):
    mock_downloader.download_title.side_effect = lambda *args: FakeArtifact(
        success=args[0].title_id != DLC1_ID
    )

    report = await manager.download_game(
        game_item, 0, DownloadScope.ALL_DLC, repack=True, verify=False
    )

    assert [s.request.title.title_id for s in report.failed] == [DLC1_ID]
    assert index.lookup(DLC1_ID).state == CollectionState.NOT_OWNED
    assert index.lookup(DLC2_ID).state == CollectionState.OWNED
    assert manager.stats.repacks_failed == 1
    assert index.diagnostics[-1].kind == DiagnosticKind.REPACK_FAILED
    assert not list(Path(config.roms_path).glob(f"*{DLC1_ID}*.nsp"))
    assert (Path(config.roms_path) / DLC1_ID).is_dir()


class RaisingArtifact(FakeArtifact):
    async def repack(self, dest_path: str) -> bool:
        Path(dest_path).write_bytes(b"partial")
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_download_game_continues_after_repack_raises(
    manager, mock_downloader, index, game_item, config
):
    mock_downloader.download_title.side_effect = lambda *args: (
        RaisingArtifact() if args[0].title_id == DLC1_ID else FakeArtifact()
    )

    report = await manager.download_game(
        game_item, 0, DownloadScope.ALL_DLC, repack=True, verify=False
    )

    assert len(report.steps) == 2
    assert [s.request.title.title_id for s in report.failed] == [DLC1_ID]
    assert isinstance(report.failed[0].error.__cause__, OSError)
    assert index.lookup(DLC2_ID).state == CollectionState.OWNED
    assert manager.stats.repacks_failed == 1
    assert not list(Path(config.roms_path).glob(f"*{DLC1_ID}*.nsp"))


@pytest.mark.asyncio
async def test_download_game_records_local_io_errors(
    manager, mock_downloader, index, game_item
):
    def _download(title, *args):
        if title.title_id == DLC1_ID:
            raise OSError("permission denied")
        return FakeArtifact()

    mock_downloader.download_title.side_effect = _download

    report = await manager.download_game(
        game_item, 0, DownloadScope.ALL_DLC, repack=True, verify=False
    )

    assert [s.request.title.title_id for s in report.failed] == [DLC1_ID]
    assert index.lookup(DLC2_ID).state == CollectionState.OWNED
    assert manager.stats.titles_failed == 1


@pytest.mark.asyncio
async def test_download_update_rejects_dlc(manager, index, game_item, mock_downloader):
    with pytest.raises(InvalidArgumentError):
        await manager.download_update(
            index.lookup(DLC1_ID), VERSION_STRIDE, repack=False, verify=False
        )
    mock_downloader.download_title.assert_not_called()


@pytest.mark.asyncio
async def test_download_game_without_item_fails(manager, mock_downloader):
    with pytest.raises(InvalidArgumentError):
        await manager.download_game(
            None, 0, DownloadScope.BASE_ONLY, repack=False, verify=False
        )
    mock_downloader.download_title.assert_not_called()


@pytest.mark.asyncio
async def test_download_update_attaches_it(manager, game_item):
    update = await manager.download_update(
        game_item, VERSION_STRIDE, repack=False, verify=False
    )

    assert update.title_id == UPDATE_ID
    assert game_item.title.update_versions == [VERSION_STRIDE]


@pytest.mark.asyncio
async def test_save_session_stats_appends_a_line(manager, config, game_item):
    manager.downloader.download_title = AsyncMock(return_value=FakeArtifact())
    await manager.download_game(
        game_item, 0, DownloadScope.BASE_ONLY, repack=True, verify=False
    )

    manager.save_session_stats()
    manager.save_session_stats()

    lines = (Path(config.config_path) / "session_history.jsonl").read_text().splitlines()
    assert len(lines) == 2
    assert json.loads(lines[0])["titles_downloaded"] == 1
