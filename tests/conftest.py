from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from switchdl.cdn.base import ContentArtifact
from switchdl.core.collection import CollectionIndex
from switchdl.models.config import LibraryConfig
from switchdl.models.title import VERSION_STRIDE

GAME_ID = "0100ABCD00000000"
UPDATE_ID = "0100ABCD00000800"
DLC1_ID = "0100ABCD00001001"
DLC2_ID = "0100ABCD00001002"
OTHER_GAME_ID = "0100000000010000"
TITLE_KEY = "0123456789ABCDEF0123456789ABCDEF"


class FakeArtifact(ContentArtifact):
    """Writes a small archive on repack; a failing one leaves a partial file."""

    def __init__(self, success: bool = True, payload: bytes = b"NSP0content"):
        self.success = success
        self.payload = payload
        self.repacked_to: list[str] = []

    async def repack(self, dest_path: str) -> bool:
        self.repacked_to.append(dest_path)
        Path(dest_path).write_bytes(self.payload if self.success else b"partial")
        return self.success


@pytest.fixture
def config(tmp_path):
    """A configuration rooted in a temporary directory."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return LibraryConfig(
        roms_path=str(tmp_path / "roms"),
        images_path=str(tmp_path / "images"),
        title_keys_file=str(tmp_path / "titlekeys.txt"),
        metadata_file=str(tmp_path / "library.json"),
        config_path=str(config_dir),
    )


@pytest.fixture
def mock_downloader():
    """Create a mock content downloader."""
    return Mock(
        get_latest_versions=AsyncMock(return_value={GAME_ID: 3 * VERSION_STRIDE}),
        download_title=AsyncMock(side_effect=lambda *args: FakeArtifact()),
        download_remote_image=AsyncMock(return_value=None),
        close=AsyncMock(return_value=None),
    )


@pytest.fixture
def index():
    return CollectionIndex()


def write_keys(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
