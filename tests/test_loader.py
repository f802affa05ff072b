"""
Tests for populating the collection from key files, the metadata overlay and
ROM directory scans.
"""
import pytest

from switchdl.core.collection import CollectionIndex, DiagnosticKind
from switchdl.core.loader import LibraryLoader
from switchdl.exceptions import MetadataError, MissingLocalResourceError
from switchdl.models.title import VERSION_STRIDE, CollectionState, Game

from conftest import (
    DLC1_ID,
    DLC2_ID,
    GAME_ID,
    OTHER_GAME_ID,
    TITLE_KEY,
    UPDATE_ID,
    write_keys,
)

KEY_LINES = [
    f"{DLC1_ID}|{TITLE_KEY}|[DLC] Some Game Costume Pack",
    f"{GAME_ID}|{TITLE_KEY.lower()}|Some Game",
    f"{DLC2_ID}|{TITLE_KEY}|[DLC] Some Game Soundtrack",
    f"{UPDATE_ID}|{TITLE_KEY}|Some Game Update",
    "this is not a key line",
    "",
    f"{OTHER_GAME_ID}||Other Game|extra|fields",
]


@pytest.fixture
def loader(index, mock_downloader):
    return LibraryLoader(index, mock_downloader)


@pytest.fixture
def keys_file(tmp_path):
    return write_keys(tmp_path / "titlekeys.txt", KEY_LINES)


@pytest.mark.asyncio
async def test_load_title_keys_file(loader, index, keys_file):
    loaded = await loader.load_title_keys_file(keys_file)

    assert loaded == 4
    assert len(index) == 4

    game = index.lookup(GAME_ID).title
    assert isinstance(game, Game)
    assert game.name == "Some Game"
    assert game.title_key == TITLE_KEY
    assert game.latest_version == 3 * VERSION_STRIDE
    assert [d.title_id for d in game.dlc] == [DLC1_ID, DLC2_ID]

    other = index.lookup(OTHER_GAME_ID).title
    assert other.name == "Other Game"
    assert other.title_key is None

    kinds = [d.kind for d in index.diagnostics]
    assert kinds.count(DiagnosticKind.ORPHAN_DLC) == 1
    assert kinds.count(DiagnosticKind.UNRECOGNIZED_LINE) == 2


@pytest.mark.asyncio
async def test_reloading_does_not_duplicate(loader, index, keys_file):
    await loader.load_title_keys_file(keys_file)
    await loader.load_title_keys_file(keys_file)

    assert len(index) == 4
    assert len(index.lookup(GAME_ID).title.dlc) == 2


@pytest.mark.asyncio
async def test_missing_key_file_raises(loader, tmp_path):
    with pytest.raises(MissingLocalResourceError):
        await loader.load_title_keys_file(tmp_path / "missing.txt")


@pytest.mark.asyncio
async def test_dlc_tag_on_non_dlc_id_is_skipped(loader, index, tmp_path):
    path = write_keys(tmp_path / "keys.txt", [f"{UPDATE_ID}|{TITLE_KEY}|[DLC] Fake"])

    assert await loader.load_title_keys_file(path) == 0
    assert len(index) == 0
    assert index.diagnostics[-1].kind == DiagnosticKind.UNRECOGNIZED_LINE


@pytest.mark.asyncio
async def test_diff_returns_only_new_titles(loader, index, keys_file, tmp_path):
    await loader.load_title_keys_file(keys_file)
    new_dlc = "0100ABCD00001003"
    new_game = "0100000000020000"
    newer = write_keys(
        tmp_path / "newer.txt",
        KEY_LINES[:3]
        + [
            f"{new_dlc}|{TITLE_KEY}|[DLC] Some Game Expansion",
            f"{new_game}|{TITLE_KEY}|Brand New Game",
        ],
    )

    new_items = await loader.update_title_keys_file(newer)

    assert [item.title_id for item in new_items] == [new_dlc, new_game]
    assert all(item.state == CollectionState.NEW for item in new_items)
    assert index.lookup(GAME_ID).state == CollectionState.NOT_OWNED
    assert new_dlc in [d.title_id for d in index.lookup(GAME_ID).title.dlc]


@pytest.mark.asyncio
async def test_diff_fills_stub_when_dlc_precedes_its_game(loader, index, tmp_path):
    diff_file = write_keys(
        tmp_path / "diff.txt",
        [
            f"{DLC1_ID}|{TITLE_KEY}|[DLC] Some Game Pack",
            f"{GAME_ID}|{TITLE_KEY}|Some Game Real Name",
        ],
    )

    new_items = await loader.update_title_keys_file(diff_file)

    assert [item.title_id for item in new_items] == [DLC1_ID, GAME_ID]
    base = index.lookup(GAME_ID)
    assert base.title.name == "Some Game Real Name"
    assert base.title.title_key == TITLE_KEY
    assert base.state == CollectionState.NEW
    assert [d.title_id for d in base.title.dlc] == [DLC1_ID]


@pytest.mark.asyncio
async def test_metadata_round_trip(loader, index, keys_file, tmp_path, mock_downloader):
    await loader.load_title_keys_file(keys_file)
    game_item = index.lookup(GAME_ID)
    game_item.is_favorite = True
    game_item.state = CollectionState.ON_SWITCH
    game_item.rom_path = "/roms/Some Game.nsp"
    game_item.size = 1234
    index.attach_update(game_item.title.get_update_title(VERSION_STRIDE))
    metadata_path = loader.save_metadata(tmp_path / "library")

    assert metadata_path.name == "library.json"

    fresh = CollectionIndex()
    fresh_loader = LibraryLoader(fresh, mock_downloader)
    await fresh_loader.load_title_keys_file(keys_file)
    applied = await fresh_loader.load_metadata(metadata_path)

    restored = fresh.lookup(GAME_ID)
    assert applied == 4
    assert restored.is_favorite is True
    assert restored.state == CollectionState.ON_SWITCH
    assert restored.rom_path == "/roms/Some Game.nsp"
    assert restored.size == 1234
    assert restored.title.update_versions == [VERSION_STRIDE]


@pytest.mark.asyncio
async def test_metadata_does_not_override_key_file_names(
    loader, index, keys_file, tmp_path
):
    (tmp_path / "library.json").write_text(
        '{"items": [{"title_id": "%s", "name": "Old Name", "is_favorite": true},'
        ' {"title_id": "0100000000030000", "name": "Only In Overlay"}]}' % GAME_ID,
        encoding="utf-8",
    )
    await loader.load_title_keys_file(keys_file)

    await loader.load_metadata(tmp_path / "library.json")

    assert index.lookup(GAME_ID).title.name == "Some Game"
    assert index.lookup(GAME_ID).is_favorite is True
    assert index.lookup("0100000000030000").title.name == "Only In Overlay"


@pytest.mark.asyncio
async def test_missing_metadata_is_skipped(loader, tmp_path):
    assert await loader.load_metadata(tmp_path / "library.json") == 0


@pytest.mark.asyncio
async def test_corrupt_metadata_raises(loader, tmp_path):
    (tmp_path / "library.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(MetadataError):
        await loader.load_metadata(tmp_path / "library.json")


@pytest.mark.asyncio
async def test_scan_roms_folder(loader, index, keys_file, tmp_path):
    await loader.load_title_keys_file(keys_file)
    index.lookup(OTHER_GAME_ID).state = CollectionState.ON_SWITCH
    roms = tmp_path / "roms"
    roms.mkdir()
    for name in (
        f"Some Game [{GAME_ID}][v0].nsp",
        f"Other Game [{OTHER_GAME_ID}][v0].nsp",
        f"Some Game [UPD][{UPDATE_ID}][v131072].nsp",
        f"[DLC] Some Game Costume Pack [{DLC1_ID}][v0].nsp",
        "Unknown Game [0100FFFF00000000][v0].nsp",
        "Orphan [UPD][0100000000020800][v65536].nsp",
        "garbage.nsp",
        f"Some Game [{GAME_ID}][v0].xci",
    ):
        (roms / name).write_bytes(b"data")

    matched = loader.scan_roms_folder(roms)

    assert matched == 4
    game_item = index.lookup(GAME_ID)
    assert game_item.state == CollectionState.OWNED
    assert game_item.rom_path == str((roms / f"Some Game [{GAME_ID}][v0].nsp").resolve())
    assert game_item.size == 4
    assert game_item.title.update_versions == [131072]
    assert index.lookup(DLC1_ID).state == CollectionState.OWNED
    assert index.lookup(OTHER_GAME_ID).state == CollectionState.ON_SWITCH
    assert index.lookup("0100FFFF00000000") is None

    kinds = [d.kind for d in index.diagnostics]
    assert DiagnosticKind.ORPHAN_UPDATE in kinds
    assert DiagnosticKind.UNPARSEABLE_FILE in kinds


@pytest.mark.asyncio
async def test_scan_matches_extension_case_insensitively(loader, index, keys_file, tmp_path):
    await loader.load_title_keys_file(keys_file)
    roms = tmp_path / "roms"
    roms.mkdir()
    (roms / f"Some Game [{GAME_ID}][v0].NSP").write_bytes(b"data")
    (roms / f"Other Game Demo [{OTHER_GAME_ID}][v0].Nsp").write_bytes(b"demo")

    assert loader.scan_roms_folder(roms) == 2
    assert index.lookup(GAME_ID).state == CollectionState.OWNED
    demo_item = index.lookup(OTHER_GAME_ID)
    assert isinstance(demo_item.title, Game)
    assert demo_item.state == CollectionState.OWNED


def test_scan_missing_directory_raises(loader, tmp_path):
    with pytest.raises(MissingLocalResourceError):
        loader.scan_roms_folder(tmp_path / "nowhere")
