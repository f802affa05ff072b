"""
Populates a CollectionIndex from a title keys file, the persisted metadata
overlay and a scan of the local ROMs directory.
"""

import logging
from pathlib import Path

from switchdl.cdn.base import CDNDownloader
from switchdl.core.collection import CollectionIndex, DiagnosticKind
from switchdl.core.identity import (
    base_game_id_from_dlc,
    base_game_id_from_update,
    is_base_game_id,
    is_dlc_id,
    is_update_id,
    normalize_title_id,
    normalize_title_key,
)
from switchdl.exceptions import MissingLocalResourceError
from switchdl.models.title import (
    DLC,
    DLC_TAG,
    CollectionItem,
    CollectionState,
    Game,
    TitleType,
    Update,
)
from switchdl.storage.metadata import MetadataStore
from switchdl.utils.path import parse_rom_filename

log = logging.getLogger(__name__)


class LibraryLoader:
    """
    Builds the collection. Every source can be re-run against an already
    populated index without duplicating entries.
    """

    def __init__(
        self,
        index: CollectionIndex,
        downloader: CDNDownloader,
        rom_extension: str = "nsp",
    ):
        self.index = index
        self.downloader = downloader
        self.rom_extension = rom_extension

    def _read_key_lines(self, path: Path) -> list[str]:
        if not path.is_file():
            raise MissingLocalResourceError(f"Title keys file '{path}' not found.")
        with open(path, encoding="utf-8-sig") as f:
            return [line.rstrip("\r\n") for line in f]

    def _parse_key_line(self, line: str) -> tuple[str, str | None, str] | None:
        """Splits `TITLEID|TITLEKEY|NAME`; extra fields are ignored."""
        fields = line.split("|")
        if len(fields) < 3:
            self.index.report(
                DiagnosticKind.UNRECOGNIZED_LINE,
                None,
                f"Unrecognized title keys line: {line!r}",
            )
            return None

        title_id = normalize_title_id(fields[0].strip()[:16])
        if title_id is None:
            self.index.report(
                DiagnosticKind.UNRECOGNIZED_LINE,
                None,
                f"Invalid title ID in title keys line: {line!r}",
            )
            return None
        title_key = normalize_title_key(fields[1].strip()[:32])
        return title_id, title_key, fields[2].strip()

    def load_title(
        self,
        title_id: str,
        title_key: str | None,
        name: str | None,
        versions: dict[str, int],
    ) -> CollectionItem | None:
        """
        Adds one game or DLC to the collection, whichever the ID and name say
        it is. Returns the base game's item, or None for IDs of any other kind.
        """
        if is_base_game_id(title_id):
            item = self.index.upsert_game(title_id, title_key=title_key, name=name)
            if isinstance(item.title, Game) and title_id in versions:
                item.title.latest_version = versions[title_id]
            return item

        if is_dlc_id(title_id) or (name and name.startswith(DLC_TAG)):
            if not is_dlc_id(title_id):
                self.index.report(
                    DiagnosticKind.UNRECOGNIZED_LINE,
                    title_id,
                    f"{name} is marked as DLC but {title_id} is not a DLC ID.",
                )
                return None
            base_id = base_game_id_from_dlc(title_id)
            dlc = DLC(title_id, name=name, title_key=title_key, game_id=base_id)
            return self.index.attach_dlc(base_id, dlc)

        self.index.report(
            DiagnosticKind.UNRECOGNIZED_LINE,
            title_id,
            f"{title_id} ({name}) is neither a base game nor a DLC; skipped.",
        )
        return None

    async def load_title_keys_file(self, path: Path) -> int:
        """Loads every line of a title keys file. Returns the number of lines used."""
        lines = self._read_key_lines(path)
        versions = await self.downloader.get_latest_versions()

        loaded = 0
        for line in lines:
            if not line.strip():
                continue
            if (parsed := self._parse_key_line(line)) is None:
                continue
            title_id, title_key, name = parsed
            if self.load_title(title_id, title_key, name, versions) is not None:
                loaded += 1

        log.info(
            f"Loaded {loaded} titles from [dim]{path}[/dim] "
            f"({len(self.index)} in collection)."
        )
        return loaded

    async def update_title_keys_file(self, path: Path) -> list[CollectionItem]:
        """
        Loads only the titles of a keys file that are not in the collection
        yet, marks them as new and returns them.
        """
        lines = self._read_key_lines(path)
        versions = await self.downloader.get_latest_versions()

        # Stubs created while this file is read are still new titles.
        known = {item.title_id for item in self.index}
        new_items: list[CollectionItem] = []
        for line in lines:
            if not line.strip():
                continue
            if (parsed := self._parse_key_line(line)) is None:
                continue
            title_id, title_key, name = parsed
            if title_id in known:
                continue

            if self.load_title(title_id, title_key, name, versions) is None:
                continue
            item = self.index.lookup(title_id)
            if item is not None and item.state != CollectionState.NEW:
                item.state = CollectionState.NEW
                new_items.append(item)

        log.info(f"Found {len(new_items)} new titles in [dim]{path}[/dim].")
        return new_items

    async def load_metadata(self, path: Path) -> int:
        """
        Applies the persisted metadata overlay onto the collection. Titles not
        in the collection yet are created from the overlay record.
        """
        store = MetadataStore(path)
        metadata = store.load()
        if metadata is None:
            return 0

        versions = await self.downloader.get_latest_versions()
        applied = 0
        for record in metadata.items:
            item = self.index.lookup(record.title_id)
            if item is None:
                self.load_title(
                    record.title_id.upper(), record.title_key, record.name, versions
                )
                item = self.index.lookup(record.title_id)
                if item is None:
                    continue
            else:
                # The keys file is authoritative for names and keys.
                if item.title.name is None and record.name is not None:
                    item.title.name = record.name
                if item.title.title_key is None and record.title_key is not None:
                    item.title.title_key = normalize_title_key(record.title_key)

            if record.is_favorite is not None:
                item.is_favorite = record.is_favorite
            if record.path is not None:
                item.rom_path = record.path
            if record.state is not None:
                item.state = record.state
            if record.size is not None:
                item.size = record.size

            if isinstance(item.title, Game):
                if record.latest_version is not None:
                    item.title.latest_version = max(
                        item.title.latest_version, record.latest_version
                    )
                for update in record.updates:
                    self.index.attach_update(
                        Update(
                            update.title_id,
                            name=item.title.name,
                            title_key=update.title_key,
                            game_id=item.title_id,
                            version=update.version,
                        )
                    )
            applied += 1

        log.info(f"Finished loading library metadata from [dim]{store.path}[/dim]")
        return applied

    def save_metadata(self, path: Path) -> Path:
        """Writes the whole collection to the metadata overlay file."""
        return MetadataStore(path).save(list(self.index))

    def scan_roms_folder(self, path: Path) -> int:
        """
        Matches archive files in `path` against the collection. Returns the
        number of files that were matched or attached.

        Raises:
            MissingLocalResourceError: If the directory does not exist.
        """
        if not path.is_dir():
            raise MissingLocalResourceError(f"Roms directory {path} not found.")

        suffix = f".{self.rom_extension.lower()}"
        rom_files = [
            p for p in path.iterdir() if p.is_file() and p.suffix.lower() == suffix
        ]

        matched = 0
        for rom_file in sorted(rom_files):
            parsed = parse_rom_filename(rom_file.name)
            if parsed is None or parsed.title_id is None:
                self.index.report(
                    DiagnosticKind.UNPARSEABLE_FILE,
                    None,
                    f"Could not parse archive name '{rom_file.name}'.",
                )
                continue

            if parsed.type in (TitleType.GAME, TitleType.DLC, TitleType.DEMO):
                item = self.index.lookup(parsed.title_id)
                if item is None:
                    continue
                item.rom_path = str(rom_file.resolve())
                item.size = rom_file.stat().st_size
                if item.state != CollectionState.ON_SWITCH:
                    item.state = CollectionState.OWNED
                matched += 1

            elif parsed.type is TitleType.UPDATE:
                if parsed.version is None or not is_update_id(parsed.title_id):
                    self.index.report(
                        DiagnosticKind.UNPARSEABLE_FILE,
                        parsed.title_id,
                        f"'{rom_file.name}' is not a valid update archive name.",
                    )
                    continue
                update = Update(
                    parsed.title_id,
                    name=parsed.name,
                    game_id=base_game_id_from_update(parsed.title_id),
                    version=parsed.version,
                )
                if self.index.attach_update(update) is not None:
                    matched += 1

        log.info(f"Matched {matched} archives in [dim]{path}[/dim].")
        return matched
