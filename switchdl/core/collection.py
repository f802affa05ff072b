"""
The in-memory collection index: one CollectionItem per title ID, with merge
semantics for titles that are discovered out of order.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from switchdl.core.identity import base_game_id, normalize_title_id
from switchdl.models.title import (
    DLC,
    DLC_TAG,
    CollectionItem,
    CollectionState,
    Game,
    Title,
    Update,
)

log = logging.getLogger(__name__)


class DiagnosticKind(str, Enum):
    ORPHAN_DLC = "orphan_dlc"
    ORPHAN_UPDATE = "orphan_update"
    NOT_A_GAME = "not_a_game"
    UNRECOGNIZED_LINE = "unrecognized_line"
    UNPARSEABLE_FILE = "unparseable_file"
    REPACK_FAILED = "repack_failed"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal condition met while populating or updating the index."""

    kind: DiagnosticKind
    title_id: str | None
    message: str


class CollectionIndex:
    """
    Owns every CollectionItem, keyed by title ID.

    The index has no internal locking; it expects a single writer.
    """

    def __init__(self):
        self._items: dict[str, CollectionItem] = {}
        self.diagnostics: list[Diagnostic] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CollectionItem]:
        return iter(list(self._items.values()))

    def __contains__(self, title_id: object) -> bool:
        return isinstance(title_id, str) and self.lookup(title_id) is not None

    def games(self) -> list[CollectionItem]:
        return [item for item in self._items.values() if item.title.is_game]

    def report(
        self, kind: DiagnosticKind, title_id: str | None, message: str
    ) -> Diagnostic:
        """Records a non-fatal diagnostic and logs it."""
        diagnostic = Diagnostic(kind, title_id, message)
        self.diagnostics.append(diagnostic)
        log.warning(f"[yellow]⚠ {message}[/yellow]")
        return diagnostic

    def lookup(self, title_id: str | None) -> CollectionItem | None:
        """Exact-match lookup. Returns None for malformed or unknown IDs."""
        if title_id is None or len(title_id) != 16:
            return None
        return self._items.get(title_id.upper())

    def lookup_base(self, title_id: str | None) -> CollectionItem | None:
        """Looks up the base game owning an update, DLC or base game ID."""
        if title_id is None or len(title_id) != 16:
            return None
        return self.lookup(base_game_id(title_id) or title_id)

    def insert(self, item: CollectionItem | None) -> CollectionItem | None:
        """
        Adds an item to the index. A second insert with the same ID replaces
        the previous item; use `upsert_game` to merge instead.
        """
        if item is None:
            return None
        self._items[item.title_id] = item
        return item

    def add_title(self, title: Title) -> CollectionItem:
        return self.insert(CollectionItem(title))

    def upsert_game(
        self,
        title_id: str,
        title_key: str | None = None,
        name: str | None = None,
        state: CollectionState | None = None,
        is_favorite: bool | None = None,
    ) -> CollectionItem:
        """
        Merges the given non-None fields into an existing entry, or creates a
        new game entry. Existing DLC and updates are kept.
        """
        item = self.lookup(title_id)
        if item is None:
            game = Game(title_id, name=name, title_key=title_key)
            item = CollectionItem(
                game,
                state=state or CollectionState.NOT_OWNED,
                is_favorite=bool(is_favorite),
            )
            return self.insert(item)

        # Typically a stub created when DLC was listed before its game.
        if name is not None:
            item.title.name = name
        if title_key is not None:
            item.title.title_key = title_key
        if state is not None:
            item.state = state
        if is_favorite is not None:
            item.is_favorite = is_favorite
        return item

    def attach_dlc(self, base_id: str, dlc: DLC) -> CollectionItem | None:
        """
        Adds a DLC to its base game's DLC set and indexes the DLC itself.

        A stub game is created when the base game is not known yet; it is
        filled in later by `upsert_game`. Returns the base game's item.
        """
        base_item = self.lookup(base_id)
        if base_item is None:
            stub_name = dlc.name.replace(f"{DLC_TAG} ", "") if dlc.name else None
            base_item = self.add_title(Game(base_id, name=stub_name))
            self.report(
                DiagnosticKind.ORPHAN_DLC,
                dlc.title_id,
                f"Couldn't find base game ID {base_id} for DLC {dlc.name}; "
                "added a placeholder.",
            )

        existing = self.lookup(dlc.title_id)
        if existing is not None and isinstance(existing.title, DLC):
            dlc_title = existing.title
            dlc_title.name = dlc_title.name or dlc.name
            dlc_title.title_key = dlc_title.title_key or dlc.title_key
            dlc_title.game_id = dlc_title.game_id or dlc.game_id
        else:
            dlc_title = dlc
            self.add_title(dlc_title)

        if isinstance(base_item.title, Game):
            base_item.title.add_dlc(dlc_title)
        else:
            self.report(
                DiagnosticKind.NOT_A_GAME,
                base_id,
                f"Base ID {base_id} of DLC {dlc.title_id} is not a game.",
            )
        return base_item

    def attach_update(self, update: Update) -> Update | None:
        """
        Adds an update to its base game's update list. Unlike DLC, an update
        for an unknown game is skipped rather than stubbed.
        """
        base_item = self.lookup(normalize_title_id(update.game_id))
        if base_item is None:
            self.report(
                DiagnosticKind.ORPHAN_UPDATE,
                update.title_id,
                f"Found an update for a game that doesn't exist: {update.game_id}.",
            )
            return None
        if base_item.title is None:
            self.report(
                DiagnosticKind.ORPHAN_UPDATE,
                update.title_id,
                f"Collection item {update.game_id} has no title.",
            )
            return None
        if not isinstance(base_item.title, Game):
            self.report(
                DiagnosticKind.NOT_A_GAME,
                update.title_id,
                f"Update {update.title_id} belongs to {update.game_id}, "
                "which is not a game.",
            )
            return None

        base_item.title.add_update(update)
        return update
