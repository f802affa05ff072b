"""
Dataclasses for catalog titles (games, DLC, updates) and the collection items
that wrap them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from switchdl.core.identity import (
    normalize_title_id,
    normalize_title_key,
    update_id_from_base_game,
)

# Update versions are always multiples of this value.
VERSION_STRIDE = 0x10000

DLC_TAG = "[DLC]"
UPDATE_TAG = "[UPD]"
DEMO_MARKER = "DEMO"


class TitleType(str, Enum):
    GAME = "game"
    DLC = "dlc"
    UPDATE = "update"
    DEMO = "demo"
    UNKNOWN = "unknown"


class CollectionState(str, Enum):
    NOT_OWNED = "not_owned"
    OWNED = "owned"
    ON_SWITCH = "on_switch"
    NEW = "new"


@dataclass(eq=False)
class Title:
    """Any catalog entry. Identity is the title ID alone."""

    title_id: str
    name: str | None = None
    title_key: str | None = None
    icon: str | None = field(default=None, repr=False)

    type: ClassVar[TitleType] = TitleType.UNKNOWN

    def __post_init__(self):
        self.title_id = normalize_title_id(self.title_id) or self.title_id.upper()
        self.title_key = normalize_title_key(self.title_key)

    @property
    def is_game(self) -> bool:
        return False

    def __eq__(self, other):
        if not isinstance(other, Title):
            return NotImplemented
        return self.title_id == other.title_id

    def __hash__(self):
        return hash(self.title_id)

    def __str__(self):
        if self.name:
            return f"{self.name} [{self.title_id}]"
        return f"[{self.title_id}]"


@dataclass(eq=False)
class Update(Title):
    """A patch for a base game at a specific version."""

    game_id: str = ""
    version: int = 0

    type: ClassVar[TitleType] = TitleType.UPDATE

    def __post_init__(self):
        self.game_id = normalize_title_id(self.game_id) or self.game_id
        if not self.title_id and self.game_id:
            self.title_id = update_id_from_base_game(self.game_id)
        super().__post_init__()

    def get_update_title(self, version: int, title_key: str | None = None) -> "Update":
        return Update(
            title_id=self.title_id,
            name=self.name,
            title_key=title_key,
            game_id=self.game_id,
            version=version,
        )

    def __hash__(self):
        return hash((self.title_id, self.version))

    def __eq__(self, other):
        if not isinstance(other, Update):
            return NotImplemented
        return self.title_id == other.title_id and self.version == other.version


@dataclass(eq=False)
class DLC(Title):
    """Paid add-on content owned by a base game."""

    game_id: str = ""

    type: ClassVar[TitleType] = TitleType.DLC

    def __post_init__(self):
        super().__post_init__()
        self.game_id = normalize_title_id(self.game_id) or self.game_id


@dataclass(eq=False)
class Game(Title):
    """A base game with its ordered updates and its DLC."""

    latest_version: int = 0
    updates: list[Update] = field(default_factory=list, repr=False)
    dlc: list[DLC] = field(default_factory=list, repr=False)

    type: ClassVar[TitleType] = TitleType.GAME

    @property
    def is_game(self) -> bool:
        return True

    @property
    def update_versions(self) -> list[int]:
        return [u.version for u in self.updates]

    def get_update_title(self, version: int, title_key: str | None = None) -> Update:
        """Builds the update record for this game at the given version."""
        return Update(
            title_id=update_id_from_base_game(self.title_id),
            name=self.name,
            title_key=title_key,
            game_id=self.title_id,
            version=version,
        )

    def add_update(self, update: Update) -> None:
        """Inserts an update keeping the list ordered by version."""
        self.updates = [u for u in self.updates if u.version != update.version]
        self.updates.append(update)
        self.updates.sort(key=lambda u: u.version)

    def add_dlc(self, dlc: DLC) -> None:
        for i, existing in enumerate(self.dlc):
            if existing.title_id == dlc.title_id:
                self.dlc[i] = dlc
                return
        self.dlc.append(dlc)


@dataclass
class CollectionItem:
    """A title plus the state of that title in the local collection."""

    title: Title
    state: CollectionState = CollectionState.NOT_OWNED
    is_favorite: bool = False
    rom_path: str | None = None
    size: int = 0

    @property
    def title_id(self) -> str:
        return self.title.title_id
