"""
Persists per-title collection metadata (favorites, local paths, states, sizes
and known updates) as a JSON overlay file.
"""

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from switchdl.exceptions import MetadataError
from switchdl.models.title import CollectionItem, CollectionState, Game

log = logging.getLogger(__name__)


class UpdateRecord(BaseModel):
    """An update known for a game."""

    title_id: str
    title_key: str | None = None
    version: int = Field(ge=0)


class LibraryMetadataItem(BaseModel):
    """Everything persisted for one title. Only the ID is required."""

    title_id: str = Field(min_length=16, max_length=16)
    title_key: str | None = None
    name: str | None = None
    state: CollectionState | None = None
    is_favorite: bool | None = None
    path: str | None = None
    size: int | None = None
    latest_version: int | None = None
    updates: list[UpdateRecord] = Field(default_factory=list)

    @classmethod
    def from_item(cls, item: CollectionItem) -> "LibraryMetadataItem":
        title = item.title
        record = cls(
            title_id=title.title_id,
            title_key=title.title_key,
            name=title.name,
            state=item.state,
            is_favorite=item.is_favorite,
            path=item.rom_path,
            size=item.size or None,
        )
        if isinstance(title, Game):
            record.latest_version = title.latest_version or None
            record.updates = [
                UpdateRecord(
                    title_id=u.title_id, title_key=u.title_key, version=u.version
                )
                for u in title.updates
            ]
        return record


class LibraryMetadata(BaseModel):
    """The root of the metadata overlay file."""

    items: list[LibraryMetadataItem] = Field(default_factory=list)


class MetadataStore:
    """Reads and writes the metadata overlay file."""

    def __init__(self, path: Path):
        if path.suffix != ".json":
            path = path.with_name(path.name + ".json")
        self.path = path.resolve()

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> LibraryMetadata | None:
        """
        Returns the stored metadata, or None when the file does not exist yet.

        Raises:
            MetadataError: If the file exists but cannot be read or validated.
        """
        if not self.exists():
            log.info(
                "Library metadata file doesn't exist; one will be created when "
                "the library is saved."
            )
            return None
        try:
            data = self.path.read_text(encoding="utf-8")
            return LibraryMetadata.model_validate_json(data)
        except (OSError, UnicodeDecodeError) as e:
            raise MetadataError(f"Could not read '{self.path}': {e}") from e
        except ValidationError as e:
            raise MetadataError(f"Invalid library metadata in '{self.path}':\n{e}") from e

    def save(self, items: list[CollectionItem]) -> Path:
        """Writes the whole collection, replacing the previous file atomically."""
        metadata = LibraryMetadata(
            items=[LibraryMetadataItem.from_item(item) for item in items]
        )
        temp_path = self.path.with_suffix(".json.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(
                metadata.model_dump_json(indent=2, exclude_none=True),
                encoding="utf-8",
            )
            os.replace(temp_path, self.path)
        except OSError as e:
            raise MetadataError(f"Could not save '{self.path}': {e}") from e
        log.info(f"Finished saving library metadata to [dim]{self.path}[/dim]")
        return self.path
