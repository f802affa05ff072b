"""
Utilities for handling file paths and the archive file name convention:

    [DLC] Name [TITLEID][vVERSION].nsp
    Name [UPD][TITLEID][vVERSION].nsp
    Name [TITLEID][vVERSION].nsp
"""

from dataclasses import dataclass
from pathlib import Path

from pathvalidate import sanitize_filename

from switchdl.models.title import DEMO_MARKER, DLC_TAG, UPDATE_TAG, Title, TitleType


@dataclass(frozen=True)
class ParsedRomName:
    """The fields recovered from an archive file name."""

    type: TitleType
    name: str
    title_id: str | None
    version: int | None


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def sanitize_title_name(name: str) -> str:
    """Strips characters that are not allowed in file names."""
    return sanitize_filename(name, platform="universal").strip()


def format_rom_filename(title: Title, version: int, extension: str = "nsp") -> str:
    """
    Builds the canonical archive name for a title, e.g.
    ``[DLC] Some Game DLC [0100ABCD00001001][v0].nsp``.
    """
    title_name = sanitize_title_name(title.name or title.title_id)
    prefix = ""
    if title.type is TitleType.DLC and not title_name.startswith(DLC_TAG):
        prefix = f"{DLC_TAG} "
    separator = f" {UPDATE_TAG}" if title.type is TitleType.UPDATE else " "
    return f"{prefix}{title_name}{separator}[{title.title_id}][v{version}].{extension}"


def parse_rom_filename(filename: str) -> ParsedRomName | None:
    """
    Parses an archive file name. Returns None when the name does not have at
    least a name token and a ``[ID][vVERSION]`` meta token.
    """
    stem = Path(filename).stem
    parts = stem.split()
    if len(parts) < 2:
        return None

    meta = parts[-1]
    if parts[0].upper() == DLC_TAG:
        title_type = TitleType.DLC
        name = " ".join(parts[1:-1])
    else:
        name = " ".join(parts[:-1])
        if meta.upper().startswith(UPDATE_TAG):
            title_type = TitleType.UPDATE
            meta = meta[len(UPDATE_TAG) :]
        elif DEMO_MARKER in name.upper():
            title_type = TitleType.DEMO
        else:
            title_type = TitleType.GAME

    if not (meta.startswith("[") and meta.endswith("]")):
        return None

    meta_parts = [p for p in meta.split("][") if p]
    title_id = meta_parts[0].strip("[]") if meta_parts else None
    if not title_id:
        return None

    version = None
    if len(meta_parts) > 1:
        version_part = meta_parts[1].rstrip("]")
        if version_part.startswith("v"):
            version_part = version_part[1:]
        try:
            version = int(version_part)
        except ValueError:
            version = None

    return ParsedRomName(title_type, name, title_id.upper(), version)
