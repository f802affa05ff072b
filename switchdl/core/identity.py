"""
Pure functions for classifying Switch title IDs and deriving related IDs.

A title ID is 16 hex digits. Base games end in ``000`` with bit 12 clear, the
update channel of a base game is ``base + 0x800`` and DLC slots are
``base + 0x1000 + index`` (index starting at 1).
"""

import re

from switchdl.exceptions import InvalidArgumentError

TITLE_ID_LENGTH = 16
TITLE_KEY_LENGTH = 32

UPDATE_OFFSET = 0x800
DLC_FLAG = 0x1000

_HEX_RE = re.compile(r"^[0-9A-Fa-f]+$")


def _is_hex(value: str, length: int) -> bool:
    return len(value) == length and bool(_HEX_RE.match(value))


def normalize_title_id(title_id: str | None) -> str | None:
    """Returns the upper-cased ID, or None if it is not 16 hex digits."""
    if not title_id:
        return None
    title_id = title_id.strip()
    if not _is_hex(title_id, TITLE_ID_LENGTH):
        return None
    return title_id.upper()


def normalize_title_key(title_key: str | None) -> str | None:
    """Returns the upper-cased key, or None if it is not 32 hex digits."""
    if not title_key:
        return None
    title_key = title_key.strip()
    if not _is_hex(title_key, TITLE_KEY_LENGTH):
        return None
    return title_key.upper()


def _as_int(title_id: str | None) -> int | None:
    normalized = normalize_title_id(title_id)
    return int(normalized, 16) if normalized else None


def is_base_game_id(title_id: str | None) -> bool:
    value = _as_int(title_id)
    if value is None:
        return False
    return value & 0xFFF == 0 and not value & DLC_FLAG


def is_update_id(title_id: str | None) -> bool:
    value = _as_int(title_id)
    if value is None:
        return False
    return value & 0xFFF == UPDATE_OFFSET and not value & DLC_FLAG


def is_dlc_id(title_id: str | None) -> bool:
    value = _as_int(title_id)
    if value is None:
        return False
    return bool(value & DLC_FLAG) and value & 0xFFF != 0


def _format(value: int) -> str:
    return f"{value:016X}"


def base_game_id_from_update(update_id: str) -> str:
    """Resets the role digits of an update ID to the base pattern."""
    if not is_update_id(update_id):
        raise InvalidArgumentError(f"'{update_id}' is not an update title ID.")
    return _format(int(update_id, 16) & ~0xFFF)


def base_game_id_from_dlc(dlc_id: str) -> str:
    """
    Strips the DLC index and flag from a DLC ID, e.g.
    ``0100ABCD00001001`` -> ``0100ABCD00000000``.
    """
    if not is_dlc_id(dlc_id):
        raise InvalidArgumentError(f"'{dlc_id}' is not a DLC title ID.")
    prefix = int(dlc_id[:-3], 16) - 1
    return _format(prefix << 12)


def update_id_from_base_game(base_id: str) -> str:
    """Returns the update channel ID for a base game."""
    if not is_base_game_id(base_id):
        raise InvalidArgumentError(f"'{base_id}' is not a base game title ID.")
    return _format(int(base_id, 16) + UPDATE_OFFSET)


def base_game_id(title_id: str) -> str | None:
    """
    Maps any valid title ID to its owning base game ID. Returns None for
    malformed IDs or IDs that match no role.
    """
    if is_base_game_id(title_id):
        return normalize_title_id(title_id)
    if is_update_id(title_id):
        return base_game_id_from_update(title_id)
    if is_dlc_id(title_id):
        return base_game_id_from_dlc(title_id)
    return None
