"""
Helper functions for formatting data into human-readable strings.
"""

from switchdl.models.title import VERSION_STRIDE

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(bytes_size: int) -> str:
    """Formats bytes as e.g. '14.2 GB'."""
    if bytes_size <= 0:
        return "0 B"
    size = float(bytes_size)
    for unit in _SIZE_UNITS[:-1]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} {_SIZE_UNITS[-1]}"


def format_duration(seconds: float) -> str:
    """Formats a duration as e.g. '1h 5m 3s'; zero units are omitted."""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    parts = [f"{v}{u}" for v, u in ((hours, "h"), (minutes, "m")) if v]
    if secs or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def update_number(version: int) -> int:
    """The sequential patch number of a version (65536 -> 1)."""
    return int(version) // VERSION_STRIDE


def format_version(version: int) -> str:
    """Formats a version as 'v131072 (update 2)'."""
    if not version:
        return "v0"
    return f"v{version} (update {update_number(version)})"
