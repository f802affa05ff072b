"""
Data Models Layer.

This package contains the title dataclasses, the Pydantic configuration model
and the session statistics used throughout the application.
"""

from .config import LibraryConfig
from .title import DLC, CollectionItem, CollectionState, Game, Title, Update

__all__ = [
    "DLC",
    "CollectionItem",
    "CollectionState",
    "Game",
    "LibraryConfig",
    "Title",
    "Update",
]
