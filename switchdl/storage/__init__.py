"""
Storage Layer.

This package handles all data persistence, including the configuration file,
the library metadata overlay and the response cache.
"""

from .cache import CacheManager
from .config_manager import ConfigManager
from .metadata import MetadataStore

__all__ = ["CacheManager", "ConfigManager", "MetadataStore"]
