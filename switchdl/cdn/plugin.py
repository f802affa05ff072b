"""
Resolves the content downloader named in the configuration.
"""

import importlib
import logging

from switchdl.cdn.base import CDNDownloader
from switchdl.cdn.titledb import TitleDBDownloader
from switchdl.exceptions import ConfigurationError
from switchdl.models.config import LibraryConfig

log = logging.getLogger(__name__)


def load_downloader(config: LibraryConfig) -> CDNDownloader:
    """
    Instantiates `config.downloader` ("package.module:ClassName") with the
    config. Falls back to the metadata-only `TitleDBDownloader`.
    """
    if not config.downloader:
        return TitleDBDownloader(config)

    module_name, _, attr_path = config.downloader.partition(":")
    try:
        target = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            target = getattr(target, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(
            f"Could not load downloader '{config.downloader}': {e}"
        ) from e

    if not (isinstance(target, type) and issubclass(target, CDNDownloader)):
        raise ConfigurationError(
            f"Downloader '{config.downloader}' is not a CDNDownloader subclass."
        )

    log.debug(f"Using downloader {config.downloader}")
    return target(config)
