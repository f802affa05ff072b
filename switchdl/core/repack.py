"""
Turns a raw title download into a canonically named archive, cleaning up
after failures.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path

from rich.markup import escape

from switchdl.cdn.base import ContentArtifact
from switchdl.exceptions import RepackFailureError
from switchdl.models.title import Title
from switchdl.utils.path import format_rom_filename

log = logging.getLogger(__name__)


class RepackCoordinator:
    """
    Repacks downloaded content into `roms_path`. Partial archives never
    survive a failed repack, and the raw content directory is only removed
    after a successful one.
    """

    def __init__(
        self,
        roms_path: Path,
        remove_content_after_repack: bool = False,
        extension: str = "nsp",
    ):
        self.roms_path = roms_path
        self.remove_content_after_repack = remove_content_after_repack
        self.extension = extension

    def output_filename(self, title: Title, version: int) -> str:
        return format_rom_filename(title, version, self.extension)

    def output_path(self, title: Title, version: int) -> Path:
        return self.roms_path / self.output_filename(title, version)

    def _remove_partial(self, output_path: Path) -> None:
        if output_path.exists():
            try:
                os.remove(output_path)
            except OSError as e:
                log.error(f"Could not remove partial archive {output_path}: {e}")

    async def finalize(
        self,
        artifact: ContentArtifact,
        title: Title,
        version: int,
        content_dir: Path,
        repack: bool,
    ) -> Path:
        """
        Returns the final location of the title: the archive when repacking,
        otherwise the raw content directory.

        Raises:
            RepackFailureError: If the artifact could not be repacked.
        """
        if not repack:
            return content_dir

        output_path = self.output_path(title, version)
        log.debug(f"Repacking {title.title_id} into {output_path.name}")
        try:
            success = await artifact.repack(str(output_path))
        except Exception as e:
            self._remove_partial(output_path)
            raise RepackFailureError(
                f"Repacking {title} v{version} failed: {e}", str(output_path)
            ) from e

        if not success:
            self._remove_partial(output_path)
            raise RepackFailureError(
                f"Repacking {title} v{version} failed.", str(output_path)
            )

        if self.remove_content_after_repack and content_dir.exists():
            await asyncio.to_thread(shutil.rmtree, content_dir, ignore_errors=True)
            log.debug(f"Removed raw content directory {content_dir}")

        log.info(f"  [green]✓ Repacked:[/] [dim]{escape(output_path.name)}[/dim]")
        return output_path
