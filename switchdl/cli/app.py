"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from switchdl import __version__
from switchdl.cdn.base import CDNDownloader
from switchdl.cdn.http import close_connection_pool
from switchdl.cdn.plugin import load_downloader
from switchdl.core.collection import CollectionIndex
from switchdl.core.download_manager import DownloadManager
from switchdl.core.icons import TitleIconLoader
from switchdl.core.identity import normalize_title_id
from switchdl.core.loader import LibraryLoader
from switchdl.core.scope import DownloadScope
from switchdl.exceptions import SwitchDLError
from switchdl.models.config import LibraryConfig
from switchdl.models.title import CollectionState
from switchdl.storage.config_manager import ConfigManager

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_diagnostics,
    print_download_report,
    print_summary_panel,
    print_title_details,
    print_titles_table,
    print_validation_table,
)

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("switchdl")

app = typer.Typer(
    name="switchdl",
    help=(
        "Catalog Switch titles from a title keys file and download base games,"
        " updates and DLC. Use 'switchdl <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "switchdl"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


async def _build_collection(
    config: LibraryConfig,
    downloader: CDNDownloader,
    scan: bool = True,
) -> tuple[CollectionIndex, LibraryLoader]:
    """Loads the title keys file, the metadata overlay and, optionally, the ROMs."""
    index = CollectionIndex()
    loader = LibraryLoader(index, downloader, config.rom_extension)
    await loader.load_title_keys_file(Path(config.title_keys_file))
    await loader.load_metadata(Path(config.metadata_file))
    if scan:
        loader.scan_roms_folder(Path(config.roms_path))
    return index, loader


def _run(coro_factory):
    """Runs a command coroutine, always closing the shared HTTP session."""

    async def _wrapper():
        downloader = None
        try:
            config = ConfigManager(CONFIG_FILE).load_config()
            downloader = load_downloader(config)
            return await coro_factory(config, downloader)
        except SwitchDLError as e:
            console.print(format_error_with_suggestions(e))
            raise typer.Exit(code=1) from e
        finally:
            if downloader is not None:
                await downloader.close()
            await close_connection_pool()

    return asyncio.run(_wrapper())


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    clear_cache: bool = typer.Option(
        False, "--clear-cache", help="Clear the versions cache and exit."
    ),
):
    """Switch title library and download CLI"""
    if version:
        console.print(f"[bold]switchdl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("switchdl").setLevel(log_level)

    if clear_cache:
        from switchdl.storage.cache import CacheManager

        cache = CacheManager(CONFIG_DIR)
        console.print("[cyan]Clearing versions cache...[/cyan]")
        files_count = len(list(cache.cache_dir.glob("*.json")))
        if cache.clear():
            console.print(
                f"[green]✓ Cache cleared successfully ({files_count} entries removed"
                ").[/green]"
            )
        else:
            console.print("[red]✗ Failed to clear cache.[/red]")
        raise typer.Exit()

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]switchdl init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config_manager.load_config()
        print_config(CONFIG_FILE, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    title_keys_file: Path = typer.Option(  # noqa: B008
        Path("titlekeys.txt"), "--keys", "-k", help="Path of the title keys file."
    ),
    roms_path: Path = typer.Option(  # noqa: B008
        Path("roms"), "--roms", "-r", help="Directory holding the ROM archives."
    ),
    images_path: Path = typer.Option(  # noqa: B008
        Path("images"), "--images", help="Directory caching the title icons."
    ),
    downloader: str = typer.Option(
        "", "--downloader", help="Content downloader as 'package.module:ClassName'."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Initialize the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "title_keys_file": str(title_keys_file.expanduser().resolve()),
        "roms_path": str(roms_path.expanduser().resolve()),
        "images_path": str(images_path.expanduser().resolve()),
        "metadata_file": str(CONFIG_DIR / "library.json"),
        "downloader": downloader,
    }
    try:
        LibraryConfig(**settings, config_path=str(CONFIG_DIR))
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except (SwitchDLError, ValueError) as e:
        console.print(f"[red]✗ Invalid settings: {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Build your library with: [cyan]switchdl load[/cyan]")


@app.command()
def load(
    keys: Path | None = typer.Option(  # noqa: B008
        None, "--keys", "-k", help="Title keys file (overrides the configuration)."
    ),
    scan: bool = typer.Option(
        True, "--scan/--no-scan", help="Match archives in the ROMs directory."
    ),
):
    """Build the library and save its metadata."""

    async def _load(config: LibraryConfig, downloader: CDNDownloader):
        if keys is not None:
            config.title_keys_file = str(keys)
        with console.status("[cyan]Loading library...[/cyan]"):
            index, loader = await _build_collection(config, downloader, scan=scan)
            path = loader.save_metadata(Path(config.metadata_file))
        print_diagnostics(index.diagnostics)
        console.print(
            f"[green]✓ {len(index)} titles ({len(index.games())} games) saved to"
            f" [dim]{path}[/dim][/green]"
        )

    _run(_load)


@app.command()
def diff(
    keyfile: Path = typer.Argument(..., help="A newer title keys file."),  # noqa: B008
    save: bool = typer.Option(
        True, "--save/--no-save", help="Save the new titles to the library metadata."
    ),
):
    """Show the titles in KEYFILE that the library does not have yet."""

    async def _diff(config: LibraryConfig, downloader: CDNDownloader):
        index, loader = await _build_collection(config, downloader, scan=False)
        index.diagnostics.clear()
        new_items = await loader.update_title_keys_file(keyfile)
        print_diagnostics(index.diagnostics)
        if not new_items:
            console.print("[yellow]No new titles found.[/yellow]")
            return
        print_titles_table(new_items, title=f"New in {keyfile.name}")
        if save:
            loader.save_metadata(Path(config.metadata_file))

    _run(_diff)


@app.command()
def scan(
    path: Path | None = typer.Argument(  # noqa: B008
        None, help="Directory to scan (defaults to roms_path)."
    ),
):
    """Match archive files against the library."""

    async def _scan(config: LibraryConfig, downloader: CDNDownloader):
        index, loader = await _build_collection(config, downloader, scan=False)
        matched = loader.scan_roms_folder(path or Path(config.roms_path))
        print_diagnostics(index.diagnostics)
        loader.save_metadata(Path(config.metadata_file))
        console.print(f"[green]✓ Matched {matched} archives.[/green]")

    _run(_scan)


@app.command()
def show(title_id: str = typer.Argument(..., help="Any game, update or DLC ID.")):
    """Show a game with its updates and DLC."""

    async def _show(config: LibraryConfig, downloader: CDNDownloader):
        index, _ = await _build_collection(config, downloader)
        item = index.lookup_base(title_id)
        if item is None:
            console.print(f"[red]✗ {title_id} is not in the library.[/red]")
            raise typer.Exit(code=1)
        print_title_details(item)

    _run(_show)


@app.command(name="list")
def list_command(
    state: CollectionState | None = typer.Option(
        None, "--state", "-s", help="Only list titles in this state."
    ),
    favorites: bool = typer.Option(
        False, "--favorites", help="Only list favorite titles."
    ),
    games_only: bool = typer.Option(
        True, "--games-only/--all", help="Hide DLC entries."
    ),
):
    """List the titles of the library."""

    async def _list(config: LibraryConfig, downloader: CDNDownloader):
        index, _ = await _build_collection(config, downloader)
        items = index.games() if games_only else list(index)
        if state is not None:
            items = [i for i in items if i.state == state]
        if favorites:
            items = [i for i in items if i.is_favorite]
        items.sort(key=lambda i: (i.title.name or "").lower())
        print_titles_table(items)

    _run(_list)


@app.command(name="download")
def download_command(
    title_id: str = typer.Argument(..., help="The game, update or DLC to download."),
    scope: DownloadScope = typer.Option(
        DownloadScope.BASE_ONLY, "--scope", "-s", help="What to download."
    ),
    version: int | None = typer.Option(
        None,
        "--version",
        help="Update version for update scopes (defaults to the latest).",
    ),
    repack: bool | None = typer.Option(
        None, "--repack/--no-repack", help="Repack downloads into archives."
    ),
    verify: bool | None = typer.Option(
        None, "--verify/--no-verify", help="Verify downloaded content."
    ),
):
    """Download a title and, depending on the scope, its updates and DLC."""

    async def _download(config: LibraryConfig, downloader: CDNDownloader):
        index, loader = await _build_collection(config, downloader)
        item = index.lookup(normalize_title_id(title_id))
        if item is None:
            item = index.lookup_base(title_id)

        target_version = version
        if target_version is None:
            base = index.lookup_base(title_id)
            target_version = getattr(base.title, "latest_version", 0) if base else 0

        manager = DownloadManager(config, index, downloader)
        console.print("[bold cyan]🎮 Starting download session...[/bold cyan]")
        start_time = time.monotonic()
        report = await manager.download_game(
            item,
            target_version,
            scope,
            config.repack if repack is None else repack,
            config.verify if verify is None else verify,
        )
        duration = time.monotonic() - start_time

        print_download_report(report)
        print_summary_panel(manager.stats, duration)
        manager.save_session_stats()
        loader.save_metadata(Path(config.metadata_file))
        if not report.ok:
            raise typer.Exit(code=1)

    _run(_download)


@app.command()
def icons(
    download: bool = typer.Option(
        True, "--download/--local", help="Fetch missing icons remotely."
    ),
):
    """Load title icons into the image cache."""

    async def _icons(config: LibraryConfig, downloader: CDNDownloader):
        index, _ = await _build_collection(config, downloader, scan=False)
        icon_loader = TitleIconLoader(Path(config.images_path), downloader)
        with console.status("[cyan]Loading icons...[/cyan]"):
            loaded = await icon_loader.load_title_icons(index.games(), download)
        console.print(f"[green]✓ {loaded} icons available.[/green]")

    _run(_icons)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        load_downloader(config)
        print_validation_table(config)
    except SwitchDLError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
