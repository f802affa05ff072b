"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from switchdl.core.collection import Diagnostic
from switchdl.models.config import LibraryConfig
from switchdl.models.stats import DownloadReport, DownloadStats
from switchdl.models.title import CollectionItem, CollectionState, Game
from switchdl.utils.formatting import format_duration, format_size, format_version

STATE_STYLES = {
    CollectionState.NOT_OWNED: "dim",
    CollectionState.OWNED: "green",
    CollectionState.ON_SWITCH: "cyan",
    CollectionState.NEW: "bold yellow",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `switchdl init` to create a configuration file.",
            "• Run `switchdl validate` to see which setting is rejected.",
        ],
        "MissingLocalResourceError": [
            "• Check `title_keys_file` and `roms_path` in the configuration.",
            "• Paths are relative to the current directory unless absolute.",
        ],
        "InvalidArgumentError": [
            "• Base games and DLC download at version 0, updates at 65536 and up.",
            "• Use `switchdl show <TITLEID>` to see the known update versions.",
        ],
        "RepackFailureError": [
            "• The raw download was kept; retry with `--no-repack` to inspect it.",
            "• Re-run with `--verify` to check the downloaded content.",
        ],
        "DownloaderError": [
            "• No content downloader is configured.",
            "• Set `downloader = package.module:ClassName` in the configuration.",
        ],
        "MetadataError": [
            "• The library metadata file is damaged.",
            "• Move it away and run `switchdl load` to rebuild it.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The remote server might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Check your internet connection.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        if isinstance(value, bool):
            value = "true" if value else "false"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: LibraryConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("ROMs Path:", f"[dim]{config.roms_path}[/dim]")
    table.add_row("Images Path:", f"[dim]{config.images_path}[/dim]")
    table.add_row("Title Keys:", f"[dim]{config.title_keys_file}[/dim]")
    table.add_row("Metadata:", f"[dim]{config.metadata_file}[/dim]")
    table.add_row("Repack:", "✓ Enabled" if config.repack else "✗ Disabled")
    table.add_row("Verify:", "✓ Enabled" if config.verify else "✗ Disabled")
    table.add_row(
        "Remove Content:",
        "✓ Enabled" if config.remove_content_after_repack else "✗ Disabled",
    )
    table.add_row("Extension:", f".{config.rom_extension}")
    table.add_row(
        "Downloader:",
        f"[green]{config.downloader}[/green]"
        if config.downloader
        else "[yellow]titledb (metadata only)[/yellow]",
    )
    table.add_row(
        "Remote Icons:", "✓ Enabled" if config.icon_url_template else "✗ Disabled"
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_titles_table(items: list[CollectionItem], title: str = "Collection"):
    """Displays collection entries, one row per title."""
    console = Console()
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Title ID", style="bold magenta", no_wrap=True)
    table.add_column("Name")
    table.add_column("State")
    table.add_column("Latest", justify="right")
    table.add_column("Updates", justify="right")
    table.add_column("DLC", justify="right")
    table.add_column("Size", justify="right", style="cyan")

    for item in items:
        state = item.state
        style = STATE_STYLES.get(state, "white")
        name = item.title.name or "[dim]?[/dim]"
        if item.is_favorite:
            name = f"★ {name}"
        if isinstance(item.title, Game):
            latest = format_version(item.title.latest_version)
            updates = str(len(item.title.updates))
            dlc = str(len(item.title.dlc))
        else:
            latest = updates = dlc = ""
        table.add_row(
            item.title_id,
            name,
            f"[{style}]{state.value}[/{style}]",
            latest,
            updates,
            dlc,
            format_size(item.size) if item.size else "",
        )

    console.print(table)


def print_title_details(item: CollectionItem):
    """Displays one title with its updates and DLC."""
    console = Console()
    grid = Table(show_header=False, box=None, padding=(0, 2))
    grid.add_column(style="bold cyan")
    grid.add_column()

    game = item.title
    grid.add_row("Title ID:", game.title_id)
    grid.add_row("Name:", game.name or "[dim]unknown[/dim]")
    grid.add_row("Type:", game.type.value)
    grid.add_row("State:", item.state.value)
    grid.add_row("Title Key:", game.title_key or "[dim]missing[/dim]")
    if item.rom_path:
        grid.add_row("ROM:", f"[dim]{item.rom_path}[/dim]")
    if isinstance(game, Game):
        grid.add_row("Latest Version:", format_version(game.latest_version))
        grid.add_row(
            "Updates:",
            ", ".join(format_version(v) for v in game.update_versions) or "none",
        )
        for dlc in game.dlc:
            grid.add_row("DLC:", f"{dlc.title_id}  {dlc.name or ''}")

    console.print(Panel(grid, title=f"[bold]{game.name or game.title_id}[/bold]"))


def print_diagnostics(diagnostics: list[Diagnostic]):
    """Displays the non-fatal conditions collected while loading."""
    if not diagnostics:
        return
    console = Console()
    table = Table(title="Diagnostics", box=box.SIMPLE)
    table.add_column("Kind", style="yellow", no_wrap=True)
    table.add_column("Title ID", style="magenta", no_wrap=True)
    table.add_column("Message")
    for diagnostic in diagnostics:
        table.add_row(
            diagnostic.kind.value, diagnostic.title_id or "", diagnostic.message
        )
    console.print(table)


def print_download_report(report: DownloadReport):
    """Displays every step of a scope download in execution order."""
    console = Console()
    table = Table(title=f"Download {report.title_id}", box=box.ROUNDED)
    table.add_column("Step", style="cyan")
    table.add_column("Title ID", style="magenta", no_wrap=True)
    table.add_column("Version", justify="right")
    table.add_column("Result")

    for step in report.steps:
        request = step.request
        if step.ok:
            result = f"[green]✓[/green] [dim]{step.path}[/dim]"
        else:
            result = f"[red]✗ {step.error}[/red]"
        table.add_row(
            request.step.value,
            request.title.title_id,
            format_version(request.version),
            result,
        )
    console.print(table)


def print_summary_panel(stats: DownloadStats, duration_s: float):
    """Displays a final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.titles_downloaded}[/bold green]"
    )
    if stats.updates_attached > 0:
        stats_table.add_row(
            "Updates Attached:", f"[green]{stats.updates_attached}[/green]"
        )
    if stats.titles_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.titles_failed}[/bold red]")
    if stats.repacks_failed > 0:
        stats_table.add_row(
            "⚠ Repack Failures:", f"[yellow]{stats.repacks_failed}[/yellow]"
        )

    stats_table.add_row("", "")
    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    border_color = "green" if stats.titles_failed == 0 else "yellow"
    console.print()
    console.print(
        Panel(
            stats_table,
            title="🎮 [bold]Download Complete![/bold]",
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
