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

from hls_cli.models.config import DownloadConfig
from hls_cli.models.progress import DownloadStats
from hls_cli.utils.formatting import format_duration, format_rate, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "InvalidParameters": [
            "• Pass an http:// or https:// playlist URL, not a local file.",
            "• Make sure the workspace is a local directory.",
            "• A task folder that belongs to another URL cannot be reused; try `--workspace`.",
        ],
        "DuplicateTask": [
            "• The same URL was given more than once.",
            "• Another URL with the same playlist file name is using the task folder.",
        ],
        "PlaylistInvalid": [
            "• The playlist lists no segments with the expected suffix.",
            "• Try `--suffix` if segments use another extension (e.g. .m4s).",
            "• Variant (master) playlists are not supported; use a media playlist.",
        ],
        "CacheAccessFailed": [
            "• Check free disk space and permissions of the workspace.",
            "• Run `hls-cli clean <URL>` to discard a corrupted task cache.",
        ],
        "TransferFailed": [
            "• A network connection issue occurred.",
            "• The server might be temporarily unavailable.",
            "• Please try again; completed segments will not be downloaded twice.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `hls-cli init --force` to write a fresh configuration.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Check your internet speed.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
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
    for key, value in config_data.items():
        if value is None:
            value = "[dim]unset[/dim]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: DownloadConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    retry_limit = (
        "unlimited" if config.segment_retry_limit is None else str(config.segment_retry_limit)
    )
    table.add_row("Workspace:", f"[dim]{config.workspace}[/dim]")
    table.add_row("Segment Suffix:", config.segment_suffix)
    table.add_row("Output Extension:", f".{config.output_extension}")
    table.add_row("Probe Concurrency:", str(config.probe_concurrency))
    table.add_row("Segment Retries:", retry_limit)
    table.add_row("Request Timeout:", f"{config.request_timeout:g}s")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_summary_panel(stats: DownloadStats, duration_s: float):
    """Displays the final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("✓ Completed:", f"[bold green]{stats.tasks_completed}[/bold green]")
    if stats.tasks_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.tasks_failed}[/bold red]")
    if stats.tasks_cancelled > 0:
        stats_table.add_row(
            "○ Cancelled:", f"[yellow]{stats.tasks_cancelled}[/yellow]"
        )

    stats_table.add_row("", "")  # Spacer

    segments = f"[green]{stats.segments_downloaded}[/green] downloaded"
    if stats.segments_cached:
        segments += f" + [yellow]{stats.segments_cached}[/yellow] from cache"
    stats_table.add_row("Segments:", segments)
    if stats.segment_retries:
        stats_table.add_row("Retries:", f"[yellow]{stats.segment_retries}[/yellow]")

    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    stats_table.add_row(
        "Avg. Speed:",
        f"[magenta]{format_rate(stats.total_size_downloaded, duration_s)}[/magenta]",
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stats.outputs:
        stats_table.add_row("", "")
        for i, output in enumerate(stats.outputs):
            stats_table.add_row("Output:" if i == 0 else "", f"[dim]{output}[/dim]")

    failed = stats.tasks_failed > 0
    console.print()
    console.print(
        Panel(
            stats_table,
            title=(
                "⚠ [bold]Finished With Errors[/bold]"
                if failed
                else "🎬 [bold]Download Complete![/bold]"
            ),
            border_style="yellow" if failed else "green",
            box=box.DOUBLE,
            expand=False,
        )
    )
