"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import sys
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from hls_cli import __version__
from hls_cli.core.events import EventChannel, TaskErrored, WorkflowEvent
from hls_cli.core.manager import Manager
from hls_cli.core.workflow import Workflow, WorkflowState
from hls_cli.exceptions import CacheAccessFailed, HlsCliError
from hls_cli.models.progress import DownloadStats
from hls_cli.storage.config_manager import ConfigManager, get_default_workspace
from hls_cli.storage.segment_cache import SegmentCache
from hls_cli.utils.path import is_remote_url, task_name

from .formatters import print_config, print_summary_panel, print_validation_table
from .progress_manager import ProgressManager

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
log = logging.getLogger("hls_cli")

app = typer.Typer(
    name="hls-cli",
    help=(
        "A resumable HTTP Live Streaming downloader. Use 'hls-cli <command> --help'"
        " for more info."
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
    return base_dir.expanduser() / "hls-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """HLS Downloader CLI"""
    if version:
        console.print(f"[bold]hls-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("hls_cli").setLevel("DEBUG" if verbose >= 1 else "INFO")

    if show_config:
        config_manager = ConfigManager(CONFIG_FILE)
        print_config(CONFIG_FILE, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    workspace: Path | None = typer.Option(
        None, "--workspace", "-w", help="Directory where task folders are created."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {"workspace": str((workspace or get_default_workspace()).expanduser())}
    ConfigManager(CONFIG_FILE).save_new_config(settings)
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]hls-cli download <URL>[/cyan]")


def _read_urls_from_stdin() -> list[str]:
    """Reads URLs from stdin, one per line."""
    if sys.stdin.isatty():
        console.print(
            "[yellow]⚠️  No input detected on stdin. Please pipe URLs or redirect"
            " a file.[/yellow]"
        )
        raise typer.Exit(code=1)

    urls = [
        line.strip()
        for line in sys.stdin
        if line.strip() and not line.startswith("#")
    ]
    if not urls:
        console.print("[yellow]⚠️  No valid URLs found in stdin.[/yellow]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Read {len(urls)} URLs from stdin.[/green]")
    return urls


def _collect_stats(workflows: list[Workflow], stats: DownloadStats) -> None:
    for workflow in workflows:
        if workflow.state is WorkflowState.COMBINED:
            stats.tasks_completed += 1
            stats.outputs.append(
                str(workflow.cache.output_path(workflow.config.output_extension))
            )
        elif workflow.state is WorkflowState.DOWNLOADED:
            stats.tasks_completed += 1
            stats.outputs.append(str(workflow.cache.playlist_path))
        elif workflow.state is WorkflowState.CANCELLED:
            stats.tasks_cancelled += 1
        else:
            stats.tasks_failed += 1

        if downloader := workflow.downloader:
            stats.segments_downloaded += downloader.segments_downloaded
            stats.segments_cached += downloader.segments_cached
            stats.segment_retries += downloader.retries
            stats.total_size_downloaded += downloader.bytes_downloaded


@app.command(name="download")
def download_command(
    urls: list[str] | None = typer.Argument(  # noqa: B008
        None, help="One or more m3u8 playlist URLs."
    ),
    workspace: Path | None = typer.Option(
        None, "--workspace", "-w", help="Directory where task folders are created."
    ),
    size: int = typer.Option(
        0, "--size", help="Known total size in bytes; skips per-segment size probing."
    ),
    suffix: str | None = typer.Option(
        None, "--suffix", help="Suffix marking segment lines (default '.ts')."
    ),
    ext: str | None = typer.Option(
        None, "--ext", help="Extension of the combined output file (default 'ts')."
    ),
    retries: int | None = typer.Option(
        None, "--retries", help="Give up on a segment after this many failed attempts."
    ),
    no_combine: bool = typer.Option(
        False,
        "--no-combine",
        help="Stop after downloading; keep the segments and a local playlist.",
    ),
    stdin: bool = typer.Option(
        False, "--stdin", help="Read URLs from standard input, one URL per line."
    ),
):
    """Download HLS playlists and combine their segments into single files."""
    if stdin:
        urls = _read_urls_from_stdin()
    elif not urls:
        console.print(
            "[red]✗ No URLs provided.[/red] "
            "Use: [cyan]hls-cli download <URL>[/cyan] or [cyan]--stdin[/cyan]"
        )
        raise typer.Exit(code=1)

    unique_urls = list(dict.fromkeys(urls))
    if len(unique_urls) < len(urls):
        log.info(f"Removed {len(urls) - len(unique_urls)} duplicate URLs.")

    cli_options = {
        key: value
        for key, value in {
            "source_urls": unique_urls,
            "workspace": str(workspace.expanduser()) if workspace else None,
            "segment_suffix": suffix,
            "output_extension": ext,
            "segment_retry_limit": retries,
        }.items()
        if value is not None
    }

    try:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
    except HlsCliError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    def log_errors(event: WorkflowEvent) -> None:
        if isinstance(event, TaskErrored):
            log.error(f"[red]✗ {escape(event.url)}: {escape(str(event.error))}[/red]")

    async def _download_async() -> tuple[DownloadStats, float]:
        stats = DownloadStats()
        events = EventChannel()
        events.subscribe(log_errors)
        workflows: list[Workflow] = []
        start_time = time.monotonic()

        async with ProgressManager(console=console) as progress_manager:
            events.subscribe(progress_manager.handle_event)
            async with Manager(config, events=events) as manager:
                for url in config.source_urls:
                    try:
                        workflow = manager.attach(url, size=size)
                    except HlsCliError:
                        stats.tasks_failed += 1
                        continue
                    progress_manager.add_task(url, workflow.cache.name, size)
                    workflow.download()
                    if not no_combine:
                        workflow.combine()
                    workflows.append(workflow)

                await asyncio.gather(*(w.join() for w in workflows))

        _collect_stats(workflows, stats)
        return stats, time.monotonic() - start_time

    stats, duration = asyncio.run(_download_async())
    print_summary_panel(stats, duration)
    if stats.tasks_failed:
        raise typer.Exit(code=1)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config)
    except HlsCliError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e


def _task_folder(url: str, workspace: Path | None) -> Path:
    if not is_remote_url(url):
        console.print(f"[red]✗ Not an http(s) URL: {escape(url)}[/red]")
        raise typer.Exit(code=1)
    if workspace is None:
        workspace = Path(ConfigManager(CONFIG_FILE).load_config().workspace)
    return workspace.expanduser() / task_name(url)


@app.command()
def folder(
    url: str = typer.Argument(..., help="The playlist URL of the task."),
    workspace: Path | None = typer.Option(None, "--workspace", "-w"),
):
    """Print the folder holding a task's cache and output."""
    console.print(str(_task_folder(url, workspace)), highlight=False)


@app.command()
def clean(
    url: str = typer.Argument(..., help="The playlist URL of the task."),
    workspace: Path | None = typer.Option(None, "--workspace", "-w"),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Delete a task's folder, including any cached segments and output."""
    task_dir = _task_folder(url, workspace)
    if not task_dir.exists():
        console.print(f"[yellow]Nothing to clean at '{task_dir}'.[/yellow]")
        return
    if not force and not typer.confirm(f"Delete '{task_dir}' and everything in it?"):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()
    try:
        SegmentCache(task_dir.parent, task_dir.name).clear()
    except CacheAccessFailed as e:
        console.print(f"[red]✗ Failed to delete '{task_dir}': {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[green]✓ Removed '{task_dir}'.[/green]")
