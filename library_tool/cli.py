"""
Command-line interface for the music library.

Scan, inspect and maintain the storage root, or run the HTTP server, using
the Click framework with Rich output.
"""

import logging
import mimetypes
import time
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, BarColumn, TextColumn, TimeRemainingColumn
from rich.table import Table

from shared.config import ServerConfig
from shared.errors import MusicShelfError, TrackNotFound
from player.library import LibraryManager

console = Console()


def _human_size(size: int) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024


def _open_library(ctx) -> LibraryManager:
    try:
        return LibraryManager.open(ctx.obj['config'])
    except MusicShelfError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


@click.group()
@click.version_option(version="1.0.0")
@click.option('--storage-dir', type=click.Path(file_okay=False), help='Storage root (overrides MUSICSHELF_STORAGE_DIR)')
@click.option('--env-file', type=click.Path(dir_okay=False), help='.env file to load settings from')
@click.option('-v', '--verbose', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, storage_dir, env_file, verbose):
    """
    🎵 Music Library Tool

    Index, inspect and serve the audio files in a storage directory.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj['config'] = ServerConfig.from_env(env_file, storage_dir=storage_dir)


@cli.command()
@click.pass_context
def scan(ctx):
    """Rebuild the catalog from the files on disk."""
    lib = _open_library(ctx)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeRemainingColumn(),
        console=console
    ) as progress:
        try:
            report = lib.rescan(progress=progress)
        except MusicShelfError as e:
            console.print(f"[red]Scan failed: {e}[/red]")
            raise SystemExit(1)

    console.print(f"[green]Indexed {report.processed}/{report.files_found} files.[/green]")
    if report.degraded:
        console.print(f"[yellow]{report.degraded} file(s) without readable metadata.[/yellow]")
    for failure in report.failures:
        console.print(f"[red]✗ {failure.filename}: {failure.error}[/red]")


@cli.command(name='list')
@click.option('--address', default=None, help='Server address to build URLs against')
@click.pass_context
def list_tracks(ctx, address):
    """Show the current catalog."""
    lib = _open_library(ctx)
    config = ctx.obj['config']
    catalog = lib.read_catalog(address or f"http://localhost:{config.port}")

    if catalog.needs_scan:
        console.print("[yellow]No catalog yet. Run 'scan' first.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Title", style="green")
    table.add_column("Artist")
    table.add_column("Album")
    table.add_column("Duration", justify="right")
    table.add_column("ID", style="cyan")

    for track in catalog.entries:
        minutes, seconds = divmod(int(track.duration or 0), 60)
        title = track.title if not track.error else f"{track.title} [red](no metadata)[/red]"
        table.add_row(title, track.artist, track.album, f"{minutes}:{seconds:02d}", track.id)

    console.print(table)
    console.print(f"{catalog.total_files} tracks, last scan {catalog.last_scan}")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show storage statistics."""
    lib = _open_library(ctx)
    s = lib.stats()

    table = Table(show_header=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    table.add_row("Files", str(s.total_files))
    table.add_row("Music files", str(s.music_files))
    table.add_row("Covers", str(s.covers))
    table.add_row("Total size", _human_size(s.total_size))
    table.add_row("Catalog", "present" if s.catalog_exists else "missing")
    table.add_row("Last scan", s.last_scan or "-")
    console.print(table)


@cli.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--scan/--no-scan', 'rescan', default=True, help='Rebuild the catalog afterwards')
@click.pass_context
def upload(ctx, files, rescan):
    """Ingest local audio files into the storage root."""
    lib = _open_library(ctx)

    handles = [open(f, 'rb') for f in files]
    try:
        items = [
            (fh, Path(f).name, Path(f).stat().st_size, mimetypes.guess_type(f)[0])
            for fh, f in zip(handles, files)
        ]
        try:
            report = lib.ingest(items)
        except MusicShelfError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
    finally:
        for fh in handles:
            fh.close()

    for item in report.uploaded:
        console.print(f"[green]✓[/green] {item.original_name} → {item.filename}")
    for error in report.errors:
        console.print(f"[red]✗ {error.filename}: {error.error}[/red]")
    console.print(f"Uploaded {report.total_uploaded}/{report.total_uploaded + report.total_errors} files")

    if rescan and report.uploaded:
        report = lib.rescan()
        console.print(f"[green]Catalog rebuilt: {report.processed} tracks.[/green]")


@cli.command()
@click.argument('track_id')
@click.pass_context
def delete(ctx, track_id):
    """Delete a track (and its cover) by id."""
    lib = _open_library(ctx)
    try:
        filename = lib.delete(track_id)
    except TrackNotFound:
        console.print("[red]File not found[/red]")
        raise SystemExit(1)
    console.print(f"[green]Deleted {filename}[/green]")


@cli.command()
@click.option('--host', default=None, help='Interface to bind')
@click.option('--port', type=int, default=None, help='Port to bind')
@click.option('--debug', is_flag=True, help='Flask debug mode')
@click.pass_context
def serve(ctx, host, port, debug):
    """Run the HTTP API."""
    from shared.api import start_server

    config = ctx.obj['config']
    if host:
        config.host = host
    if port:
        config.port = port
    try:
        start_server(config, debug=debug)
    except MusicShelfError as e:
        console.print(f"[red]Refusing to start: {e}[/red]")
        raise SystemExit(1)


@cli.command()
@click.option('--delay', type=float, default=None, help='Seconds to wait after the last change')
@click.pass_context
def watch(ctx, delay):
    """Rescan automatically when audio files change."""
    from library_tool.watcher import LibraryWatcher

    lib = _open_library(ctx)
    watcher = LibraryWatcher(lib, debounce_delay=delay)
    watcher.start()
    console.print(f"[cyan]Watching {lib.config.storage_dir} (Ctrl+C to stop)[/cyan]")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        watcher.stop()
