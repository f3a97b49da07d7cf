"""Watch mode: rebuild the index when HDL sources change."""

from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from .config import SKIP_DIRS, SUPPORTED_EXTENSIONS
from .config_manager import load_scan_options
from .preprocessor import parse_define_args, read_filelist_defines
from .session import IndexSession, RebuildScheduler

console = Console()


class SourceChangeHandler:
    """Filter file system events and forward relevant ones to a scheduler."""

    def __init__(self, scheduler: RebuildScheduler, root: Path):
        self.scheduler = scheduler
        self.root = root
        self.events_seen = 0

    def is_relevant(self, src_path: str) -> bool:
        file_path = Path(src_path)
        if file_path.suffix.lower() not in SUPPORTED_EXTENSIONS:
            return False
        try:
            parts = file_path.resolve().relative_to(self.root).parts
        except ValueError:
            parts = file_path.parts
        return not any(part in SKIP_DIRS for part in parts[:-1])

    def dispatch(self, event):
        """Route events to the scheduler."""
        if event.is_directory:
            return
        paths = [getattr(event, "src_path", ""), getattr(event, "dest_path", "")]
        if any(p and self.is_relevant(p) for p in paths):
            self.events_seen += 1
            self.scheduler.request()


def watch(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Root of the HDL source tree."),
    interval: float = typer.Option(0.3, "--interval", "-i", min=0.0, help="Quiet period before rebuilding (seconds)."),
    define: Optional[List[str]] = typer.Option(None, "--define", "-D", help="Predefine a preprocessor symbol."),
    filelist: Optional[Path] = typer.Option(None, "--filelist", "-f", exists=True, dir_okay=False),
):
    """👀 Watch mode: rebuild the module index on source changes.

    Bursts of changes are coalesced into a single rebuild.

    Example:
      vt watch ./rtl
      vt watch ./rtl --interval 1 -D SIMULATION
    """
    try:
        from watchdog.events import FileSystemEventHandler
        from watchdog.observers import Observer
    except ImportError:
        console.print("[red]✗[/red] watchdog is not installed.")
        console.print("[dim]Install with: pip install watchdog[/dim]")
        raise typer.Exit(1)

    watch_path = path.resolve()
    try:
        options = load_scan_options(watch_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    defines = parse_define_args(define or [])
    if filelist is not None:
        defines |= read_filelist_defines(filelist.read_text(encoding="utf-8", errors="replace"))

    session = IndexSession(watch_path, options, defines)

    def rebuild():
        result = session.rescan()
        forest, stats = session.hierarchy()
        console.print(
            f"  [green]✓[/green] Rebuild #{session.generation}: "
            f"{result.index.module_count} module(s), {len(forest)} root(s), "
            f"{stats.cycle_hits} cycle(s)"
        )

    scheduler = RebuildScheduler(rebuild, delay=interval)
    handler = SourceChangeHandler(scheduler, watch_path)

    class WatchdogAdapter(FileSystemEventHandler):
        def on_modified(self, event):
            handler.dispatch(event)

        def on_created(self, event):
            handler.dispatch(event)

        def on_deleted(self, event):
            handler.dispatch(event)

        def on_moved(self, event):
            handler.dispatch(event)

    console.print(f"\n[bold green]👀 Watching[/bold green] [cyan]{watch_path}[/cyan] for changes...")
    console.print(f"[dim]  Quiet period: {interval}s")
    console.print("  Press Ctrl+C to stop[/dim]\n")

    rebuild()

    observer = Observer()
    observer.schedule(WatchdogAdapter(), str(watch_path), recursive=True)
    observer.start()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        scheduler.cancel()
        observer.stop()
        console.print(f"\n[yellow]Stopped watching.[/yellow] Rebuilt {session.generation} time(s).")

    observer.join()
