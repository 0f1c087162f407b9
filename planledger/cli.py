#!/usr/bin/env python3
"""
CLI for recording and projecting filesystem events.

Usage:
    planledger scan /srv/plans
    planledger watch /srv/plans --timeout 3600
    planledger reconcile /srv/plans --skip-scan
    planledger monitor --last 20
"""

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .config import ENV_CONFIG, ENV_DB, LedgerConfig
from .eventlog.monitor import EventMonitor, format_event
from .eventlog.store import EventLog
from .pipeline import Pipeline
from .reconciler.exceptions import SnapshotNotFoundError
from .watcher.exceptions import RootNotFoundError

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("planledger.cli")

console = Console()


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self, on_exit: Optional[Callable[[], None]] = None):
        self.should_exit = False
        self._on_exit = on_exit
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True
        if self._on_exit is not None:
            self._on_exit()


def load_config(args) -> LedgerConfig:
    """Environment (and .env) settings, overridden by --db and --config."""
    env = dict(os.environ)
    if getattr(args, "config", None):
        env[ENV_CONFIG] = args.config
    if getattr(args, "db", None):
        env[ENV_DB] = args.db
    return LedgerConfig.from_env(env)


def format_size(size: float) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{size:.1f} TB"


def cmd_scan(args):
    """Record every item under a root as an initial event."""
    config = load_config(args)

    with Pipeline(config) as pipeline:
        try:
            if args.no_progress:
                report = pipeline.scan(args.path)
            else:
                with Progress(
                    SpinnerColumn(),
                    TextColumn("[progress.description]{task.description}"),
                    BarColumn(),
                    MofNCompleteColumn(),
                    TimeElapsedColumn(),
                    console=console,
                ) as progress:
                    task = progress.add_task("Scanning", total=None)

                    def on_progress(current: int, total: int, path: str) -> None:
                        progress.update(task, completed=current, total=total)

                    report = pipeline.scan(args.path, progress=on_progress)
        except RootNotFoundError as e:
            logger.error(str(e))
            sys.exit(1)

    stats = report.stats
    table = Table(title="Scan Summary")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Directories", str(stats.directories))
    table.add_row("Files", str(stats.files))
    table.add_row("Total size", format_size(stats.total_size))
    table.add_row("Events created", str(report.events_created))
    table.add_row("Errors", str(stats.errors))
    table.add_row("Duration", f"{report.duration:.2f}s")
    table.add_row("Throughput", f"{report.throughput:.1f} items/s")
    console.print(table)

    if report.last_events:
        console.print("\n[bold]Last events[/bold]")
        for stored in report.last_events:
            console.print(format_event(stored))


def cmd_watch(args):
    """Watch a root and record changes as they happen."""
    config = load_config(args)

    with Pipeline(config, async_dispatch=config.async_listeners) as pipeline:
        try:
            watcher = pipeline.watcher(args.path)
        except RootNotFoundError as e:
            logger.error(str(e))
            sys.exit(1)

        GracefulShutdown(on_exit=watcher.stop)

        console.print(f"[blue]Watching {watcher.root}[/blue]")
        console.print(f"Database: {config.db_path}")
        console.print("Press Ctrl+C to stop")

        stats = watcher.start(timeout=args.timeout or None)
        pipeline.bus.drain()

    console.print(
        f"[green]Watcher stopped:[/green] {stats.received} notifications, "
        f"{stats.emitted} events, {stats.suppressed} unchanged, {stats.errors} errors"
    )


def cmd_reconcile(args):
    """Compare the filesystem with the event log and record the differences."""
    config = load_config(args)

    with Pipeline(config) as pipeline:
        try:
            result = pipeline.reconcile(args.path, skip_scan=args.skip_scan, dry_run=args.dry_run)
        except (RootNotFoundError, SnapshotNotFoundError) as e:
            logger.error(str(e))
            sys.exit(1)

    if args.dry_run and result.discrepancies:
        details = Table(title="Discrepancies")
        details.add_column("Path", style="cyan")
        details.add_column("Type", style="dim")
        details.add_column("Reason", style="yellow")
        for discrepancy in result.discrepancies:
            details.add_row(
                discrepancy.path,
                "directory" if discrepancy.is_directory else "file",
                discrepancy.reason.value,
            )
        console.print(details)

    throughput = result.scanned / result.duration if result.duration > 0 else 0.0
    table = Table(title="Reconciliation Summary" + (" (dry run)" if args.dry_run else ""))
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Items scanned", str(result.scanned))
    table.add_row("Discrepancies", str(len(result.discrepancies)))
    for reason, count in result.counts_by_reason().items():
        if count:
            table.add_row(f"  {reason}", str(count))
    table.add_row("Events created", str(result.events_created))
    table.add_row("Failures", str(result.failures))
    table.add_row("Duration", f"{result.duration:.2f}s")
    table.add_row("Throughput", f"{throughput:.1f} items/s")
    console.print(table)

    if result.failures:
        console.print(f"[red]{result.failures} reconciliation event(s) could not be recorded[/red]")
        sys.exit(1)


def cmd_monitor(args):
    """Show recent events, then follow the event log."""
    config = load_config(args)
    stop = threading.Event()
    GracefulShutdown(on_exit=stop.set)

    with EventLog(config.db_path) as log:
        EventMonitor(log, console=console, delay=args.delay, last=args.last).run(stop)


def cmd_rebuild(args):
    """Clear the projections and replay the whole event log."""
    config = load_config(args)

    with Pipeline(config) as pipeline:
        applied = pipeline.rebuild()
        counts = pipeline.store.counts()

    console.print(f"[green]Replayed {applied} event(s)[/green]")
    for table, count in counts.items():
        console.print(f"  {table}: {count}")


def cmd_stats(args):
    """Show event log and projection statistics."""
    config = load_config(args)

    with Pipeline(config) as pipeline:
        stats = pipeline.stats()

    table = Table(title=f"planledger: {Path(config.db_path)}")
    table.add_column("Item", style="cyan", no_wrap=True)
    table.add_column("Count", style="white", justify="right")
    table.add_row("Events", str(stats["events"]))
    for event_class, count in sorted(stats["events_by_class"].items()):
        table.add_row(f"  {event_class}", str(count))
    table.add_row("Checkpoint", f"{stats['checkpoint']} / {stats['last_event_id']}")
    for name, count in stats["projections"].items():
        table.add_row(f"{name} rows", str(count))
    console.print(table)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="planledger",
        description="Event-sourced tracker for engineering document trees",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Record the current state of a tree
  planledger scan /srv/plans

  # Follow changes for an hour
  planledger watch /srv/plans --timeout 3600

  # Record whatever changed while nobody was watching
  planledger reconcile /srv/plans

  # Tail the event log
  planledger monitor --last 20
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--db", default=None, help="Database path (or PLANLEDGER_DB, default: planledger.db)")
    parser.add_argument("--config", default=None, help="JSON config file (or PLANLEDGER_CONFIG)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="Record every item under a root")
    scan_parser.add_argument("path", help="Root directory to scan")
    scan_parser.add_argument("--no-progress", action="store_true", help="Do not show a progress bar")
    scan_parser.set_defaults(func=cmd_scan)

    # Watch command
    watch_parser = subparsers.add_parser("watch", help="Record changes under a root as they happen")
    watch_parser.add_argument("path", help="Root directory to watch")
    watch_parser.add_argument("--timeout", type=float, default=0, help="Stop after this many seconds (0: never)")
    watch_parser.set_defaults(func=cmd_watch)

    # Reconcile command
    reconcile_parser = subparsers.add_parser("reconcile", help="Record differences between disk and the log")
    reconcile_parser.add_argument("path", help="Root directory to reconcile")
    reconcile_parser.add_argument("--skip-scan", action="store_true", help="Use the last saved snapshot instead of crawling")
    reconcile_parser.add_argument("--dry-run", action="store_true", help="List discrepancies without recording events")
    reconcile_parser.set_defaults(func=cmd_reconcile)

    # Monitor command
    monitor_parser = subparsers.add_parser("monitor", help="Follow the event log")
    monitor_parser.add_argument("--delay", type=float, default=1.0, help="Seconds between polls (min 0.5)")
    monitor_parser.add_argument("--last", type=int, default=10, help="Number of past events to show")
    monitor_parser.set_defaults(func=cmd_monitor)

    # Rebuild command
    rebuild_parser = subparsers.add_parser("rebuild", help="Replay the event log into fresh projections")
    rebuild_parser.set_defaults(func=cmd_rebuild)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="Show event and projection counts")
    stats_parser.set_defaults(func=cmd_stats)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        args.func(args)
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=args.verbose)
        sys.exit(1)


if __name__ == "__main__":
    main()
