"""
Command-line interface for photorenamer.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress

from .config import Config
from .constants import CONFIG_FILENAME, PROGRAM, get_console, get_logger
from .core import PhotoRenamer
from .exceptions import ConfigError, LedgerError
from .history import HistoryManager
from .ledger import CopyLedger
from .progress import ProgressContext


def setup_logging(verbose: bool = False) -> None:
    """Send program log records to the rich console, WARNING and up unless verbose."""
    logger = get_logger()
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    console_handler = RichHandler(console=get_console(), rich_tracebacks=True, show_path=False)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)
    logger.setLevel(logging.DEBUG)  # Allow all messages to reach handlers


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROGRAM,
        description="Copy photos and videos into date-named output folders, "
                    "never copying the same file twice",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  {PROGRAM}                      create {CONFIG_FILENAME}, or copy using it
  {PROGRAM} --dry-run            show what would be copied
  {PROGRAM} rebase /old/photos /new/photos
        """
    )

    parser.add_argument(
        "--config", "-c", type=Path, metavar="PATH",
        help=f"Configuration file (default: ./{CONFIG_FILENAME})"
    )
    parser.add_argument(
        "--ledger", "-l", type=Path, metavar="PATH",
        help="Copy ledger file (default: ledger_path from the config)"
    )
    parser.add_argument(
        "--dry-run", "-n", action="store_true",
        help="Log what would be done without copying or recording anything"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--version", "-V", action="store_true",
        help=f"Display the version number of {PROGRAM} and exit"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.add_parser(
        "rename", help="Copy and rename files as per the config file (default)"
    )
    rebase = subparsers.add_parser(
        "rebase", help="Move source paths in the copy ledger after the source library moved"
    )
    rebase.add_argument("original_root", help="Root directory recorded in the ledger")
    rebase.add_argument("new_root", help="Root directory to record instead")

    return parser


def show_processing_plan(config: Config, dry_run: bool, console: Console) -> None:
    """Display the processing plan before execution."""
    mode = "DRY RUN" if dry_run else "COPY"

    console.print("\n[bold]Processing Plan:[/bold]")
    for input_dir in config.input_dirs:
        console.print(f"  Input:           [blue]{escape(str(input_dir))}[/blue]", soft_wrap=True)
    console.print(f"  Output:          [blue]{escape(str(config.output_dir))}[/blue]", soft_wrap=True)
    console.print(f"  RAW Output:      [blue]{escape(str(config.raw_output_dir))}[/blue]", soft_wrap=True)
    console.print(f"  Ledger:          [blue]{escape(str(config.ledger_path))}[/blue]", soft_wrap=True)
    console.print(f"  Processing Mode: [cyan]{mode}[/cyan]")
    console.print()


def run_rebase(ledger: CopyLedger, original_root: str, new_root: str,
               dry_run: bool, console: Console) -> int:
    changed = ledger.rebase(original_root, new_root)
    if dry_run:
        console.print(f"Would update {changed} ledger entries from "
                      f"{escape(original_root)} to {escape(new_root)}", soft_wrap=True)
    else:
        console.print(f"Updated {changed} ledger entries from "
                      f"{escape(original_root)} to {escape(new_root)}", soft_wrap=True)
    return 0


def run_copy(config: Config, ledger: CopyLedger, dry_run: bool, console: Console) -> int:
    logger = get_logger()
    show_processing_plan(config, dry_run, console)

    history = HistoryManager(root_dir=config.ledger_path.parent, dry_run=dry_run)
    history.setup_run_logger(logger)
    renamer = PhotoRenamer.from_config(config, ledger, dry_run=dry_run)

    try:
        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Copying files...", total=None)
            summary = renamer.run(ProgressContext(progress, task))
    except LedgerError as e:
        console.print(f"\n[red]Ledger error: {escape(str(e))}[/red]", soft_wrap=True)
        console.print("[red]Run stopped to avoid copying files twice[/red]")
        return 1
    except KeyboardInterrupt:
        console.print("\n[red]Operation cancelled by user[/red]")
        return 1
    finally:
        history.close_run_logger(logger)

    renamer.print_summary(summary)
    error_log = history.write_error_log(summary.errors)
    history.log_run_summary(summary, renamer.stats_manager.get_total_size_mb())

    if summary.has_errors:
        message = f"\n[yellow]Completed with {len(summary.errors)} errors[/yellow]"
        if error_log:
            message += f" (see {escape(str(error_log))})"
        console.print(message, soft_wrap=True)
        return 1

    console.print("\n[green]✓ Copy completed successfully![/green]")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        from . import __version__
        print(f"{PROGRAM} version {__version__}")
        return 0

    setup_logging(args.verbose)
    console = get_console()

    config = Config(config_path=args.config)
    if not config.exists():
        try:
            config.write_default()
        except ConfigError as e:
            console.print(f"[red]Configuration error: {escape(str(e))}[/red]", soft_wrap=True)
            return 1
        console.print(
            f"New config file {escape(str(config.config_path))} created, "
            "please edit settings and re-run to begin copying.", soft_wrap=True
        )
        return 0

    try:
        config.load()
    except ConfigError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]", soft_wrap=True)
        return 1

    if args.ledger:
        config.data["ledger_path"] = str(args.ledger.expanduser().resolve())

    try:
        ledger = CopyLedger(config.ledger_path, dry_run=args.dry_run)
    except LedgerError as e:
        console.print(f"[red]Ledger error: {escape(str(e))}[/red]", soft_wrap=True)
        return 1

    try:
        if args.command == "rebase":
            return run_rebase(ledger, args.original_root, args.new_root, args.dry_run, console)
        return run_copy(config, ledger, args.dry_run, console)

    except LedgerError as e:
        console.print(f"[red]Ledger error: {escape(str(e))}[/red]", soft_wrap=True)
        return 1
    except KeyboardInterrupt:
        console.print("\n[red]Operation cancelled by user[/red]")
        return 1
    except Exception as e:
        console.print(f"\n[red]Fatal error: {escape(str(e))}[/red]", soft_wrap=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
