"""
Run history: per-run debug log, error listing, and the global runs log.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from .constants import HISTORY_DIRNAME
from .models import FileError, Summary


class HistoryManager:
    """Manages the history folder kept next to the ledger."""

    def __init__(self, root_dir: Path, dry_run: bool = False):
        self.root_dir = root_dir
        self.dry_run = dry_run
        self.history_dir = self.root_dir / HISTORY_DIRNAME
        self.runs_audit_log = self.history_dir / "runs.log"
        self._file_handler: Optional[logging.Handler] = None

        self._setup_run_folder()

    def _setup_run_folder(self) -> None:
        """Pick a timestamped folder for this run, adding a counter on collision."""
        base_name = datetime.now().strftime("%Y-%m-%d_%H%M%S")
        folder_name = base_name
        folder = self.history_dir / folder_name
        counter = 1
        while folder.exists() and any(folder.iterdir()):
            folder_name = f"{base_name}-{counter:02d}"
            folder = self.history_dir / folder_name
            counter += 1

        self.run_folder = folder
        self.run_folder_name = folder_name
        self.run_log = folder / "run.log"
        self.error_log = folder / "errors.log"

        if not self.dry_run:
            folder.mkdir(parents=True, exist_ok=True)

    def setup_run_logger(self, logger: logging.Logger) -> None:
        """Configure logger to write to the run-specific log file."""
        if self.dry_run:
            return

        file_handler = logging.FileHandler(self.run_log, encoding="utf-8", errors="backslashreplace")
        file_handler.setLevel(logging.DEBUG)
        formatter = logging.Formatter(
            '%(asctime)s [%(name)s] %(levelname)s: %(message)s'
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        # Ensure logger level allows DEBUG messages to reach the file handler
        logger.setLevel(logging.DEBUG)
        self._file_handler = file_handler

    def close_run_logger(self, logger: logging.Logger) -> None:
        if self._file_handler is None:
            return
        logger.removeHandler(self._file_handler)
        self._file_handler.close()
        self._file_handler = None

    def write_error_log(self, errors: Iterable[FileError]) -> Optional[Path]:
        """List per-file errors as 'path: reason' lines. Returns the log path if written."""
        errors = list(errors)
        if self.dry_run or not errors:
            return None

        with open(self.error_log, 'w', encoding='utf-8', errors='backslashreplace') as f:
            for error in errors:
                f.write(f"{error.path}: {error.reason}\n")
        return self.error_log

    def log_run_summary(self, summary: Summary, size_mb: float) -> None:
        """Append a one-line summary of this run to runs.log."""
        if self.dry_run:
            return

        self.history_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        status = "PARTIAL" if summary.has_errors else "SUCCESS"
        record = (
            f"{timestamp} | {status} | "
            f"Copied: {summary.copied} | Size: {size_mb:.1f}MB | "
            f"Already copied: {summary.skipped_already_done} | "
            f"Excluded: {summary.skipped_excluded} | "
            f"Ignored: {summary.skipped_ignored_type} | "
            f"Errors: {len(summary.errors)} | History: {self.run_folder_name}\n"
        )

        with open(self.runs_audit_log, 'a', encoding='utf-8') as f:
            f.write(record)
