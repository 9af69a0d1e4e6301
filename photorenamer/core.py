"""
Core copy orchestration.
"""

import os
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from rich.markup import escape
from rich.progress import Progress
from rich.table import Table

from .classifier import FileCategory, FileClassifier
from .config import Config
from .constants import (HISTORY_DIRNAME, MOTION_PHOTO_TAG, OUTPUT_TIMESTAMP_FORMAT,
                        get_console, get_logger)
from .exceptions import CopyIOError, DateUnavailable, LedgerError
from .file_operations import FileOperations
from .ledger import CopyLedger
from .models import CandidateFile, ResolvedDate, Summary
from .progress import ProgressContext
from .resolver import DateResolver
from .stats import StatsManager
from .timestamps import MetadataExtractor

GroupKey = Tuple[Path, str]


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def printable(text: str) -> str:
    """Backslash-escape undecodable filename bytes so the text can be printed."""
    return text.encode("utf-8", "backslashreplace").decode("utf-8")


def is_motion_photo(filename: str) -> bool:
    """MVIMG_* files and names with a '.MP.' component hold an embedded clip."""
    lowered = filename.lower()
    return lowered.startswith("mvimg") or MOTION_PHOTO_TAG in lowered.split(".")[1:-1]


class PhotoRenamer:
    """Copies each eligible file from the input dirs into a date-named destination."""

    def __init__(self, input_dirs: Iterable[Path], output_dir: Path, raw_output_dir: Path,
                 classifier: FileClassifier, ledger: CopyLedger,
                 extractor: Optional[MetadataExtractor] = None,
                 resolver: Optional[DateResolver] = None,
                 folder_format: str = "", history_dir: Optional[Path] = None,
                 dry_run: bool = False):
        self.input_dirs = [Path(d).resolve() for d in input_dirs]
        self.output_dir = Path(output_dir).resolve()
        self.raw_output_dir = Path(raw_output_dir).resolve()
        self.history_dir = Path(history_dir).resolve() if history_dir else None
        self.classifier = classifier
        self.ledger = ledger
        self.extractor = extractor or MetadataExtractor()
        self.resolver = resolver or DateResolver()
        self.folder_format = folder_format
        self.dry_run = dry_run

        self.console = get_console()
        self.logger = get_logger()
        self.file_ops = FileOperations(dry_run=dry_run)
        self.stats_manager = StatsManager()

        self._groups: Dict[GroupKey, List[CandidateFile]] = {}
        self._extracted: Dict[Path, Optional[datetime]] = {}

    @classmethod
    def from_config(cls, config: Config, ledger: CopyLedger, dry_run: bool = False) -> "PhotoRenamer":
        return cls(
            input_dirs=config.input_dirs,
            output_dir=config.output_dir,
            raw_output_dir=config.raw_output_dir,
            classifier=config.build_classifier(),
            ledger=ledger,
            extractor=MetadataExtractor(config.timezone),
            folder_format=config.folder_format,
            history_dir=config.ledger_path.parent / HISTORY_DIRNAME,
            dry_run=dry_run,
        )

    @staticmethod
    def _group_key(path: Path) -> GroupKey:
        return (path.parent, path.stem.casefold())

    def find_source_files(self) -> List[CandidateFile]:
        """Walk the input dirs in sorted order, skipping hidden entries and our own output."""
        pruned = {self.output_dir, self.raw_output_dir}
        if self.history_dir is not None:
            pruned.add(self.history_dir)
        ledger_file = self.ledger.ledger_path.resolve()
        candidates: List[CandidateFile] = []
        seen = set()

        for input_dir in self.input_dirs:
            if not input_dir.is_dir():
                self.logger.error(f"Input directory does not exist: {input_dir}")
                self.stats_manager.record_error(input_dir, "input directory does not exist")
                continue

            for thisdir, subdirs, files in os.walk(input_dir):
                current = Path(thisdir)
                subdirs[:] = sorted(
                    d for d in subdirs
                    if not is_hidden(d) and (current / d) not in pruned
                )

                for name in sorted(files):
                    path = current / name
                    if is_hidden(name) or path == ledger_file:
                        continue
                    if path in seen:
                        continue
                    seen.add(path)

                    try:
                        stat = path.stat()
                    except OSError as e:
                        self.logger.error(f"Could not stat {path}: {e}")
                        self.stats_manager.record_error(path, f"could not read file status: {e}")
                        continue

                    candidate = CandidateFile(path=path, size=stat.st_size, mtime_ns=stat.st_mtime_ns)
                    candidates.append(candidate)
                    self._groups.setdefault(self._group_key(path), []).append(candidate)

        self.logger.info(f"Found {len(candidates)} files under {len(self.input_dirs)} input directories")
        return candidates

    def _extract(self, candidate: CandidateFile, category: FileCategory) -> Optional[datetime]:
        """Embedded timestamp for a file, read at most once per run."""
        if candidate.path not in self._extracted:
            self._extracted[candidate.path] = self.extractor.extract(candidate.path, category)
        return self._extracted[candidate.path]

    def _sibling_date(self, candidate: CandidateFile) -> Optional[datetime]:
        """The embedded date shared by same-stem files, if they agree on exactly one."""
        dates = set()
        for sibling in self._groups.get(self._group_key(candidate.path), []):
            if sibling.path == candidate.path or self.classifier.is_excluded(sibling.path):
                continue
            category = self.classifier.classify(sibling.path)
            if category is FileCategory.IGNORED:
                continue
            extracted = self._extract(sibling, category)
            if extracted is not None:
                dates.add(extracted)

        if len(dates) == 1:
            return dates.pop()
        return None

    def get_destination_path(self, candidate: CandidateFile, resolved: ResolvedDate) -> Path:
        """Build root/[folder/]YYYYMMDD_HHMMSS[_NNN][.mp].ext, never an existing path."""
        if candidate.category is FileCategory.RAW_IMAGE:
            dest_dir = self.raw_output_dir
        else:
            dest_dir = self.output_dir

        if self.folder_format:
            dest_dir = dest_dir / resolved.timestamp.strftime(self.folder_format)

        base_name = resolved.timestamp.strftime(OUTPUT_TIMESTAMP_FORMAT)
        suffix = candidate.path.suffix.lower()
        if is_motion_photo(candidate.name):
            suffix = f".{MOTION_PHOTO_TAG}{suffix}"

        return self.file_ops.unique_destination(dest_dir, base_name, suffix)

    def run(self, progress_ctx: Optional[ProgressContext] = None) -> Summary:
        """Process every file under the input dirs and return the run summary."""
        mode = "DRY RUN" if self.dry_run else "COPY"
        self.logger.info(f"Starting run ({mode}): {', '.join(map(str, self.input_dirs))}")

        files = self.find_source_files()

        if progress_ctx is None:
            with Progress(console=self.console, transient=True) as progress:
                task = progress.add_task("Copying files...", total=len(files))
                self.process_files(files, ProgressContext(progress, task))
        else:
            progress_ctx.set_total(len(files))
            self.process_files(files, progress_ctx)

        summary = self.stats_manager.summary()
        self.logger.info(
            f"Run finished: {summary.copied} copied, {summary.skipped_already_done} already copied, "
            f"{len(summary.errors)} errors"
        )
        return summary

    def process_files(self, files: List[CandidateFile], progress_ctx: ProgressContext) -> None:
        """Process files one at a time; a failure affects only that file."""
        for candidate in files:
            progress_ctx.describe(f"Processing: {printable(candidate.name)}")
            try:
                self._process_single_file(candidate)
            except LedgerError:
                raise
            except (DateUnavailable, CopyIOError) as e:
                self.logger.error(str(e))
                self.stats_manager.record_error(candidate.path, str(e))
            except Exception as e:
                self.logger.error(f"Error processing {candidate.path}: {e}")
                self.stats_manager.record_error(candidate.path, str(e))

            progress_ctx.advance()

    def _process_single_file(self, candidate: CandidateFile) -> None:
        if self.ledger.has_copied(candidate.identity):
            self.logger.debug(f"Skipping {candidate.path} - already copied")
            self.stats_manager.increment_already_done()
            return

        if self.classifier.is_excluded(candidate.path):
            self.logger.debug(f"Skipping {candidate.path} - excluded")
            self.stats_manager.increment_excluded()
            return

        category = self.classifier.classify(candidate.path)
        if category is FileCategory.IGNORED:
            self.logger.debug(f"Skipping {candidate.path} - not a configured media type")
            self.stats_manager.increment_ignored()
            return
        candidate = replace(candidate, category=category)

        extracted = self._extract(candidate, category)
        sibling = None if extracted is not None else self._sibling_date(candidate)
        resolved = self.resolver.resolve(candidate, extracted, sibling)
        self.logger.debug(f"{candidate.path}: {resolved.timestamp} from {resolved.source.value}")

        dest_path = self.get_destination_path(candidate, resolved)
        self.file_ops.copy_file_safely(candidate.path, dest_path)

        # Ledger failures are fatal and propagate out of the run
        self.ledger.mark_copied(candidate.identity, dest_path)
        self.stats_manager.record_successful_file(category, candidate.size)

    def print_summary(self, summary: Summary) -> None:
        """Print processing summary."""
        title = "Dry Run Summary" if self.dry_run else "Copy Summary"
        table = Table(title=title)
        table.add_column("Category", style="cyan")
        table.add_column("Count", style="green")

        table.add_row("Photos", str(self.stats_manager.get_photos()))
        table.add_row("RAW Photos", str(self.stats_manager.get_raws()))
        table.add_row("Videos", str(self.stats_manager.get_videos()))
        table.add_row("Copied", str(summary.copied))
        table.add_row("Already Copied", str(summary.skipped_already_done))
        table.add_row("Excluded", str(summary.skipped_excluded))
        table.add_row("Ignored Type", str(summary.skipped_ignored_type))
        table.add_row("Errors", str(len(summary.errors)))

        size_mb = self.stats_manager.get_total_size_mb()
        if size_mb > 1024:
            size_str = f"{size_mb/1024:.1f} GB"
        else:
            size_str = f"{size_mb:.1f} MB"
        table.add_row("Total Size", size_str)

        self.console.print(table)

        for error in summary.errors:
            self.console.print(
                f"[red]{escape(printable(str(error.path)))}: {escape(printable(error.reason))}[/red]",
                soft_wrap=True
            )
