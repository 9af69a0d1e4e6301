"""
Statistics tracking for copy runs.
"""

from pathlib import Path
from typing import Dict, List

from .classifier import FileCategory
from .models import FileError, Summary


class StatsManager:
    """Encapsulates outcome counts and per-file errors for one run."""

    def __init__(self):
        self._stats = {
            'photos': 0,
            'raws': 0,
            'videos': 0,
            'already_done': 0,
            'excluded': 0,
            'ignored': 0,
            'total_size': 0,
        }
        self._errors: List[FileError] = []

    def increment_already_done(self) -> None:
        """A file the ledger says was copied in an earlier run."""
        self._stats['already_done'] += 1

    def increment_excluded(self) -> None:
        """A file whose path matched an exclusion pattern."""
        self._stats['excluded'] += 1

    def increment_ignored(self) -> None:
        """A file whose extension is not in any configured set."""
        self._stats['ignored'] += 1

    def record_error(self, path: Path, reason: str) -> None:
        self._errors.append(FileError(path, reason))

    def record_successful_file(self, category: FileCategory, file_size: int) -> None:
        """Record a copied file, updating both the per-category count and size."""
        if category is FileCategory.MOVIE:
            self._stats['videos'] += 1
        elif category is FileCategory.RAW_IMAGE:
            self._stats['raws'] += 1
        else:
            self._stats['photos'] += 1
        self._stats['total_size'] += file_size

    def get_stats(self) -> Dict[str, int]:
        """Get a copy of current statistics."""
        return self._stats.copy()

    def get_copied(self) -> int:
        return self._stats['photos'] + self._stats['raws'] + self._stats['videos']

    def get_total_size_mb(self) -> float:
        return self._stats['total_size'] / (1024 * 1024)

    def get_errors(self) -> List[FileError]:
        return list(self._errors)

    def has_errors(self) -> bool:
        return bool(self._errors)

    # Individual stat getters for reporting
    def get_photos(self) -> int:
        return self._stats['photos']

    def get_raws(self) -> int:
        return self._stats['raws']

    def get_videos(self) -> int:
        return self._stats['videos']

    def summary(self) -> Summary:
        return Summary(
            copied=self.get_copied(),
            skipped_already_done=self._stats['already_done'],
            skipped_excluded=self._stats['excluded'],
            skipped_ignored_type=self._stats['ignored'],
            errors=self.get_errors(),
        )
