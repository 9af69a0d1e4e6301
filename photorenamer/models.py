from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from .classifier import FileCategory


@dataclass(frozen=True)
class CandidateFile:
    """
    One file found under an input directory.
    """
    path: Path                       # absolute, resolved
    size: int
    mtime_ns: Optional[int]
    category: Optional[FileCategory] = None   # set once classified

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def modified(self) -> Optional[datetime]:
        """Filesystem-modified time as a naive local datetime."""
        if self.mtime_ns is None:
            return None
        return datetime.fromtimestamp(self.mtime_ns / 1_000_000_000)

    @property
    def identity(self) -> Tuple[str, int, Optional[int]]:
        """Ledger key: a file replaced in place with new content counts as new."""
        return (str(self.path), self.size, self.mtime_ns)


class DateSource(Enum):
    EMBEDDED = "embedded metadata"
    SIBLING = "sibling metadata"
    FILENAME = "filename"
    MODIFIED_TIME = "modified time"


@dataclass(frozen=True)
class ResolvedDate:
    """The timestamp chosen for naming a file, and where it came from."""
    timestamp: datetime
    source: DateSource

    @property
    def year(self) -> int:
        return self.timestamp.year

    @property
    def month(self) -> int:
        return self.timestamp.month

    @property
    def day(self) -> int:
        return self.timestamp.day

    @property
    def hour(self) -> int:
        return self.timestamp.hour

    @property
    def minute(self) -> int:
        return self.timestamp.minute

    @property
    def second(self) -> int:
        return self.timestamp.second


@dataclass(frozen=True)
class FileError:
    path: Path
    reason: str


@dataclass
class Summary:
    """Outcome counts for one run."""
    copied: int = 0
    skipped_already_done: int = 0
    skipped_excluded: int = 0
    skipped_ignored_type: int = 0
    errors: List[FileError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)
