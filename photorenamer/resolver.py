"""
Date resolution: pick one timestamp per file from an ordered fallback chain.

Priority is fixed: the file's own embedded date, a date shared by all
same-stem siblings, a date parsed from the filename, then the filesystem
modified time.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from .exceptions import DateUnavailable
from .models import CandidateFile, DateSource, ResolvedDate

MIN_FILENAME_YEAR = 1900
MAX_FILENAME_YEAR = 2099

# Tried in order; digits may not be part of a longer run of digits
FILENAME_DATE_PATTERNS = (
    # 20230115_143000, 20230115-143000, 20230115143000, PXL_20230115_143000123
    re.compile(r'(?<![0-9])([0-9]{4})([0-9]{2})([0-9]{2})[-_]?([0-9]{2})([0-9]{2})([0-9]{2})(?:[0-9]{3})?(?![0-9])'),
    # 2023-01-15 14.30.00, 2023-01-15_14-30-00, 2023-01-15T14:30:00
    re.compile(r'(?<![0-9])([0-9]{4})-([0-9]{2})-([0-9]{2})[ _T-]([0-9]{2})[.:-]([0-9]{2})[.:-]([0-9]{2})(?![0-9])'),
    # 20230115
    re.compile(r'(?<![0-9])([0-9]{4})([0-9]{2})([0-9]{2})(?![0-9])'),
    # 2023-01-15
    re.compile(r'(?<![0-9])([0-9]{4})-([0-9]{2})-([0-9]{2})(?![0-9])'),
)


def date_from_filename(filename: str) -> Optional[datetime]:
    """Parse a date embedded in a filename, ignoring the extension.

    Matches that do not form a real calendar date (month 13, Feb 30) are
    skipped and the search moves on to the next match or pattern.
    """
    stem = Path(filename).stem

    for pattern in FILENAME_DATE_PATTERNS:
        for match in pattern.finditer(stem):
            parts = [int(g) for g in match.groups()]
            if not MIN_FILENAME_YEAR <= parts[0] <= MAX_FILENAME_YEAR:
                continue
            try:
                return datetime(*parts)
            except ValueError:
                continue

    return None


class DateResolver:
    """Turns optional metadata into a definite timestamp."""

    def resolve(self, candidate: CandidateFile, extracted: Optional[datetime],
                sibling: Optional[datetime] = None) -> ResolvedDate:
        if extracted is not None:
            return ResolvedDate(extracted, DateSource.EMBEDDED)

        if sibling is not None:
            return ResolvedDate(sibling, DateSource.SIBLING)

        from_name = date_from_filename(candidate.name)
        if from_name is not None:
            return ResolvedDate(from_name, DateSource.FILENAME)

        modified = candidate.modified
        if modified is not None:
            return ResolvedDate(modified, DateSource.MODIFIED_TIME)

        raise DateUnavailable(f"No usable timestamp for {candidate.path}")
