"""
photorenamer - Copy photos and videos into date-named output folders.

Each file is named after its capture time, read from embedded metadata,
a sibling file, the filename, or the modified time, in that order. A copy
ledger ensures that a file copied once is never copied again.
"""

__version__ = "1.0.0"


# Public API
from .classifier import FileCategory, FileClassifier
from .cli import main
from .config import Config
from .core import PhotoRenamer
from .ledger import CopyLedger
from .resolver import DateResolver
from .timestamps import MetadataExtractor

__all__ = [ "main", "Config", "CopyLedger", "DateResolver", "FileCategory",
            "FileClassifier", "MetadataExtractor", "PhotoRenamer" ]
