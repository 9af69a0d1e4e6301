"""
File classification by extension and exclusion matching.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Sequence, Union

from .exceptions import ConfigError


class FileCategory(Enum):
    """Kind of media a file holds, decided from its extension alone."""

    STANDARD_IMAGE = "standard"
    RAW_IMAGE = "raw"
    MOVIE = "movie"
    IGNORED = "ignored"


def normalize_extension(ext: str) -> str:
    """Lowercase, trim, and drop any leading dot: ' .JPG ' -> 'jpg'."""
    return ext.strip().lower().lstrip(".")


class FileClassifier:
    """Maps file extensions to categories and checks exclusion patterns."""

    def __init__(self, extensions: Dict[FileCategory, Iterable[str]],
                 exclusions: Sequence[str] = ()):
        self._lookup: Dict[str, FileCategory] = {}
        for category, exts in extensions.items():
            if category is FileCategory.IGNORED:
                raise ConfigError("Extensions cannot be configured for the ignored category")
            for ext in exts:
                key = normalize_extension(ext)
                if not key:
                    continue
                existing = self._lookup.get(key)
                if existing is not None and existing is not category:
                    raise ConfigError(
                        f"Extension '{key}' is configured for both "
                        f"{existing.value} and {category.value} files"
                    )
                self._lookup[key] = category

        # Case-insensitive substring match, so fold once up front
        self.exclusions = [p.casefold() for p in exclusions if p]

    def classify(self, path: Union[str, Path]) -> FileCategory:
        """Return the category for a path based on its extension."""
        suffix = Path(path).suffix
        if not suffix:
            return FileCategory.IGNORED
        return self._lookup.get(normalize_extension(suffix), FileCategory.IGNORED)

    def is_excluded(self, path: Union[str, Path]) -> bool:
        """True if the full path (which includes the filename) contains any exclusion."""
        text = str(path).casefold()
        return any(pattern in text for pattern in self.exclusions)

    def extensions_for(self, category: FileCategory) -> frozenset:
        return frozenset(ext for ext, cat in self._lookup.items() if cat is category)
