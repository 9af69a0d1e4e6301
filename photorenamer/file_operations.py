"""
File copy and destination naming utilities.
"""

import os
import shutil
from pathlib import Path
from typing import Optional, Set

from .constants import get_logger
from .exceptions import CopyIOError

COLLISION_SUFFIX_LIMIT = 999


class FileOperations:
    """Copies files into place without ever touching the source or overwriting."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.logger = get_logger()
        # Destinations handed out during this run, so dry runs also disambiguate
        self.reserved: Set[Path] = set()

    def ensure_directory(self, directory: Path) -> None:
        """Create directory and parents if needed, with dry-run support."""
        if not self.dry_run and not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)

    def _is_taken(self, path: Path) -> bool:
        return path in self.reserved or path.exists()

    def unique_destination(self, dest_dir: Path, base_name: str, suffix: str) -> Path:
        """Return dest_dir/base_name+suffix, or the first free base_name_NNN+suffix."""
        dest_path = dest_dir / f"{base_name}{suffix}"
        counter = 1
        while self._is_taken(dest_path):
            if counter > COLLISION_SUFFIX_LIMIT:
                raise CopyIOError(f"No free destination name for {base_name}{suffix} in {dest_dir}")
            dest_path = dest_dir / f"{base_name}_{counter:03d}{suffix}"
            counter += 1

        self.reserved.add(dest_path)
        return dest_path

    def copy_file_safely(self, source: Path, dest: Path) -> None:
        """Copy source to dest via a temporary part file, raising CopyIOError on failure.

        The final rename happens only once the bytes are fully written, so an
        interrupted copy never leaves a truncated file under the real name.
        """
        if self.dry_run:
            self.logger.info(f"Would copy {source} -> {dest}")
            return

        part_file: Optional[Path] = None
        try:
            self.ensure_directory(dest.parent)
            part_file = dest.with_name(f".{dest.name}.part")
            shutil.copy2(str(source), str(part_file))

            if part_file.stat().st_size != source.stat().st_size:
                raise OSError(f"Size mismatch after copy to {part_file}")
            if dest.exists():
                raise FileExistsError(f"Destination appeared during copy: {dest}")

            os.replace(part_file, dest)
            part_file = None

        except OSError as e:
            raise CopyIOError(f"Failed to copy {source} -> {dest}: {e}") from e
        finally:
            if part_file is not None:
                try:
                    part_file.unlink(missing_ok=True)
                except OSError as e:
                    self.logger.debug(f"Could not remove partial copy {part_file}: {e}")

        self.logger.info(f"{source} -> {dest}")
