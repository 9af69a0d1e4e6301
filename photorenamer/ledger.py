"""
Persistent record of source files that have already been copied.

The ledger is a JSON Lines file with one object per copied file:

    {"path": "/photos/IMG_0001.JPG", "size": 1234, "mtime_ns": 1690000000000000000,
     "dest": "/out/20230722_101500.jpg", "copied_at": "2024-06-01T12:00:00"}

Entries are appended and fsynced one at a time, so an unclean shutdown can
at worst leave a torn final line. That line is dropped on the next load;
damage anywhere else stops the run.
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from .constants import get_logger
from .exceptions import LedgerCorrupt, LedgerWriteError

Identity = Tuple[str, int, Optional[int]]


def _identity_of(entry: Dict) -> Identity:
    return (entry["path"], entry["size"], entry["mtime_ns"])


def _valid_entry(entry) -> bool:
    return (isinstance(entry, dict)
            and isinstance(entry.get("path"), str)
            and isinstance(entry.get("size"), int)
            and (entry.get("mtime_ns") is None or isinstance(entry.get("mtime_ns"), int)))


class CopyLedger:
    """Loads the ledger once, answers lookups from memory, appends on each copy."""

    def __init__(self, ledger_path: Path, dry_run: bool = False):
        self.ledger_path = Path(ledger_path)
        self.dry_run = dry_run
        self.logger = get_logger()
        self._entries: Dict[Identity, Dict] = {}
        self._needs_newline = False
        self._load()

    def _load(self) -> None:
        """Read every entry into memory, raising LedgerCorrupt on damage."""
        if not self.ledger_path.exists():
            return

        try:
            data = self.ledger_path.read_bytes()
        except OSError as e:
            raise LedgerCorrupt(f"Could not read ledger {self.ledger_path}: {e}") from e

        lines = data.split(b"\n")
        tail = lines.pop()  # empty when the file ends with a newline
        good_length = len(data) - len(tail)

        for lineno, raw in enumerate(lines, start=1):
            if not raw.strip():
                continue
            entry = self._parse_line(raw)
            if entry is None:
                raise LedgerCorrupt(f"Ledger {self.ledger_path} is corrupt at line {lineno}")
            self._entries[_identity_of(entry)] = entry

        if tail.strip():
            entry = self._parse_line(tail)
            if entry is None:
                self._truncate_torn_tail(good_length, len(lines) + 1)
            else:
                self._entries[_identity_of(entry)] = entry
                self._needs_newline = True

        self.logger.debug(f"Loaded {len(self._entries)} ledger entries from {self.ledger_path}")

    @staticmethod
    def _parse_line(raw: bytes) -> Optional[Dict]:
        try:
            entry = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return None
        return entry if _valid_entry(entry) else None

    def _truncate_torn_tail(self, good_length: int, lineno: int) -> None:
        self.logger.warning(
            f"Dropping incomplete final ledger entry (line {lineno}) in {self.ledger_path}"
        )
        if self.dry_run:
            return
        try:
            with open(self.ledger_path, "r+b") as f:
                f.truncate(good_length)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise LedgerCorrupt(f"Could not repair ledger {self.ledger_path}: {e}") from e

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: Identity) -> bool:
        return self.has_copied(identity)

    def has_copied(self, identity: Identity) -> bool:
        return identity in self._entries

    def get(self, identity: Identity) -> Optional[Dict]:
        return self._entries.get(identity)

    def mark_copied(self, identity: Identity, dest: Optional[Path] = None) -> None:
        """Record a completed copy and flush it to disk before returning."""
        path, size, mtime_ns = identity
        entry = {
            "path": path,
            "size": size,
            "mtime_ns": mtime_ns,
            "dest": str(dest) if dest is not None else None,
            "copied_at": datetime.now().isoformat(timespec="seconds"),
        }

        if self.dry_run:
            return

        # ASCII escapes keep undecodable filename bytes (surrogates) intact
        line = json.dumps(entry) + "\n"
        if self._needs_newline:
            line = "\n" + line

        try:
            self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.ledger_path, "a", encoding="utf-8") as f:
                f.write(line)
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise LedgerWriteError(f"Could not record copy of {path} in {self.ledger_path}: {e}") from e

        self._needs_newline = False
        self._entries[identity] = entry

    def rebase(self, old_root: Union[str, Path], new_root: Union[str, Path]) -> int:
        """Move entries under old_root to new_root. Returns the number of entries changed."""
        old_prefix = str(Path(old_root).expanduser().resolve())
        new_prefix = str(Path(new_root).expanduser().resolve())

        rebased: Dict[Identity, Dict] = {}
        changed = 0
        for entry in self._entries.values():
            path = entry["path"]
            if path == old_prefix or path.startswith(old_prefix.rstrip(os.sep) + os.sep):
                relative = path[len(old_prefix):].lstrip(os.sep)
                entry = dict(entry, path=str(Path(new_prefix) / relative) if relative else new_prefix)
                changed += 1
            rebased[_identity_of(entry)] = entry

        if self.dry_run or changed == 0:
            return changed

        self._rewrite(rebased.values())
        self._entries = rebased
        self._needs_newline = False
        return changed

    def _rewrite(self, entries) -> None:
        """Atomically replace the ledger file with the given entries."""
        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.ledger_path.name}.",
                                        dir=self.ledger_path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry) + "\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.ledger_path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise LedgerWriteError(f"Could not rewrite ledger {self.ledger_path}: {e}") from e
