"""
Exception hierarchy for photorenamer.

Only configuration and ledger failures stop a run. Date and copy failures
are raised per file and collected into the run summary by the renamer.
"""


class RenamerError(Exception):
    """Base exception for all photorenamer errors."""
    pass


class ConfigError(RenamerError):
    """Raised when the configuration file is missing values or invalid."""
    pass


class LedgerError(RenamerError):
    """Base for copy ledger failures. These always stop the run."""
    pass


class LedgerCorrupt(LedgerError):
    """Raised when the copy ledger cannot be loaded safely."""
    pass


class LedgerWriteError(LedgerError):
    """Raised when a ledger entry cannot be written durably."""
    pass


class DateUnavailable(RenamerError):
    """Raised when no timestamp at all can be determined for a file."""
    pass


class CopyIOError(RenamerError):
    """Raised when copying a file to its destination fails."""
    pass
