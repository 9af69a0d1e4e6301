"""
Program name, default extension sets, and shared console/logger helpers.
"""

import logging
import subprocess

from rich.console import Console

PROGRAM = "photorenamer"

CONFIG_FILENAME = f"{PROGRAM}.yml"
LEDGER_FILENAME = f"{PROGRAM}.ledger"

# Default extension sets, lowercase and without the leading dot
STANDARD_EXTENSIONS = ("jpg", "jpeg", "jpe", "tif", "tiff", "png", "heic")
RAW_EXTENSIONS = (
    "dng", "rw2", "raw", "cr2", "cr3", "nef", "arw", "orf", "raf", "pef", "srw",
)
MOVIE_EXTENSIONS = ("mp4", "avi", "mpg", "mpeg", "mov", "m4v", "3gp", "mts", "mkv")

DEFAULT_EXCLUSIONS = ("exclusions", "output")

# Output filename timestamp, e.g. 20230115_143000
OUTPUT_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
MOTION_PHOTO_TAG = "mp"

# Timezone setting meaning "whatever zone the host is in"
LOCAL_TIMEZONE = "local"

HISTORY_DIRNAME = "history"

_console = None


def get_console() -> Console:
    """Return the shared rich console."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_logger() -> logging.Logger:
    """Return the program logger."""
    return logging.getLogger(PROGRAM)


def check_tool_availability(cmd: str, version_flag: str = "-ver") -> bool:
    """Check whether an external command-line tool can be run."""
    try:
        subprocess.run([cmd, version_flag], capture_output=True, check=True)
        return True
    except (FileNotFoundError, PermissionError, subprocess.CalledProcessError):
        return False


exiftool_available = check_tool_availability("exiftool")
ffprobe_available = check_tool_availability("ffprobe", "-version")
