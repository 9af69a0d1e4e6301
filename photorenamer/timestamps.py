"""Embedded capture-date extraction for images, RAW files, and movies.

Every reader here returns ``None`` when a file has no readable timestamp.
Missing or malformed metadata is a normal outcome, so nothing in this module
raises for it.
"""

import json
import re
import subprocess
import zoneinfo
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional

from hachoir.core import config as hachoir_config
from hachoir.metadata import extractMetadata
from hachoir.parser import createParser
from PIL import Image

from .classifier import FileCategory
from .constants import LOCAL_TIMEZONE, exiftool_available, ffprobe_available, get_logger

# Keep hachoir parser warnings off the console
hachoir_config.quiet = True

logger = get_logger()

# EXIF tag ids
EXIF_IFD_POINTER = 0x8769
TAG_DATETIME = 0x0132
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME_DIGITIZED = 0x9004
TAG_OFFSET_TIME = 0x9010
TAG_OFFSET_TIME_ORIGINAL = 0x9011
TAG_OFFSET_TIME_DIGITIZED = 0x9012

# Container clocks that were never set decode to their epoch
EARLIEST_PLAUSIBLE_DATE = datetime(1970, 1, 2)

_TIMESTAMP_PATTERN = re.compile(
    r'(\d{4}[-:]\d{2}[-:]\d{2})[T ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?\s*(Z|[+-]\d{2}:?\d{2})?'
)


def to_naive_in_zone(aware_dt: datetime, tz_name: str) -> datetime:
    """Convert an aware datetime to naive wall time in tz_name ("local" is the host zone)."""
    if tz_name == LOCAL_TIMEZONE:
        return aware_dt.astimezone().replace(tzinfo=None)
    return aware_dt.astimezone(zoneinfo.ZoneInfo(tz_name)).replace(tzinfo=None)


def parse_iso8601_datetime(timestamp_str: str, tz_name: str = "UTC") -> Optional[datetime]:
    """Parse ISO 8601 or EXIF date-time string.

    Handles both ISO 8601 (2025-05-06T19:41:34-0400) and raw EXIF
    (2025:05:06 19:41:34.745-04:00) date formats. A timestamp carrying an
    explicit offset is converted to ``tz_name``; one without an offset is
    returned unchanged, as camera clocks record local wall time.
    """
    match = _TIMESTAMP_PATTERN.match(timestamp_str.strip())
    if not match:
        return None

    # Normalize colon-separated dates (EXIF format) to dash-separated
    date_part = match.group(1).replace(':', '-')
    time_part = match.group(2)
    fractional_part = match.group(3)
    timezone_part = match.group(4)

    datetime_str = f"{date_part} {time_part}"
    try:
        if fractional_part:
            milliseconds = fractional_part.ljust(3, '0')[:3]
            base_dt = datetime.strptime(f"{datetime_str}.{milliseconds}", "%Y-%m-%d %H:%M:%S.%f")
        else:
            base_dt = datetime.strptime(datetime_str, "%Y-%m-%d %H:%M:%S")
    except ValueError:
        # Zeroed EXIF dates (0000:00:00 00:00:00) land here too
        return None

    if not timezone_part:
        return base_dt

    try:
        if timezone_part == 'Z':
            aware_dt = base_dt.replace(tzinfo=timezone.utc)
        else:
            # Parse offset like "-0400" or "+05:00"
            tz_str = timezone_part
            if ':' not in tz_str:
                tz_str = f"{tz_str[:-2]}:{tz_str[-2:]}"
            sign = 1 if tz_str[0] == '+' else -1
            offset_minutes = sign * (int(tz_str[1:3]) * 60 + int(tz_str[4:6]))
            aware_dt = base_dt.replace(tzinfo=timezone(timedelta(minutes=offset_minutes)))

        return to_naive_in_zone(aware_dt, tz_name)
    except (ValueError, OverflowError):
        # Offsets of a day or more, or conversions past year 1 or 9999
        return None


def canonical_EXIF_date(dates: Dict[str, str], tz_name: str = "UTC") -> Optional[datetime]:
    """Pick the first parseable creation date from exiftool output, by priority."""
    for date_field in ['SubSecCreateDate',
                       'CreationDate',
                       'CreateDate',
                       'CreationTime',
                       'CreateTime',
                       'ProfileDateTime',
                       'DateTimeOriginal']:
        value = dates.get(date_field)
        if not isinstance(value, str):
            continue

        parsed = parse_iso8601_datetime(value, tz_name)
        if parsed:
            return parsed

    return None


def _exif_text(value) -> Optional[str]:
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    value = value.strip("\x00 ")
    return value or None


def read_pillow_exif_date(image_path: Path, tz_name: str = "UTC") -> Optional[datetime]:
    """Read DateTimeOriginal, DateTimeDigitized, or DateTime with Pillow."""
    try:
        with Image.open(image_path) as img:
            exif = img.getexif()
            if not exif:
                return None
            exif_ifd = exif.get_ifd(EXIF_IFD_POINTER)

            candidates = (
                (exif_ifd, TAG_DATETIME_ORIGINAL, TAG_OFFSET_TIME_ORIGINAL),
                (exif_ifd, TAG_DATETIME_DIGITIZED, TAG_OFFSET_TIME_DIGITIZED),
                (exif, TAG_DATETIME, TAG_OFFSET_TIME),
            )
            for ifd, date_tag, offset_tag in candidates:
                date_str = _exif_text(ifd.get(date_tag))
                if not date_str:
                    continue
                offset = _exif_text(exif_ifd.get(offset_tag))
                if offset:
                    date_str = f"{date_str}{offset}"
                parsed = parse_iso8601_datetime(date_str, tz_name)
                if parsed:
                    return parsed
    except Exception as e:
        logger.debug(f"Pillow could not read EXIF from {image_path}: {e}")

    return None


def read_exiftool_date(image_path: Path, tz_name: str = "UTC") -> Optional[datetime]:
    """Read creation timestamps with exiftool, if it is installed."""
    if not exiftool_available:
        return None

    try:
        result = subprocess.run([
            "exiftool",
            "-q",
            "-json",
            "-d", "%Y-%m-%dT%H:%M:%S%3f%z",  # ISO 8601 compliant date-string
            "-CreateDate",
            "-CreationDate",
            "-CreationTime",
            "-SubSecCreateDate",
            "-ProfileDateTime",
            "-DateTimeOriginal",
            str(image_path)],
            capture_output=True, text=True, check=True
        )
        exif_data = json.loads(result.stdout)[0]
        return canonical_EXIF_date(exif_data, tz_name)

    except subprocess.CalledProcessError as e:
        logger.debug(f"exiftool failed for {image_path}: {e}")
    except (json.JSONDecodeError, IndexError, KeyError, TypeError, ValueError, OverflowError) as e:
        logger.debug(f"Failed to parse exiftool output for {image_path}: {e}")
    except OSError as e:
        logger.debug(f"Could not run exiftool for {image_path}: {e}")

    return None


def get_image_creation_date(image_path: Path, tz_name: str = "UTC") -> Optional[datetime]:
    """Get the embedded capture date of a standard or RAW image."""
    return (read_pillow_exif_date(image_path, tz_name)
            or read_exiftool_date(image_path, tz_name))


def read_ffprobe_date(file_path: Path, tz_name: str = "UTC") -> Optional[datetime]:
    """Extract creation date from video metadata with Apple QuickTime priority."""
    if not ffprobe_available:
        return None

    try:
        result = subprocess.run([
            "ffprobe", "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            str(file_path)
        ], capture_output=True, text=True, check=True)

        data = json.loads(result.stdout)
        tags = data.get("format", {}).get("tags", {})

        if not tags:
            logger.debug(f"No format metadata tags found for {file_path}")
            return None

        # Parse creation date timestamps, in priority order
        for date_key in ["com.apple.quicktime.creationdate", "creation_time"]:
            date_str = tags.get(date_key)
            if date_str:
                creation_date = parse_iso8601_datetime(date_str, tz_name)
                if creation_date and creation_date >= EARLIEST_PLAUSIBLE_DATE:
                    logger.debug(f"Video creation date: {file_path}[{date_key}] = {creation_date}")
                    return creation_date

        logger.debug(f"No creation date tag found for {file_path}")
        return None

    except subprocess.CalledProcessError as e:
        logger.debug(f"ffprobe failed for {file_path}: {e}")
    except json.JSONDecodeError as e:
        logger.debug(f"Failed to parse ffprobe JSON output for {file_path}: {e}")
    except Exception as e:
        logger.debug(f"Error parsing video creation date for {file_path}: {e}")

    return None


def read_hachoir_date(file_path: Path, tz_name: str = "UTC") -> Optional[datetime]:
    """Read the container creation date with hachoir. Container clocks are UTC."""
    try:
        parser = createParser(str(file_path))
    except Exception as e:
        logger.debug(f"Failed to create parser for {file_path}: {e}")
        return None

    if not parser:
        logger.debug(f"Unable to parse file for created date: {file_path}")
        return None

    try:
        with parser:
            metadata = extractMetadata(parser)
            if not metadata or not metadata.has("creation_date"):
                return None
            created = metadata.get("creation_date")
    except Exception as e:
        logger.debug(f"Metadata extraction error for {file_path}: {e}")
        return None

    if not isinstance(created, datetime) or created.replace(tzinfo=None) < EARLIEST_PLAUSIBLE_DATE:
        return None

    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    try:
        return to_naive_in_zone(created, tz_name)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Could not convert creation date of {file_path}: {e}")
        return None


def get_video_creation_date(file_path: Path, tz_name: str = "UTC") -> Optional[datetime]:
    """Get the embedded creation time of a movie container."""
    return (read_ffprobe_date(file_path, tz_name)
            or read_hachoir_date(file_path, tz_name))


class MetadataExtractor:
    """Reads an embedded timestamp for a file according to its category."""

    def __init__(self, tz_name: str = "UTC"):
        self.tz_name = tz_name

    def extract(self, path: Path, category: FileCategory) -> Optional[datetime]:
        if category in (FileCategory.STANDARD_IMAGE, FileCategory.RAW_IMAGE):
            return get_image_creation_date(path, self.tz_name)
        if category is FileCategory.MOVIE:
            return get_video_creation_date(path, self.tz_name)
        return None
