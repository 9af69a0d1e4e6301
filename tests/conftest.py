"""
pytest configuration and fixtures for photorenamer tests.
"""

import io
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pytest
import yaml
from PIL import Image

from photorenamer.classifier import FileCategory, FileClassifier
from photorenamer.constants import MOVIE_EXTENSIONS, RAW_EXTENSIONS, STANDARD_EXTENSIONS
from photorenamer.core import PhotoRenamer
from photorenamer.ledger import CopyLedger

# Test exclusion pattern; must not appear in pytest's tmp_path names
EXCLUDE_MARKER = "skipme"

TAG_DATETIME = 0x0132


@dataclass
class CliResult:
    """Result from running CLI command."""
    exit_code: int
    output: str
    error: str


@pytest.fixture(autouse=True)
def no_external_tools(monkeypatch):
    """Keep exiftool/ffprobe out of tests unless a test mocks them in."""
    monkeypatch.setattr("photorenamer.timestamps.exiftool_available", False)
    monkeypatch.setattr("photorenamer.timestamps.ffprobe_available", False)


def set_mtime(path: Path, when: datetime) -> None:
    ts = when.timestamp()
    os.utime(path, (ts, ts))


def write_jpeg(path: Path, exif_date: Optional[str] = None) -> Path:
    """Write a tiny real JPEG, optionally with an EXIF DateTime tag."""
    path.parent.mkdir(parents=True, exist_ok=True)
    img = Image.new("RGB", (8, 8), color=(200, 120, 40))
    if exif_date:
        exif = Image.Exif()
        exif[TAG_DATETIME] = exif_date
        img.save(path, "JPEG", exif=exif)
    else:
        img.save(path, "JPEG")
    return path


@pytest.fixture
def create_test_files(tmp_path):
    """Helper to create test files with specific properties."""

    def create_files(file_specs: List[dict]) -> Path:
        """Create test files based on specifications.

        Args:
            file_specs: List of dicts with keys:
                - name: filename, may include subdirectories
                - content: file content (optional)
                - exif_date: write a real JPEG with this EXIF date instead (optional)
                - mtime: modification time as datetime (optional)

        Returns:
            Path to directory containing created files
        """
        test_dir = tmp_path / "source"
        test_dir.mkdir(exist_ok=True)

        for spec in file_specs:
            file_path = test_dir / spec['name']
            file_path.parent.mkdir(parents=True, exist_ok=True)

            if 'exif_date' in spec:
                write_jpeg(file_path, spec['exif_date'])
            else:
                content = spec.get('content', f"content of {spec['name']}".encode())
                if isinstance(content, str):
                    file_path.write_text(content)
                else:
                    file_path.write_bytes(content)

            if 'mtime' in spec:
                set_mtime(file_path, spec['mtime'])

        return test_dir

    return create_files


@pytest.fixture
def classifier():
    return FileClassifier({
        FileCategory.STANDARD_IMAGE: STANDARD_EXTENSIONS,
        FileCategory.RAW_IMAGE: RAW_EXTENSIONS,
        FileCategory.MOVIE: MOVIE_EXTENSIONS,
    }, [EXCLUDE_MARKER])


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "state" / "copies.ledger"


@pytest.fixture
def dest_dirs(tmp_path):
    return tmp_path / "dest" / "photos", tmp_path / "dest" / "raw"


@pytest.fixture
def make_renamer(tmp_path, classifier, ledger_path, dest_dirs):
    """Build a PhotoRenamer over tmp_path/source with a freshly loaded ledger."""

    def build(dry_run: bool = False, folder_format: str = "", **kwargs) -> PhotoRenamer:
        output_dir, raw_output_dir = dest_dirs
        ledger = CopyLedger(ledger_path, dry_run=dry_run)
        return PhotoRenamer(
            input_dirs=kwargs.pop("input_dirs", [tmp_path / "source"]),
            output_dir=output_dir,
            raw_output_dir=raw_output_dir,
            classifier=kwargs.pop("classifier", classifier),
            ledger=ledger,
            folder_format=folder_format,
            dry_run=dry_run,
            **kwargs,
        )

    return build


@pytest.fixture
def write_config(tmp_path):
    """Write a YAML config under tmp_path and return its path."""

    def write(**overrides) -> Path:
        data = {
            "input_dirs": ["source"],
            "output_dir": "dest/photos",
            "raw_output_dir": "dest/raw",
            "exclusions": [EXCLUDE_MARKER],
            "ledger_path": "state/copies.ledger",
        }
        data.update(overrides)
        config_path = tmp_path / "renamer.yml"
        config_path.write_text(yaml.safe_dump(data))
        return config_path

    return write


@pytest.fixture
def cli_runner():
    """Run the CLI in-process, capturing stdout and stderr."""

    def run_cli(*args) -> CliResult:
        from photorenamer.cli import main

        old_stdout = sys.stdout
        old_stderr = sys.stderr
        stdout = io.StringIO()
        stderr = io.StringIO()

        try:
            sys.stdout = stdout
            sys.stderr = stderr
            exit_code = main([str(a) for a in args])
            return CliResult(
                exit_code=exit_code,
                output=stdout.getvalue(),
                error=stderr.getvalue()
            )
        except SystemExit as e:
            # argparse exits on --help and usage errors
            return CliResult(
                exit_code=e.code if e.code is not None else 0,
                output=stdout.getvalue(),
                error=stderr.getvalue()
            )
        finally:
            sys.stdout = old_stdout
            sys.stderr = old_stderr

    return run_cli


@pytest.fixture
def make_jpeg():
    """Factory for small real JPEGs, optionally carrying an EXIF date."""
    return write_jpeg
