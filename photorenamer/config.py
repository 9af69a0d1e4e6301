"""
Configuration management for photorenamer.
"""

import zoneinfo
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .classifier import FileCategory, FileClassifier
from .constants import (CONFIG_FILENAME, DEFAULT_EXCLUSIONS, LEDGER_FILENAME,
                        LOCAL_TIMEZONE, MOVIE_EXTENSIONS, RAW_EXTENSIONS,
                        STANDARD_EXTENSIONS, get_logger)
from .exceptions import ConfigError

EXTENSION_KEYS = {
    "standard": FileCategory.STANDARD_IMAGE,
    "raw": FileCategory.RAW_IMAGE,
    "movie": FileCategory.MOVIE,
}


def default_config_data() -> Dict:
    """Settings written to a new config file."""
    return {
        "input_dirs": ["."],
        "output_dir": "output",
        "raw_output_dir": "output_raw",
        "exclusions": list(DEFAULT_EXCLUSIONS),
        "extensions": {
            "standard": list(STANDARD_EXTENSIONS),
            "raw": list(RAW_EXTENSIONS),
            "movie": list(MOVIE_EXTENSIONS),
        },
        "ledger_path": LEDGER_FILENAME,
        "timezone": LOCAL_TIMEZONE,
        "folder_format": "",
    }


class Config:
    """Loads and validates the YAML configuration file."""

    def __init__(self, config_path: Optional[Path] = None):
        # Default config location: ./<PROGRAM>.yml
        self.config_path = Path(config_path) if config_path else Path.cwd() / CONFIG_FILENAME
        self.base_dir = self.config_path.resolve().parent
        self.data: Dict = {}

    def exists(self) -> bool:
        return self.config_path.exists()

    def write_default(self) -> None:
        """Write a config file populated with defaults."""
        self.data = default_config_data()
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w') as f:
                yaml.safe_dump(self.data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigError(f"Could not write config {self.config_path}: {e}") from e
        get_logger().info(f"Wrote default config to {self.config_path}")

    def load(self) -> "Config":
        """Load the YAML file, fill in defaults for missing keys, and validate."""
        try:
            with open(self.config_path, 'r') as f:
                loaded = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Could not read config {self.config_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config {self.config_path} must be a mapping of settings")

        data = default_config_data()
        data.update(loaded)
        self.data = data
        self.validate()
        return self

    def validate(self) -> None:
        """Check types and values, raising ConfigError on the first problem."""
        input_dirs = self.data.get("input_dirs")
        if not isinstance(input_dirs, list) or not input_dirs:
            raise ConfigError("'input_dirs' must be a non-empty list of directories")
        if not all(isinstance(d, str) and d for d in input_dirs):
            raise ConfigError("'input_dirs' entries must be non-empty strings")

        for key in ("output_dir", "raw_output_dir", "ledger_path"):
            if not isinstance(self.data.get(key), str) or not self.data[key]:
                raise ConfigError(f"'{key}' must be a non-empty path string")

        exclusions = self.data.get("exclusions")
        if exclusions is None:
            self.data["exclusions"] = []
        elif not isinstance(exclusions, list) or not all(isinstance(e, str) for e in exclusions):
            raise ConfigError("'exclusions' must be a list of strings")

        extensions = self.data.get("extensions")
        if not isinstance(extensions, dict):
            raise ConfigError("'extensions' must map standard/raw/movie to extension lists")
        unknown = set(extensions) - set(EXTENSION_KEYS)
        if unknown:
            raise ConfigError(f"Unknown extension groups: {', '.join(sorted(map(str, unknown)))}")
        for key, exts in extensions.items():
            if not isinstance(exts, list) or not all(isinstance(e, str) for e in exts):
                raise ConfigError(f"'extensions.{key}' must be a list of strings")

        timezone = self.data.get("timezone") or LOCAL_TIMEZONE
        if timezone != LOCAL_TIMEZONE:
            try:
                zoneinfo.ZoneInfo(timezone)
            except (zoneinfo.ZoneInfoNotFoundError, ValueError, TypeError) as e:
                raise ConfigError(f"Unknown timezone: {timezone!r}") from e

        if not isinstance(self.data.get("folder_format") or "", str):
            raise ConfigError("'folder_format' must be a strftime pattern string")

        # Surfaces overlapping extension sets as ConfigError
        self.build_classifier()

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = self.base_dir / path
        return path.resolve()

    @property
    def input_dirs(self) -> List[Path]:
        return [self._resolve(d) for d in self.data["input_dirs"]]

    @property
    def output_dir(self) -> Path:
        return self._resolve(self.data["output_dir"])

    @property
    def raw_output_dir(self) -> Path:
        return self._resolve(self.data["raw_output_dir"])

    @property
    def ledger_path(self) -> Path:
        return self._resolve(self.data["ledger_path"])

    @property
    def exclusions(self) -> List[str]:
        return list(self.data.get("exclusions") or [])

    @property
    def timezone(self) -> str:
        return self.data.get("timezone") or LOCAL_TIMEZONE

    @property
    def folder_format(self) -> str:
        return self.data.get("folder_format") or ""

    def get_extensions(self) -> Dict[FileCategory, List[str]]:
        return {EXTENSION_KEYS[key]: list(exts or [])
                for key, exts in self.data["extensions"].items()}

    def build_classifier(self) -> FileClassifier:
        return FileClassifier(self.get_extensions(), self.exclusions)
