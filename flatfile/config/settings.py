"""
Configuration settings for flatfile readers, writers, and scripts.

**Conceptual**: This module provides strongly-typed configuration objects that
load from environment variables (via .env files). All settings are validated
when they are built, so a bad value (e.g., a two-character delimiter) fails at
startup with the name of the offending variable, not halfway through a file.

**Environment variables**:
  - FLATFILE_DELIMITER: input field delimiter (default ",").
  - FLATFILE_NA: comma-separated NA sentinels (default ",NA", i.e. "" and "NA").
  - FLATFILE_GUESS_MAX: rows sampled for type inference (default 1000).
  - FLATFILE_ENCODING: input encoding (default "utf-8").
  - FLATFILE_TRIM_WS: trim whitespace around fields (default "true").
  - FLATFILE_OUTPUT_DELIMITER: output field delimiter (default ",").
  - FLATFILE_OUTPUT_NA: text written for missing values (default "").
  - FLATFILE_LOG_LEVEL: logging level for scripts (default "INFO").

**Teaching note**: Settings only supply *defaults*. Every reader and writer
takes the same options as keyword arguments, so library callers never need
the environment; scripts use settings to avoid hardcoding choices.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (dev/local environments); existing variables win
env_path = Path(__file__).parent.parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

TRUE_STRINGS = ("true", "1", "yes")
FALSE_STRINGS = ("false", "0", "no")


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in TRUE_STRINGS:
        return True
    if lowered in FALSE_STRINGS:
        return False
    raise ValueError(f"{name} must be a boolean (true/false), got: {value}")


def _parse_na(value: str) -> tuple[str, ...]:
    """Split a comma-separated sentinel list: ",NA" -> ("", "NA")."""
    return tuple(dict.fromkeys(part.strip() for part in value.split(",")))


# Delimiters that are awkward to put in a .env file
DELIMITER_NAMES = {"tab": "\t", "\\t": "\t", "semicolon": ";", "comma": ",", "pipe": "|"}


def _parse_delimiter(value: str) -> str:
    return DELIMITER_NAMES.get(value.strip().lower(), value)


def _check_single_char(name: str, value: str) -> None:
    if len(value) != 1:
        raise ValueError(f"{name} must be a single character, got: {value!r}")


@dataclass(frozen=True)
class ReadSettings:
    """
    Defaults for readers.

    Attributes:
        delimiter: Field delimiter for delimited input.
        na: NA sentinel strings.
        guess_max: Rows sampled for type inference (>= 1).
        encoding: Input text encoding.
        trim_ws: Strip whitespace around fields before NA matching.
    """
    delimiter: str = ","
    na: tuple[str, ...] = ("", "NA")
    guess_max: int = 1000
    encoding: str = "utf-8"
    trim_ws: bool = True

    def __post_init__(self):
        """Validate settings after initialization."""
        _check_single_char("FLATFILE_DELIMITER", self.delimiter)
        if self.guess_max < 1:
            raise ValueError(
                f"FLATFILE_GUESS_MAX must be at least 1, got: {self.guess_max}"
            )

    @classmethod
    def from_env(cls) -> "ReadSettings":
        """
        Load reader defaults from environment variables.

        Raises:
            ValueError: If any variable has an invalid value.
        """
        guess_max_str = os.getenv("FLATFILE_GUESS_MAX", "1000")
        try:
            guess_max = int(guess_max_str)
        except ValueError:
            raise ValueError(
                f"FLATFILE_GUESS_MAX must be an integer, got: {guess_max_str}"
            )

        return cls(
            delimiter=_parse_delimiter(os.getenv("FLATFILE_DELIMITER", ",")),
            na=_parse_na(os.getenv("FLATFILE_NA", ",NA")),
            guess_max=guess_max,
            encoding=os.getenv("FLATFILE_ENCODING", "utf-8"),
            trim_ws=_parse_bool("FLATFILE_TRIM_WS", os.getenv("FLATFILE_TRIM_WS", "true")),
        )


@dataclass(frozen=True)
class WriteSettings:
    """
    Defaults for writers.

    Attributes:
        delimiter: Field delimiter for output files.
        na: Text written for missing values.
    """
    delimiter: str = ","
    na: str = ""

    def __post_init__(self):
        """Validate settings after initialization."""
        _check_single_char("FLATFILE_OUTPUT_DELIMITER", self.delimiter)

    @classmethod
    def from_env(cls) -> "WriteSettings":
        return cls(
            delimiter=_parse_delimiter(os.getenv("FLATFILE_OUTPUT_DELIMITER", ",")),
            na=os.getenv("FLATFILE_OUTPUT_NA", ""),
        )


@dataclass(frozen=True)
class Settings:
    """
    Global settings: reader defaults, writer defaults, and log level.

    **Usage pattern**:
      ```python
      from flatfile.config.settings import get_settings

      settings = get_settings()
      result = read_delim(path, settings.read.delimiter, na=settings.read.na)
      ```
    """
    read: ReadSettings = field(default_factory=ReadSettings)
    write: WriteSettings = field(default_factory=WriteSettings)
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate settings after initialization."""
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(
                f"FLATFILE_LOG_LEVEL must be a logging level name, got: {self.log_level}"
            )

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            read=ReadSettings.from_env(),
            write=WriteSettings.from_env(),
            log_level=os.getenv("FLATFILE_LOG_LEVEL", "INFO"),
        )


# Global settings instance (lazy-loaded)
_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings singleton.

    The first call reads the environment; later calls return the cached
    object until `reset_settings()` is called.

    Raises:
        ValueError: If any environment variable has an invalid value.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = Settings.from_env()
    return _default_settings


def reset_settings():
    """
    Reset the global settings singleton (for testing).

    **Testing pattern**:
      ```python
      def test_something(monkeypatch):
          monkeypatch.setenv("FLATFILE_DELIMITER", ";")
          reset_settings()
          assert get_settings().read.delimiter == ";"
      ```
    """
    global _default_settings
    _default_settings = None
