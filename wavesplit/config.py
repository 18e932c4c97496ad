"""
wavesplit.config - YAML config loading, label file parsing, validation.

Handles loading wavesplit.yaml, reading channel label files and
validating extraction parameters.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, Field, field_validator

from wavesplit.exceptions import ConfigError

DEFAULT_CHUNK_FRAMES = 16384
LABEL_FILE_NAME = "channel-config.txt"
CONFIG_FILE_NAME = "wavesplit.yaml"


class ExtractorConfig(BaseModel):
    """Resolved configuration for an extraction run."""

    channels: list[str] = Field(default_factory=list)
    chunk_frames: int = Field(default=DEFAULT_CHUNK_FRAMES, gt=0)
    max_workers: int | None = Field(default=None, ge=1)
    overwrite: bool = False

    @field_validator("channels")
    @classmethod
    def validate_channels(cls, v: list[str]) -> list[str]:
        return [label.strip() for label in v if label and label.strip()]


def load_config(path: Path) -> ExtractorConfig:
    """Load and validate configuration from a YAML file."""
    if not path.exists():
        raise FileNotFoundError(f"No config file found at {path}")

    with open(path) as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")

    try:
        return ExtractorConfig(**raw_config)
    except pydantic.ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e


def parse_label_lines(text: str) -> list[str]:
    """Parse label file content: one label per line.

    Blank lines and lines starting with '#' are skipped; surrounding
    whitespace is stripped.
    """
    labels = []
    for line in text.splitlines():
        label = line.strip()
        if not label or label.startswith("#"):
            continue
        labels.append(label)
    return labels


def load_channel_labels(path: Path) -> list[str]:
    """Load the ordered channel label list from a text or YAML file.

    Args:
        path: Path to a label file (one label per line) or a YAML config
            with a ``channels`` list

    Returns:
        Labels in source channel order

    Raises:
        ConfigError: If the file is missing or yields no labels
    """
    if not path.exists():
        raise ConfigError(f"Missing channel label file: {path}")

    if path.suffix.lower() in {".yaml", ".yml"}:
        labels = load_config(path).channels
    else:
        with open(path, encoding="utf-8") as f:
            labels = parse_label_lines(f.read())

    if not labels:
        raise ConfigError(f"Channel label file is empty: {path}")
    return labels


def find_label_file(input_path: Path, cwd: Path | None = None) -> Path | None:
    """Find a channel-config.txt next to the input file or in the working directory."""
    candidates = [input_path.parent / LABEL_FILE_NAME]
    if cwd is not None:
        candidates.append(cwd / LABEL_FILE_NAME)
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def merge_config(config: ExtractorConfig, overrides: dict[str, Any]) -> ExtractorConfig:
    """Apply command-line overrides on top of a loaded config. None values are ignored."""
    merged = config.model_dump()
    for key, value in overrides.items():
        if value is not None:
            merged[key] = value
    try:
        return ExtractorConfig(**merged)
    except pydantic.ValidationError as e:
        raise ConfigError(f"Invalid option: {e}") from e
