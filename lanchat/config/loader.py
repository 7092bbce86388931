"""Configuration loading utilities."""

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from lanchat.config.schema import Config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".lanchat" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file, or return defaults.

    A missing file yields the defaults; a file that cannot be parsed or
    validated is reported and the defaults are used instead.  ``LANCHAT_*``
    environment variables override values read from the file.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            # Normalise camelCase keys so environment overrides merge field by field.
            file_values = Config.model_validate(data).model_dump()
            return Config(**file_values)
        except (json.JSONDecodeError, ValidationError, OSError) as exc:
            logger.warning(f"[LanChat/Config] failed to load {path}: {exc}")
            logger.warning("[LanChat/Config] using default configuration")

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> Path:
    """Write *config* as camelCase JSON and return the path written."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(by_alias=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path
