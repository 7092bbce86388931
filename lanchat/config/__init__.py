"""Configuration module for lanchat."""

from lanchat.config.loader import get_config_path, load_config, save_config
from lanchat.config.schema import Config

__all__ = ["Config", "get_config_path", "load_config", "save_config"]
