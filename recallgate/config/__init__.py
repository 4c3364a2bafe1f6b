"""Configuration module for recallgate."""

from recallgate.config.loader import load_config, save_config, get_config_path
from recallgate.config.schema import EngineConfig

__all__ = ["EngineConfig", "load_config", "save_config", "get_config_path"]
