"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML + environment overrides)
- Logging setup (Loguru)
"""

from .config import (
    Config,
    DirectoryConfig,
    LoggingConfig,
    PlayerConfig,
    StreamConfig,
    WebConfig,
    create_default_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)
from .output import setup_loguru

__all__ = [
    "Config",
    "DirectoryConfig",
    "LoggingConfig",
    "PlayerConfig",
    "StreamConfig",
    "WebConfig",
    "create_default_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    "setup_loguru",
]
