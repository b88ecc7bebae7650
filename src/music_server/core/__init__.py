"""Core infrastructure: configuration, logging and console output.

The core layer has no dependencies on the domain or protocol layers.
"""

from .config import (
    ClientConfig,
    Config,
    LibraryConfig,
    LoggingConfig,
    RemoteConfig,
    ServerConfig,
    create_default_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)
from .console import get_console, safe_print
from .output import log, setup_loguru

__all__ = [
    "ClientConfig",
    "Config",
    "LibraryConfig",
    "LoggingConfig",
    "RemoteConfig",
    "ServerConfig",
    "create_default_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    "get_console",
    "safe_print",
    "log",
    "setup_loguru",
]
