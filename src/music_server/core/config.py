"""
Configuration management for the music server
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

APP_NAME = "music-server"


@dataclass
class ServerConfig:
    """Configuration for the catalog server."""

    host: str = "0.0.0.0"
    port: int = 5555
    max_workers: int = 16  # Connections handled at the same time
    max_pending: int = 32  # Connections waiting for a worker before BUSY
    client_timeout: Optional[float] = None  # Seconds; None waits forever

    def validate(self) -> None:
        """Validate server configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.max_pending < 0:
            raise ValueError(f"max_pending cannot be negative, got {self.max_pending}")
        if self.client_timeout is not None and self.client_timeout <= 0:
            raise ValueError(f"client_timeout must be positive, got {self.client_timeout}")


@dataclass
class LibraryConfig:
    """Configuration for music library indexing."""

    library_paths: List[str] = field(default_factory=list)
    supported_formats: List[str] = field(
        default_factory=lambda: [".mp3", ".wav", ".flac", ".aiff", ".aac", ".wma", ".ogg"]
    )
    include_album_image: bool = False
    catalog_file: str = "indexed_music.json"


@dataclass
class RemoteConfig:
    """Configuration for remote sources downloaded at startup."""

    enabled: bool = True
    url_list: str = "onedrive_list.txt"
    staging_dir: str = "downloaded_onedrive"
    connect_timeout: float = 10.0
    read_timeout: float = 10.0


@dataclass
class ClientConfig:
    """Defaults for the list/stream/download commands."""

    host: str = "127.0.0.1"
    port: int = 5555
    timeout: float = 10.0


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/music-server/music-server.log)
    )
    max_file_size_mb: int = 10  # Maximum log file size before rotation
    backup_count: int = 5  # Number of backup files to keep
    console_output: bool = True  # Also log to stderr


@dataclass
class Config:
    """Main configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    library: LibraryConfig = field(default_factory=LibraryConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / APP_NAME
    return Path.home() / ".config" / APP_NAME


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Current working directory
    2. XDG_CONFIG_HOME/music-server (or ~/.config/music-server)
    """
    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Music Server Configuration

[server]
# Interface and TCP port to listen on
host = "0.0.0.0"
port = 5555

# Connections served at the same time
max_workers = 16

# Connections allowed to wait for a free worker; more are refused with BUSY
max_pending = 32

# Seconds a client may stay idle (unset: wait forever)
# client_timeout = 300

[library]
# Folders indexed recursively at startup
library_paths = []

# Audio file extensions to index
supported_formats = [".mp3", ".wav", ".flac", ".aiff", ".aac", ".wma", ".ogg"]

# Embed cover art (base64) in the catalog
include_album_image = false

# JSON snapshot written after indexing
catalog_file = "indexed_music.json"

[remote]
# Download and index the URLs listed in url_list at startup
enabled = true
url_list = "onedrive_list.txt"
staging_dir = "downloaded_onedrive"

# Seconds to wait for a connection and between received bytes
connect_timeout = 10
read_timeout = 10

[client]
# Server used by the list, stream and download commands
host = "127.0.0.1"
port = 5555
timeout = 10

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/music-server/music-server.log)
# log_file = "/path/to/custom/music-server.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of backup log files to keep
backup_count = 5

# Also log to the terminal
console_output = true
""".strip()


def _section(toml_data: dict, name: str) -> dict:
    data = toml_data.get(name, {})
    if not isinstance(data, dict):
        raise ValueError(f"[{name}] must be a table")
    return data


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - MUSIC_SERVER_HOST
    - MUSIC_SERVER_PORT
    - MUSIC_SERVER_LIBRARY_PATHS (separated by os.pathsep)

    Args:
        config_path: Explicit config file; default lookup when omitted
    """
    # Load .env file from config directory if it exists
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = Path(config_path) if config_path else get_config_path()

    if not config_path.exists():
        # Create config directory and default file
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
            logger.info(f"Created default configuration at: {config_path}")
        except OSError as e:
            logger.warning(f"Could not create default configuration at {config_path}: {e}")
        return apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        # Parse configuration sections
        config = Config()

        if "server" in toml_data:
            server_data = _section(toml_data, "server")
            config.server = ServerConfig(
                host=server_data.get("host", config.server.host),
                port=int(server_data.get("port", config.server.port)),
                max_workers=int(server_data.get("max_workers", config.server.max_workers)),
                max_pending=int(server_data.get("max_pending", config.server.max_pending)),
                client_timeout=server_data.get("client_timeout", config.server.client_timeout),
            )
            # Validate server config
            try:
                config.server.validate()
            except ValueError as e:
                logger.warning(f"Invalid server configuration: {e}. Using default server configuration.")
                config.server = ServerConfig()

        if "library" in toml_data:
            library_data = _section(toml_data, "library")
            config.library = LibraryConfig(
                library_paths=[
                    str(Path(p).expanduser())
                    for p in library_data.get("library_paths", config.library.library_paths)
                ],
                supported_formats=[
                    _normalize_extension(ext)
                    for ext in library_data.get(
                        "supported_formats", config.library.supported_formats
                    )
                ],
                include_album_image=library_data.get(
                    "include_album_image", config.library.include_album_image
                ),
                catalog_file=library_data.get("catalog_file", config.library.catalog_file),
            )

        if "remote" in toml_data:
            remote_data = _section(toml_data, "remote")
            config.remote = RemoteConfig(
                enabled=remote_data.get("enabled", config.remote.enabled),
                url_list=remote_data.get("url_list", config.remote.url_list),
                staging_dir=remote_data.get("staging_dir", config.remote.staging_dir),
                connect_timeout=float(
                    remote_data.get("connect_timeout", config.remote.connect_timeout)
                ),
                read_timeout=float(remote_data.get("read_timeout", config.remote.read_timeout)),
            )

        if "client" in toml_data:
            client_data = _section(toml_data, "client")
            config.client = ClientConfig(
                host=client_data.get("host", config.client.host),
                port=int(client_data.get("port", config.client.port)),
                timeout=float(client_data.get("timeout", config.client.timeout)),
            )

        if "logging" in toml_data:
            logging_data = _section(toml_data, "logging")
            log_file = logging_data.get("log_file")
            if log_file:
                log_file = str(Path(log_file).expanduser())
            config.logging = LoggingConfig(
                level=logging_data.get("level", config.logging.level).upper(),
                log_file=log_file,
                max_file_size_mb=logging_data.get(
                    "max_file_size_mb", config.logging.max_file_size_mb
                ),
                backup_count=logging_data.get(
                    "backup_count", config.logging.backup_count
                ),
                console_output=logging_data.get(
                    "console_output", config.logging.console_output
                ),
            )

        return apply_env_overrides(config)

    except (OSError, tomllib.TOMLDecodeError, ValueError, TypeError) as e:
        logger.warning(f"Error loading configuration from {config_path}: {e}. Using default configuration.")
        return apply_env_overrides(Config())


def apply_env_overrides(config: Config) -> Config:
    """Override configuration values with environment variables if present."""
    host = os.environ.get("MUSIC_SERVER_HOST")
    if host:
        config.server.host = host

    port = os.environ.get("MUSIC_SERVER_PORT")
    if port:
        try:
            config.server.port = int(port)
            config.server.validate()
        except ValueError as e:
            logger.warning(f"Ignoring MUSIC_SERVER_PORT={port!r}: {e}")
            config.server.port = ServerConfig.port

    library_paths = os.environ.get("MUSIC_SERVER_LIBRARY_PATHS")
    if library_paths:
        config.library.library_paths = [
            str(Path(p).expanduser()) for p in library_paths.split(os.pathsep) if p
        ]

    return config


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"
