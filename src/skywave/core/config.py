"""
Configuration management for Skywave
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_MIRRORS = [
    "https://de1.api.radio-browser.info",
    "https://nl1.api.radio-browser.info",
    "https://at1.api.radio-browser.info",
]

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class DirectoryConfig:
    """Configuration for the station directory client."""

    mirrors: List[str] = field(default_factory=lambda: list(DEFAULT_MIRRORS))
    user_agent: str = "Skywave/1.0"
    timeout_seconds: float = 10.0
    default_limit: int = 50
    default_order: str = "clickcount"

    def validate(self) -> None:
        """Validate directory configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not self.mirrors:
            raise ValueError("At least one directory mirror is required")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")
        if self.default_limit <= 0:
            raise ValueError(f"default_limit must be positive, got {self.default_limit}")


@dataclass
class StreamConfig:
    """Configuration for the stream relay and health prober."""

    probe_timeout_ms: int = 10_000
    connect_timeout_seconds: float = 10.0
    stall_timeout_seconds: float = 15.0
    chunk_size: int = 16 * 1024
    max_buffered_chunks: int = 4
    default_content_type: str = "audio/mpeg"

    def validate(self) -> None:
        """Validate stream configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.probe_timeout_ms <= 0:
            raise ValueError(f"probe_timeout_ms must be positive, got {self.probe_timeout_ms}")
        if self.connect_timeout_seconds <= 0 or self.stall_timeout_seconds <= 0:
            raise ValueError("Stream timeouts must be positive")
        if self.chunk_size <= 0 or self.max_buffered_chunks <= 0:
            raise ValueError("chunk_size and max_buffered_chunks must be positive")


@dataclass
class PlayerConfig:
    """Configuration for the headless playback engine."""

    volume: int = 75
    retry_delay_seconds: float = 2.0
    start_timeout_seconds: float = 10.0
    backend_url: str = "http://127.0.0.1:8642"
    mpv_socket_path: Optional[str] = None
    recordings_dir: Optional[str] = None

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not 0 <= self.volume <= 100:
            raise ValueError(f"volume must be within 0..100, got {self.volume}")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds cannot be negative")
        if self.start_timeout_seconds <= 0:
            raise ValueError("start_timeout_seconds must be positive")


@dataclass
class WebConfig:
    """Configuration for the FastAPI backend."""

    host: str = "127.0.0.1"
    port: int = 8642
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # Default: ~/.local/share/skywave/skywave.log
    console_output: bool = True

    def validate(self) -> None:
        """Validate logging configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.level}")


@dataclass
class Config:
    """Main configuration object."""

    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "skywave"
    return Path.home() / ".config" / "skywave"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "skywave"
    return Path.home() / ".local" / "share" / "skywave"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            return config_path if config_path.exists() else None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/skywave (or ~/.config/skywave)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Skywave Configuration

[directory]
# Station directory mirrors, tried in order until one answers
mirrors = [
    "https://de1.api.radio-browser.info",
    "https://nl1.api.radio-browser.info",
    "https://at1.api.radio-browser.info",
]

# Client identifier sent to every mirror
user_agent = "Skywave/1.0"

# Per-mirror request timeout
timeout_seconds = 10.0

# Defaults for listing queries
default_limit = 50
default_order = "clickcount"

[stream]
# Health probe timeout in milliseconds
probe_timeout_ms = 10000

# Relay upstream timeouts
connect_timeout_seconds = 10.0
stall_timeout_seconds = 15.0

# Relay buffering (bytes per chunk, chunks held in memory per connection)
chunk_size = 16384
max_buffered_chunks = 4

# Content type used when the origin does not declare one
default_content_type = "audio/mpeg"

[player]
# Initial volume (0-100)
volume = 75

# Delay before the single automatic retry
retry_delay_seconds = 2.0

# How long a transport may take to start producing audio
start_timeout_seconds = 10.0

# Backend used for health checks and relaying
backend_url = "http://127.0.0.1:8642"

# Path for mpv socket (auto-generated if not specified)
# mpv_socket_path = "/tmp/skywave-mpv"

# Where recordings are written (defaults to the data directory)
# recordings_dir = "~/Music/skywave"

[web]
host = "127.0.0.1"
port = 8642
allowed_origins = ["*"]

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/skywave/skywave.log)
# log_file = "/path/to/skywave.log"

# Also log to stderr
console_output = true
""".strip()


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides on top of file values."""
    mirrors = os.environ.get("SKYWAVE_MIRRORS")
    if mirrors:
        config.directory.mirrors = [m.strip() for m in mirrors.split(",") if m.strip()]

    backend_url = os.environ.get("SKYWAVE_BACKEND_URL")
    if backend_url:
        config.player.backend_url = backend_url

    log_level = os.environ.get("SKYWAVE_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    allowed_origins = os.environ.get("ALLOWED_ORIGINS")
    if allowed_origins:
        config.web.allowed_origins = [o.strip() for o in allowed_origins.split(",") if o.strip()]

    return config


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML data.

    Sections that fail validation fall back to their defaults.
    """
    config = Config()

    if "directory" in toml_data:
        directory_data = toml_data["directory"]
        config.directory = DirectoryConfig(
            mirrors=directory_data.get("mirrors", config.directory.mirrors),
            user_agent=directory_data.get("user_agent", config.directory.user_agent),
            timeout_seconds=directory_data.get(
                "timeout_seconds", config.directory.timeout_seconds
            ),
            default_limit=directory_data.get("default_limit", config.directory.default_limit),
            default_order=directory_data.get("default_order", config.directory.default_order),
        )
        try:
            config.directory.validate()
        except ValueError as e:
            print(f"Warning: Invalid directory configuration: {e}")
            print("Using default directory configuration.")
            config.directory = DirectoryConfig()

    if "stream" in toml_data:
        stream_data = toml_data["stream"]
        config.stream = StreamConfig(
            probe_timeout_ms=stream_data.get("probe_timeout_ms", config.stream.probe_timeout_ms),
            connect_timeout_seconds=stream_data.get(
                "connect_timeout_seconds", config.stream.connect_timeout_seconds
            ),
            stall_timeout_seconds=stream_data.get(
                "stall_timeout_seconds", config.stream.stall_timeout_seconds
            ),
            chunk_size=stream_data.get("chunk_size", config.stream.chunk_size),
            max_buffered_chunks=stream_data.get(
                "max_buffered_chunks", config.stream.max_buffered_chunks
            ),
            default_content_type=stream_data.get(
                "default_content_type", config.stream.default_content_type
            ),
        )
        try:
            config.stream.validate()
        except ValueError as e:
            print(f"Warning: Invalid stream configuration: {e}")
            print("Using default stream configuration.")
            config.stream = StreamConfig()

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            volume=player_data.get("volume", config.player.volume),
            retry_delay_seconds=player_data.get(
                "retry_delay_seconds", config.player.retry_delay_seconds
            ),
            start_timeout_seconds=player_data.get(
                "start_timeout_seconds", config.player.start_timeout_seconds
            ),
            backend_url=player_data.get("backend_url", config.player.backend_url),
            mpv_socket_path=player_data.get("mpv_socket_path"),
            recordings_dir=player_data.get("recordings_dir"),
        )
        try:
            config.player.validate()
        except ValueError as e:
            print(f"Warning: Invalid player configuration: {e}")
            print("Using default player configuration.")
            config.player = PlayerConfig()

    if "web" in toml_data:
        web_data = toml_data["web"]
        config.web = WebConfig(
            host=web_data.get("host", config.web.host),
            port=web_data.get("port", config.web.port),
            allowed_origins=web_data.get("allowed_origins", config.web.allowed_origins),
        )

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
            console_output=logging_data.get("console_output", config.logging.console_output),
        )
        try:
            config.logging.validate()
        except ValueError as e:
            print(f"Warning: Invalid logging configuration: {e}")
            print("Using default logging configuration.")
            config.logging = LoggingConfig()

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - SKYWAVE_MIRRORS
    - SKYWAVE_BACKEND_URL
    - SKYWAVE_LOG_LEVEL
    - ALLOWED_ORIGINS
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
            print(f"Created default configuration at: {config_path}")
        except OSError as e:
            print(f"Warning: Could not write default configuration: {e}")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Error loading config from {config_path}: {e}")
        print("Using default configuration.")
        return _apply_env_overrides(Config())

    return _apply_env_overrides(parse_config(toml_data))
