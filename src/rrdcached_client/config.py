"""Configuration system for rrdcached-client."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

VALID_LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass
class ClientConfig:
    """Daemon connection configuration."""

    socket_path: Path = Path("/var/run/rrdcached.sock")
    connect_timeout: float = 5.0  # Seconds to open the socket
    command_timeout: float = 30.0  # Seconds to wait for a reply
    read_chunk_size: int = 65536  # Max bytes per socket read


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"
    json_file: bool = False  # Also write JSON Lines to log_path
    # Log file rotation
    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        elif isinstance(value, Path):
            table.add(f.name, str(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "rrdcached-client"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "rrdcached-client"

    @property
    def log_path(self) -> Path:
        """JSON log path.

        Logs are expendable persistent state, so they go in XDG_STATE_HOME.
        """
        return self.state_dir / "client.log"

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("client", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions - no hardcoded values here.

        Raises:
            ValueError: If the file can't be parsed or holds invalid values
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        return cls(
            client=_load_client_config(data.get("client", {})),
            logging=_load_logging_config(data.get("logging", {})),
        )


def _load_client_config(data: dict) -> ClientConfig:
    """Load client config from TOML data, using dataclass defaults for missing fields."""
    defaults = ClientConfig()

    connect_timeout = data.get("connect_timeout", defaults.connect_timeout)
    command_timeout = data.get("command_timeout", defaults.command_timeout)
    read_chunk_size = data.get("read_chunk_size", defaults.read_chunk_size)

    if connect_timeout <= 0:
        raise ValueError(f"connect_timeout must be > 0, got {connect_timeout}")
    if command_timeout <= 0:
        raise ValueError(f"command_timeout must be > 0, got {command_timeout}")
    if read_chunk_size < 1:
        raise ValueError(f"read_chunk_size must be >= 1, got {read_chunk_size}")

    return ClientConfig(
        socket_path=Path(data.get("socket_path", str(defaults.socket_path))),
        connect_timeout=float(connect_timeout),
        command_timeout=float(command_timeout),
        read_chunk_size=int(read_chunk_size),
    )


def _load_logging_config(data: dict) -> LoggingConfig:
    """Load logging config from TOML data."""
    d = LoggingConfig()

    level = str(data.get("level", d.level)).lower()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid logging level: {level!r}. Must be one of {VALID_LOG_LEVELS}")

    return LoggingConfig(
        level=level,
        json_file=bool(data.get("json_file", d.json_file)),
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
    )
