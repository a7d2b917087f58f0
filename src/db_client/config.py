"""
Configuration system for db-client.

This module provides typed configuration classes with:
- Dataclass-based settings with validation
- Environment variable loading
- YAML/TOML file loading
- Sensible defaults with override capability
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError, InvalidConfigError


DEFAULT_PORT = 3306
DEFAULT_CHARSET = "utf8mb4"
DEFAULT_TIME_ZONE = "+00:00"
DEFAULT_CONNECT_TIMEOUT = 10


# =============================================================================
# Connection Configuration
# =============================================================================

@dataclass
class ConnectionConfig:
    """Configuration for a single MySQL connection."""

    host: str = "127.0.0.1"
    username: str = "root"
    password: str = ""
    database: Optional[str] = None
    port: int = DEFAULT_PORT

    # Session settings
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    charset: str = DEFAULT_CHARSET
    time_zone: str = DEFAULT_TIME_ZONE
    sql_mode: str = ""

    # Driver behavior
    autocommit: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.port, str):
            self.port = int(self.port)
        if not 0 < self.port < 65536:
            raise InvalidConfigError("port must be between 1 and 65535", field_name="port")
        if self.connect_timeout <= 0:
            raise InvalidConfigError("connect_timeout must be positive", field_name="connect_timeout")
        if not self.charset:
            raise InvalidConfigError("charset cannot be empty", field_name="charset")
        if self.database == "":
            self.database = None


# =============================================================================
# Logging Configuration
# =============================================================================

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["text", "json"]

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_LOG_FORMATS = ("text", "json")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: LogLevel = "INFO"
    format: LogFormat = "text"

    # What to log
    log_sql: bool = True
    log_params: bool = True
    max_sql_length: int = 500

    # Redaction
    redact_passwords: bool = True

    def __post_init__(self):
        level = str(self.level).upper()
        if level not in _LOG_LEVELS:
            raise InvalidConfigError(
                f"level must be one of {', '.join(_LOG_LEVELS)}, got {self.level!r}",
                field_name="level",
            )
        self.level = level  # type: ignore[assignment]

        log_format = str(self.format).lower()
        if log_format not in _LOG_FORMATS:
            raise InvalidConfigError(
                f"format must be 'text' or 'json', got {self.format!r}",
                field_name="format",
            )
        self.format = log_format  # type: ignore[assignment]


# =============================================================================
# Master Configuration
# =============================================================================

@dataclass
class Settings:
    """
    Master configuration for the database client.

    Aggregates the connection and logging sections into a single object
    that can be loaded from environment variables, files, or constructed
    programmatically.
    """

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls, prefix: str = "DB_") -> "Settings":
        """
        Load settings from environment variables.

        Example:
            DB_HOST=db.internal
            DB_PORT=3307
            DB_USER=app
            DB_PASS=secret
            DB_NAME=shop
            DB_LOG_LEVEL=DEBUG
        """
        settings = cls()
        conn = settings.connection

        if host := os.getenv(f"{prefix}HOST"):
            conn.host = host
        if port := os.getenv(f"{prefix}PORT"):
            conn.port = _parse_int(port, f"{prefix}PORT")
        if user := os.getenv(f"{prefix}USER"):
            conn.username = user
        password = os.getenv(f"{prefix}PASS") or os.getenv(f"{prefix}PASSWORD")
        if password:
            conn.password = password
        if name := os.getenv(f"{prefix}NAME"):
            conn.database = name
        if timeout := os.getenv(f"{prefix}CONNECT_TIMEOUT"):
            conn.connect_timeout = _parse_int(timeout, f"{prefix}CONNECT_TIMEOUT")
        if charset := os.getenv(f"{prefix}CHARSET"):
            conn.charset = charset
        if time_zone := os.getenv(f"{prefix}TIME_ZONE"):
            conn.time_zone = time_zone

        # Re-run validation on the populated values
        conn.__post_init__()

        # Logging settings
        if level := os.getenv(f"{prefix}LOG_LEVEL"):
            settings.logging.level = level  # type: ignore
        if log_format := os.getenv(f"{prefix}LOG_FORMAT"):
            settings.logging.format = log_format  # type: ignore
        settings.logging.__post_init__()

        return settings

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Settings":
        """
        Load settings from a YAML or TOML file.

        Args:
            path: Path to configuration file (.yaml, .yml, or .toml)

        Returns:
            Settings object with values from file
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        suffix = path.suffix.lower()

        if suffix in (".yaml", ".yml"):
            import yaml
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        elif suffix == ".toml":
            import tomllib
            with open(path, "rb") as f:
                data = tomllib.load(f)
        else:
            raise ConfigError(f"Unsupported config file format: {suffix}")

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file must contain a mapping: {path}")

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Create Settings from a dictionary."""
        settings = cls()

        if "connection" in data:
            conn_data = {
                k: v for k, v in (data["connection"] or {}).items()
                if k in ConnectionConfig.__dataclass_fields__
            }
            settings.connection = ConnectionConfig(**conn_data)

        if "logging" in data:
            for key, value in (data["logging"] or {}).items():
                if hasattr(settings.logging, key):
                    setattr(settings.logging, key, value)
            settings.logging.__post_init__()

        return settings

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to a dictionary, redacting the password unless disabled."""
        import dataclasses

        data = dataclasses.asdict(self)
        if self.logging.redact_passwords and data["connection"].get("password"):
            data["connection"]["password"] = "***"
        return data


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise InvalidConfigError(f"expected an integer, got {value!r}", field_name=name, cause=exc) from exc


# =============================================================================
# Global Settings & Helpers
# =============================================================================

_global_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, creating from the environment if needed."""
    global _global_settings
    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def configure(settings: Optional[Settings] = None, **kwargs) -> Settings:
    """
    Configure global settings.

    Args:
        settings: Settings object to use globally
        **kwargs: Override specific settings sections

    Returns:
        The configured Settings object
    """
    global _global_settings

    if settings is not None:
        _global_settings = settings
    elif _global_settings is None:
        _global_settings = Settings.from_env()

    for key, value in kwargs.items():
        if hasattr(_global_settings, key):
            setattr(_global_settings, key, value)

    return _global_settings


def load_env(path: Optional[str] = None, *, override: bool = False) -> bool:
    """
    Load environment variables from a .env file.

    Args:
        path: Optional path to a .env file. If not provided, uses find_dotenv().
        override: Whether to override existing environment variables.

    Returns:
        True if a .env file was found and loaded, False otherwise.
    """
    env_path = path or find_dotenv(usecwd=True)
    if not env_path:
        return False
    return load_dotenv(env_path, override=override)


__all__ = [
    "ConnectionConfig",
    "LoggingConfig",
    "Settings",
    "get_settings",
    "configure",
    "load_env",
    "DEFAULT_PORT",
    "DEFAULT_CHARSET",
    "DEFAULT_TIME_ZONE",
    "DEFAULT_CONNECT_TIMEOUT",
]
