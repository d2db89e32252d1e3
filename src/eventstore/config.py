"""Event store configuration loading and validation.

Reads ``eventstore.toml``, resolves ``${VAR}`` references from the
environment, and returns a validated ``StoreConfig`` dataclass. Connection
credentials are not part of the file; they come from ``DATABASE_URL`` or the
``POSTGRES_*`` variables (see ``eventstore.db.db_params_from_env``).
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILENAME = "eventstore.toml"

# Pattern matching ${VAR_NAME} — supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_DB_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*$")


class ConfigError(Exception):
    """Raised when configuration is missing, malformed, or invalid."""


@dataclass
class ServerConfig:
    """HTTP server settings from the [server] section."""

    host: str = "0.0.0.0"
    port: int = 3000
    static_dir: str | None = None
    cors_origins: list[str] = field(default_factory=list)


@dataclass
class DatabaseConfig:
    """Database settings from the [db] section."""

    name: str = "scheduler"
    min_pool_size: int = 1
    max_pool_size: int = 10


@dataclass
class LoggingConfig:
    """Logging configuration from the [logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class StoreConfig:
    """Parsed and validated event store configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def default_config() -> StoreConfig:
    """Return the configuration used when no file is given."""
    return StoreConfig()


def resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ``${VAR_NAME}`` references in config values.

    Walks dicts, lists, and strings.  Non-string leaf values (int, bool,
    float, None) are returned unchanged.

    Raises
    ------
    ConfigError
        If a referenced environment variable is not set.
    """
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    if isinstance(value, str):
        return _resolve_string(value)

    return value


def _resolve_string(s: str) -> str:
    """Replace all ``${VAR_NAME}`` occurrences in *s* with env var values.

    Collects all missing variable names and reports them in a single error.
    """
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)

    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )

    return result


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _positive_int(raw: Any, field_name: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {field_name}: {raw!r}. Must be an integer.") from exc
    if value <= 0:
        raise ConfigError(f"Invalid {field_name}: {value!r}. Must be a positive integer.")
    return value


def _parse_server(section: dict[str, Any]) -> ServerConfig:
    port = _positive_int(section.get("port", 3000), "server.port")
    if port > 65535:
        raise ConfigError(f"Invalid server.port: {port!r}. Must be at most 65535.")

    static_dir = section.get("static_dir")
    if static_dir is not None and not isinstance(static_dir, str):
        raise ConfigError("server.static_dir must be a string when set")

    raw_origins = section.get("cors_origins", [])
    if not isinstance(raw_origins, list):
        raise ConfigError("server.cors_origins must be a list of strings")
    cors_origins = [str(o).strip() for o in raw_origins if isinstance(o, str) and o.strip()]

    return ServerConfig(
        host=str(section.get("host", "0.0.0.0")),
        port=port,
        static_dir=static_dir or None,
        cors_origins=cors_origins,
    )


def _parse_db(section: dict[str, Any]) -> DatabaseConfig:
    name = str(section.get("name", "scheduler")).strip()
    if _DB_NAME_PATTERN.fullmatch(name) is None:
        raise ConfigError(f"Invalid db.name: {name!r}. Expected an identifier-style string.")

    min_pool_size = _positive_int(section.get("min_pool_size", 1), "db.min_pool_size")
    max_pool_size = _positive_int(section.get("max_pool_size", 10), "db.max_pool_size")
    if min_pool_size > max_pool_size:
        raise ConfigError(
            f"db.min_pool_size ({min_pool_size}) must not exceed "
            f"db.max_pool_size ({max_pool_size})"
        )
    return DatabaseConfig(name=name, min_pool_size=min_pool_size, max_pool_size=max_pool_size)


def _parse_logging(section: dict[str, Any]) -> LoggingConfig:
    level = str(section.get("level", "INFO")).upper()
    fmt = str(section.get("format", "text")).lower()
    if fmt not in ("text", "json"):
        raise ConfigError(f"Invalid logging.format: {fmt!r}. Expected 'text' or 'json'.")
    return LoggingConfig(level=level, format=fmt, log_root=section.get("log_root"))


def parse_config(data: dict[str, Any]) -> StoreConfig:
    """Validate an already-decoded TOML mapping."""
    data = resolve_env_vars(data)
    return StoreConfig(
        server=_parse_server(_section(data, "server")),
        db=_parse_db(_section(data, "db")),
        logging=_parse_logging(_section(data, "logging")),
    )


def load_config(path: Path) -> StoreConfig:
    """Load and validate an ``eventstore.toml``.

    Parameters
    ----------
    path:
        Either the TOML file itself or a directory containing
        ``eventstore.toml``.

    Raises
    ------
    ConfigError
        If the file is missing, contains invalid TOML, or has invalid values.
    """
    toml_path = path / CONFIG_FILENAME if path.is_dir() else path

    if not toml_path.exists():
        raise ConfigError(f"Config file not found: {toml_path}")

    try:
        data = tomllib.loads(toml_path.read_bytes().decode())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc

    return parse_config(data)
