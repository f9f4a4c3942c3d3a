"""Configuration management for tsquery."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 10011


@dataclass
class ServerConfig:
    """Where the query interface listens."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class ClientConfig:
    """Client behaviour."""

    command_timeout: float | None = None
    log_level: str = "warning"
    encoding: str = "utf-8"

    def __post_init__(self) -> None:
        # 0 disables the timeout, same as leaving it out
        if not self.command_timeout:
            self.command_timeout = None


@dataclass
class Config:
    """Full tsquery configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    client: ClientConfig = field(default_factory=ClientConfig)


def get_config_dir() -> Path:
    """Get the tsquery config directory."""
    if xdg_config := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_config) / "tsquery"
    return Path.home() / ".config" / "tsquery"


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file, then apply environment overrides."""
    config_file = path or get_config_dir() / "config.toml"

    if config_file.exists():
        with open(config_file, "rb") as f:
            data = tomllib.load(f)
        config = Config(
            server=ServerConfig(**data.get("server", {})),
            client=ClientConfig(**data.get("client", {})),
        )
    else:
        config = Config()

    if host := os.environ.get("TSQUERY_HOST"):
        config.server.host = host
    if port := os.environ.get("TSQUERY_PORT"):
        config.server.port = int(port)

    return config
