"""
Configuration management for the Stockpile server.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local use
    - The wire encoding and the file encoding are the same setting
    - Invalid values fail validation before anything is bound or loaded

How to change safely:
    - Add new settings with defaults that keep existing deployments working
    - Keep env var names stable; clients and scripts depend on them
"""

from __future__ import annotations

import codecs
import logging
import os
from dataclasses import dataclass, field

from .persist import DEFAULT_FLUSH_INTERVAL_SECONDS
from .session.protocol import DEFAULT_PORT

logger = logging.getLogger(__name__)

LOG_FORMATS = ("text", "json")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class NetworkConfig:
    """TCP listener configuration.

    Attributes:
        host: Address to bind (empty or 0.0.0.0 for all interfaces)
        port: TCP port (0 binds an ephemeral port)
        max_line_bytes: Longest accepted client line; longer closes the session
    """

    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    max_line_bytes: int = 1024 * 1024  # 1MB

    @classmethod
    def from_env(cls) -> NetworkConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("STOCKPILE_HOST", "0.0.0.0"),
            port=int(os.getenv("STOCKPILE_PORT", str(DEFAULT_PORT))),
            max_line_bytes=int(os.getenv("STOCKPILE_MAX_LINE_BYTES", str(1024 * 1024))),
        )


@dataclass(frozen=True)
class StorageConfig:
    """Entry file configuration.

    Attributes:
        db_path: Path of the entry file
        encoding: Text encoding for the file and the wire
    """

    db_path: str = "entries.db"
    encoding: str = "utf-8"

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            db_path=os.getenv("STOCKPILE_DB_PATH", "entries.db"),
            encoding=os.getenv("STOCKPILE_ENCODING", "utf-8"),
        )


@dataclass(frozen=True)
class PersistenceConfig:
    """Persistence writer configuration.

    Attributes:
        flush_interval_seconds: Seconds between dirty checks
        flush_on_shutdown: Whether a graceful stop flushes one last time
    """

    flush_interval_seconds: float = DEFAULT_FLUSH_INTERVAL_SECONDS
    flush_on_shutdown: bool = True

    @classmethod
    def from_env(cls) -> PersistenceConfig:
        """Load configuration from environment variables."""
        return cls(
            flush_interval_seconds=float(
                os.getenv("STOCKPILE_FLUSH_INTERVAL_SECONDS", str(DEFAULT_FLUSH_INTERVAL_SECONDS))
            ),
            flush_on_shutdown=_env_bool("STOCKPILE_FLUSH_ON_SHUTDOWN", "true"),
        )


@dataclass(frozen=True)
class FanoutConfig:
    """Relay configuration.

    Attributes:
        peer_queue_size: 0 relays by writing directly to each peer (a slow
            peer delays the relay); N > 0 gives each peer a queue of N lines
            and drops lines for a peer whose queue is full
    """

    peer_queue_size: int = 0

    @classmethod
    def from_env(cls) -> FanoutConfig:
        """Load configuration from environment variables."""
        return cls(
            peer_queue_size=int(os.getenv("STOCKPILE_PEER_QUEUE_SIZE", "0")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        network: TCP listener configuration
        storage: Entry file configuration
        persistence: Persistence writer configuration
        fanout: Relay configuration
        observability: Logging configuration
    """

    network: NetworkConfig = field(default_factory=NetworkConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    fanout: FanoutConfig = field(default_factory=FanoutConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If a value is missing, malformed or out of range.
        """
        config = cls(
            network=NetworkConfig.from_env(),
            storage=StorageConfig.from_env(),
            persistence=PersistenceConfig.from_env(),
            fanout=FanoutConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not 0 <= self.network.port <= 65535:
            raise ValueError(f"STOCKPILE_PORT must be in 0..65535, got {self.network.port}")
        if self.network.max_line_bytes <= 0:
            raise ValueError("STOCKPILE_MAX_LINE_BYTES must be positive")

        if not self.storage.db_path:
            raise ValueError("STOCKPILE_DB_PATH is required")
        try:
            codecs.lookup(self.storage.encoding)
        except LookupError:
            raise ValueError(f"Unknown STOCKPILE_ENCODING '{self.storage.encoding}'")

        if self.persistence.flush_interval_seconds <= 0:
            raise ValueError("STOCKPILE_FLUSH_INTERVAL_SECONDS must be positive")

        if self.fanout.peer_queue_size < 0:
            raise ValueError("STOCKPILE_PEER_QUEUE_SIZE must not be negative")

        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: text, json"
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "bind": f"{self.network.host}:{self.network.port}",
                "db_path": self.storage.db_path,
                "encoding": self.storage.encoding,
                "flush_interval_seconds": self.persistence.flush_interval_seconds,
                "flush_on_shutdown": self.persistence.flush_on_shutdown,
                "peer_queue_size": self.fanout.peer_queue_size,
                "log_level": self.observability.log_level,
            },
        )
