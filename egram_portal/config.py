# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Runtime configuration assembled from environment variables.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid number for {name}: {value!r}, using {default}")
        return default


@dataclass
class LoggerConfig:
    """Event logger settings."""
    enable_console: bool = True
    enable_persistence: bool = True
    max_buffer_size: int = 100
    flush_interval: float = 30.0
    collection: str = "logs"
    min_level: Optional[str] = None

    @classmethod
    def from_env(cls) -> "LoggerConfig":
        """Build logger settings from LOG_* environment variables."""
        max_buffer_size = _env_int("LOG_MAX_BUFFER_SIZE", 100)
        if max_buffer_size < 1:
            logger.warning("LOG_MAX_BUFFER_SIZE must be positive, using 100")
            max_buffer_size = 100

        flush_interval = _env_float("LOG_FLUSH_INTERVAL", 30.0)
        if flush_interval <= 0:
            logger.warning("LOG_FLUSH_INTERVAL must be positive, using 30.0")
            flush_interval = 30.0

        return cls(
            enable_console=_env_bool("LOG_CONSOLE_ENABLED", True),
            enable_persistence=_env_bool("LOG_PERSISTENCE_ENABLED", True),
            max_buffer_size=max_buffer_size,
            flush_interval=flush_interval,
            collection=os.getenv("LOG_COLLECTION", "logs"),
            min_level=os.getenv("LOG_LEVEL") or None
        )


@dataclass
class PortalConfig:
    """Top-level application settings."""
    environment: str = "development"
    mongodb_uri: str = "mongodb://localhost:27017/egram_portal_dev"
    mongodb_database: str = "egram_portal_dev"
    base_url: str = "http://localhost:5000"
    jwt_private_key: Optional[str] = None
    jwt_public_key: Optional[str] = None
    otel_enabled: bool = True
    logger: LoggerConfig = field(default_factory=LoggerConfig)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "PortalConfig":
        """Build application settings from the process environment."""
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017/egram_portal_dev"),
            mongodb_database=os.getenv("MONGODB_DATABASE", "egram_portal_dev"),
            base_url=os.getenv("BASE_URL", "http://localhost:5000"),
            jwt_private_key=os.getenv("JWT_PRIVATE_KEY"),
            jwt_public_key=os.getenv("JWT_PUBLIC_KEY"),
            otel_enabled=_env_bool("OTEL_ENABLED", True),
            logger=LoggerConfig.from_env()
        )
