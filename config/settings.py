#!/usr/bin/env python3
"""
Configuration settings for the peer mesh tool.

File: config/settings.py
Class: Settings
Methods: Configuration loading from .env and environment variables
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


DEFAULT_NODE_URLS = [
    "http://127.0.0.1:8545",
    "http://127.0.0.1:8546",
    "http://127.0.0.1:8547",
]


@dataclass
class NetworkConfig:
    """Configuration for the managed nodes."""

    # Ordered: position gives the node ordinal (node 1, node 2, ...)
    node_urls: List[str] = field(default_factory=lambda: list(DEFAULT_NODE_URLS))

    # Host that other nodes use to reach node {index}, e.g. a container name
    peer_host_template: str = "geth-node{index}"

    rpc_timeout_seconds: float = 10.0
    peer_settle_seconds: float = 2.0


@dataclass
class ExporterConfig:
    """Configuration for the Prometheus exporter."""
    host: str = "0.0.0.0"
    port: int = 9545
    scrape_timeout_seconds: float = 10.0
    watch_interval_seconds: float = 5.0


def parse_node_urls(raw: Optional[str]) -> List[str]:
    """
    Parse a comma separated list of node URLs, keeping their order.

    Args:
        raw: Value such as "http://127.0.0.1:8545, http://127.0.0.1:8546"

    Returns:
        List of URLs, empty when nothing usable was given
    """
    if not raw:
        return []
    return [url.strip() for url in raw.split(",") if url.strip()]


def _env_number(name: str, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None


class Settings:
    """
    Main settings class.

    Defaults reproduce a local three node geth network; every value can be
    overridden from the environment or a .env file.
    """

    def __init__(self) -> None:
        """Initialize settings with default values."""
        self.network = NetworkConfig()
        self.exporter = ExporterConfig()
        self.log_dir = "logs"

        self._load_from_env()

    def _load_from_env(self) -> None:
        """
        Load configuration from environment variables.

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        node_urls = parse_node_urls(os.getenv('NODE_URLS'))
        if node_urls:
            self.network.node_urls = node_urls
        if os.getenv('PEER_HOST_TEMPLATE'):
            self.network.peer_host_template = os.getenv('PEER_HOST_TEMPLATE')

        rpc_timeout = _env_number('RPC_TIMEOUT_SECONDS', float)
        if rpc_timeout is not None:
            self.network.rpc_timeout_seconds = rpc_timeout
        settle = _env_number('PEER_SETTLE_SECONDS', float)
        if settle is not None:
            self.network.peer_settle_seconds = settle

        if os.getenv('METRICS_HOST'):
            self.exporter.host = os.getenv('METRICS_HOST')
        port = _env_number('METRICS_PORT', int)
        if port is not None:
            self.exporter.port = port
        scrape_timeout = _env_number('SCRAPE_TIMEOUT_SECONDS', float)
        if scrape_timeout is not None:
            self.exporter.scrape_timeout_seconds = scrape_timeout
        watch_interval = _env_number('WATCH_INTERVAL_SECONDS', float)
        if watch_interval is not None:
            self.exporter.watch_interval_seconds = watch_interval

        if os.getenv('LOG_DIR'):
            self.log_dir = os.getenv('LOG_DIR')

    def validate_configuration(self) -> List[str]:
        """
        Validate current configuration.

        Returns:
            List of validation error messages, empty when valid
        """
        errors = []

        if not self.network.node_urls:
            errors.append("No node URLs configured")
        if "{index}" not in self.network.peer_host_template:
            errors.append("PEER_HOST_TEMPLATE must contain {index}")
        if self.network.rpc_timeout_seconds <= 0:
            errors.append("RPC timeout must be positive")
        if self.exporter.scrape_timeout_seconds <= 0:
            errors.append("Scrape timeout must be positive")
        if self.exporter.watch_interval_seconds <= 0:
            errors.append("Watch interval must be positive")
        if not 0 < self.exporter.port < 65536:
            errors.append(f"Metrics port out of range: {self.exporter.port}")

        return errors

    def __repr__(self) -> str:
        return (
            f"Settings(nodes={self.network.node_urls}, "
            f"metrics={self.exporter.host}:{self.exporter.port})"
        )


# Global settings instance
settings = Settings()
