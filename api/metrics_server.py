# api/metrics_server.py
"""
Prometheus exporter for the managed nodes.

MetricsBridge turns a peer manager snapshot into gauges on its own
CollectorRegistry; the FastAPI app serves them on /metrics next to a
node-independent /health check.
"""

import asyncio
from typing import Optional

import uvicorn
from fastapi import FastAPI, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from infrastructure.node import Deadline
from infrastructure.peer_manager import PeerManager
from utils.logger import logger_manager

LABELS = ["node", "url"]


class MetricsBridge:
    """
    Collects node status on every scrape.

    One scrape pass (snapshot, gauge reset, gauge update, render) runs under
    a single lock, so concurrent scrapes are served one after another.
    """

    def __init__(
        self,
        manager: PeerManager,
        registry: Optional[CollectorRegistry] = None,
        scrape_timeout_seconds: float = 10.0
    ) -> None:
        self.manager = manager
        self.registry = registry if registry is not None else CollectorRegistry()
        self.scrape_timeout_seconds = scrape_timeout_seconds
        self.logger = logger_manager.get_logger("MetricsBridge")
        self._lock = asyncio.Lock()

        self.block_height = Gauge(
            "ethereum_block_height",
            "Current block height",
            LABELS,
            registry=self.registry
        )
        self.peer_count = Gauge(
            "ethereum_peer_count",
            "Number of connected peers",
            LABELS,
            registry=self.registry
        )
        self.is_mining = Gauge(
            "ethereum_is_mining",
            "Mining status (1=mining, 0=not mining)",
            LABELS,
            registry=self.registry
        )

    async def collect(self) -> None:
        """Refresh the gauges from a fresh snapshot. Caller holds the lock."""
        snapshot = await self.manager.get_status_snapshot(
            deadline=Deadline(self.scrape_timeout_seconds)
        )

        # Nodes or fields that failed this time must not keep stale values
        self.block_height.clear()
        self.peer_count.clear()
        self.is_mining.clear()

        for status in snapshot:
            labels = (status.label, status.url)
            if status.block_height.ok:
                self.block_height.labels(*labels).set(status.block_height.value)
            if status.peer_count.ok:
                self.peer_count.labels(*labels).set(status.peer_count.value)
            if status.mining.ok:
                self.is_mining.labels(*labels).set(1.0 if status.mining.value else 0.0)

    async def scrape(self) -> bytes:
        """Run one full scrape pass and return the exposition text."""
        async with self._lock:
            await self.collect()
            return generate_latest(self.registry)


def create_metrics_app(bridge: MetricsBridge) -> FastAPI:
    """
    Create the exporter application.

    Args:
        bridge: Metrics bridge answering /metrics

    Returns:
        FastAPI application
    """
    app = FastAPI(
        title="Ethereum Peer Mesh Exporter",
        version="1.0.0",
        docs_url=None,
        redoc_url=None
    )

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=await bridge.scrape(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health", response_class=PlainTextResponse)
    async def health() -> str:
        return "OK"

    return app


class _ExporterServer(uvicorn.Server):
    """uvicorn server that reports once its sockets are bound."""

    def __init__(self, config: uvicorn.Config, logger) -> None:
        super().__init__(config)
        self.logger = logger

    async def startup(self, sockets=None) -> None:
        # uvicorn exits from startup when the port cannot be bound
        await super().startup(sockets=sockets)
        if self.started:
            self.logger.info(f"Metrics server listening on {self.config.host}:{self.config.port}")


class MetricsServer:
    """uvicorn wrapper serving the exporter application."""

    def __init__(self, bridge: MetricsBridge, port: int = 9545, host: str = "0.0.0.0") -> None:
        self.bridge = bridge
        self.port = port
        self.host = host
        self.app = create_metrics_app(bridge)
        self.logger = logger_manager.get_logger("MetricsServer")

    async def serve(self) -> None:
        """
        Serve until shutdown.

        Raises:
            SystemExit: If uvicorn cannot bind the port
        """
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False
        )
        await _ExporterServer(config, self.logger).serve()
        self.logger.info("Metrics server stopped")
