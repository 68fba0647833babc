#!/usr/bin/env python3
"""
Command line entry point for the Ethereum peer mesh tool.

Connects to the configured nodes, then optionally links them as peers,
prints their status once or continuously, and/or serves Prometheus metrics.

Usage:
    python main.py -status
    python main.py --connect --exporter --port 9545
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from api.metrics_server import MetricsBridge, MetricsServer
from config.settings import parse_node_urls, settings
from infrastructure.errors import NoNodesAvailable, NodeError
from infrastructure.peer_manager import PeerManager
from models.node_status import format_network_status
from utils.logger import logger_manager

logger = logger_manager.get_logger("Main")

USAGE = """
📚 Usage:
  --connect   Connect all nodes as peers
  --status    Show network status
  --watch     Watch network status (updates every {interval:g}s)
  --exporter  Start Prometheus metrics exporter
  --port      Exporter port (default: {port})
  --nodes     Comma separated node URLs (default: NODE_URLS)

Example: python main.py --status"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ethereum private network peer mesh and status exporter")
    parser.add_argument("--connect", "-connect", action="store_true", help="Connect all nodes as peers")
    parser.add_argument("--status", "-status", action="store_true", help="Show network status")
    parser.add_argument(
        "--watch", "-watch", action="store_true",
        help=f"Watch network status (updates every {settings.exporter.watch_interval_seconds:g}s)"
    )
    parser.add_argument("--exporter", "-exporter", action="store_true", help="Start Prometheus exporter")
    parser.add_argument("--port", "-port", type=int, default=settings.exporter.port, help="Metrics exporter port")
    parser.add_argument("--nodes", type=str, help="Comma separated list of node URLs")
    return parser


async def print_status(manager: PeerManager) -> None:
    snapshot = await manager.get_status_snapshot()
    print(format_network_status(snapshot))


async def watch_status(manager: PeerManager, interval: float) -> None:
    """Print network status forever, every interval seconds."""
    print("👁️  Watching network status (Ctrl+C to stop)...")
    while True:
        await print_status(manager)
        await asyncio.sleep(interval)


async def run(args: argparse.Namespace) -> int:
    """
    Execute the selected operations.

    Returns:
        Process exit code
    """
    node_urls: List[str] = parse_node_urls(args.nodes) or settings.network.node_urls

    print("🔗 Connecting to Ethereum nodes...")
    try:
        manager = await PeerManager.connect(
            node_urls,
            timeout_seconds=settings.network.rpc_timeout_seconds,
            peer_host_template=settings.network.peer_host_template
        )
    except NoNodesAvailable as e:
        logger.error(f"❌ Failed to create peer manager: {e}")
        return 1

    try:
        print(f"✅ Connected to {len(manager)} nodes")

        if args.connect:
            try:
                await manager.introduce_peers()
            except NodeError as e:
                logger.error(f"❌ Failed to connect peers: {e}")
                return 1
            await asyncio.sleep(settings.network.peer_settle_seconds)
            await print_status(manager)

        if args.status:
            await print_status(manager)

        background: List[asyncio.Task] = []
        if args.watch:
            background.append(asyncio.create_task(
                watch_status(manager, settings.exporter.watch_interval_seconds)
            ))

        if args.exporter:
            bridge = MetricsBridge(manager, scrape_timeout_seconds=settings.exporter.scrape_timeout_seconds)
            server = MetricsServer(bridge, port=args.port, host=settings.exporter.host)

            print(f"\n📊 Starting Prometheus exporter on port {args.port}...")
            print(f"📈 Metrics: http://localhost:{args.port}/metrics")
            print("Press Ctrl+C to stop")

            try:
                await server.serve()
            except SystemExit:
                logger.error(f"❌ Failed to start exporter on port {args.port}")
                return 1
            finally:
                for task in background:
                    task.cancel()
                await asyncio.gather(*background, return_exceptions=True)
        elif background:
            await asyncio.gather(*background)

        if not (args.connect or args.status or args.watch or args.exporter):
            await print_status(manager)
            print(USAGE.format(
                interval=settings.exporter.watch_interval_seconds,
                port=settings.exporter.port
            ))

        return 0
    finally:
        manager.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    errors = settings.validate_configuration()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("\nShutdown complete")
        return 0


if __name__ == "__main__":
    sys.exit(main())
