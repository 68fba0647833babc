#!/usr/bin/env python3
"""
Peer manager for a fixed set of geth nodes.

Owns the ordered node registry, links every node to every other node and
collects per-node status snapshots.

File: infrastructure/peer_manager.py
Class: PeerManager
Methods: connect, introduce_peers, get_status_snapshot, close
"""

import asyncio
from typing import Callable, List, Optional, Sequence

from infrastructure.errors import NoNodesAvailable, NodeError
from infrastructure.node import Deadline, Node
from models.node_status import NodeStatus, PeerIntroduction, capture
from utils.logger import logger_manager


DEFAULT_PEER_HOST_TEMPLATE = "geth-node{index}"


def rewrite_enode(enode: str, index: int, host_template: str = DEFAULT_PEER_HOST_TEMPLATE) -> str:
    """
    Replace the host of an enode URL with the name peers know the node by.

    Nodes are administered through loopback addresses, but reach each other
    by container name. "enode://<key>@127.0.0.1:30303" for node 2 becomes
    "enode://<key>@geth-node2:30303". Strings not shaped like
    "<credential>@<host>:<port>" are returned unchanged.
    """
    parts = enode.split("@")
    if len(parts) != 2:
        return enode

    host_port = parts[1].split(":")
    if len(host_port) != 2:
        return enode

    host = host_template.format(index=index)
    return f"{parts[0]}@{host}:{host_port[1]}"


class PeerManager:
    """
    Registry of connected nodes.

    The node order never changes after construction and only determines
    the display ordinals (node 1, node 2, ...).
    """

    def __init__(
        self,
        nodes: Sequence[Node],
        timeout_seconds: float = 10.0,
        peer_host_template: str = DEFAULT_PEER_HOST_TEMPLATE
    ) -> None:
        if not nodes:
            raise NoNodesAvailable("no nodes connected")
        self.nodes = tuple(nodes)
        self.timeout_seconds = timeout_seconds
        self.peer_host_template = peer_host_template
        self.logger = logger_manager.get_logger("PeerManager")

    @classmethod
    async def connect(
        cls,
        urls: Sequence[str],
        timeout_seconds: float = 10.0,
        peer_host_template: str = DEFAULT_PEER_HOST_TEMPLATE,
        connector: Callable[[str, float], Node] = Node.connect
    ) -> "PeerManager":
        """
        Connect to every address, skipping the ones that fail.

        Args:
            urls: Node addresses in display order
            timeout_seconds: Per-call timeout for the nodes
            peer_host_template: Host template used when rewriting enodes
            connector: Factory creating a connected Node for one address

        Returns:
            PeerManager over the reachable nodes, in their original order

        Raises:
            NoNodesAvailable: If no address could be connected
        """
        logger = logger_manager.get_logger("PeerManager")
        loop = asyncio.get_running_loop()

        attempts = [
            loop.run_in_executor(None, connector, url, timeout_seconds)
            for url in urls
        ]
        results = await asyncio.gather(*attempts, return_exceptions=True)

        nodes: List[Node] = []
        for url, result in zip(urls, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to connect to {url}: {result}")
                continue
            logger.info(f"Connected to {url}")
            nodes.append(result)

        if not nodes:
            raise NoNodesAvailable(f"no nodes connected out of {len(urls)} configured")

        return cls(nodes, timeout_seconds=timeout_seconds, peer_host_template=peer_host_template)

    def __len__(self) -> int:
        return len(self.nodes)

    async def introduce_peers(self, deadline: Optional[Deadline] = None) -> PeerIntroduction:
        """
        Link every node to every other node.

        First reads each node's enode; any failure there aborts the whole
        operation. Then every ordered pair (i, j), i != j, gets an
        admin_addPeer call. Pair failures are logged and recorded, never
        raised, so exactly n*(n-1) calls are attempted.

        Args:
            deadline: Overall deadline, defaults to timeout_seconds * n

        Returns:
            PeerIntroduction describing the attempted links

        Raises:
            NodeError: If any node's enode could not be read
        """
        if deadline is None:
            deadline = Deadline(self.timeout_seconds * len(self.nodes))

        self.logger.info("Connecting peers...")
        report = PeerIntroduction()

        for i, node in enumerate(self.nodes, start=1):
            try:
                enode = await node.get_enode(deadline=deadline)
            except NodeError as e:
                self.logger.error(f"Failed to get enode from node {i}: {e}")
                raise

            enode = rewrite_enode(enode, i, self.peer_host_template)
            report.enodes.append(enode)
            self.logger.info(f"Node {i} enode: {enode}")

        for i, node in enumerate(self.nodes, start=1):
            for j, enode in enumerate(report.enodes, start=1):
                if i == j:
                    continue

                report.attempted += 1
                try:
                    accepted = await node.add_peer(enode, deadline=deadline)
                except NodeError as e:
                    self.logger.warning(f"Failed to add peer from node{i} to node{j}: {e}")
                    report.failures.append((i, j, e))
                    continue

                if accepted:
                    self.logger.info(f"✓ Connected node{i} -> node{j}")
                    report.connected.append((i, j))
                else:
                    self.logger.warning(f"Node{i} did not accept node{j} as a peer")
                    report.failures.append((i, j, "admin_addPeer returned false"))

        self.logger.info(
            f"Peer introduction finished: {len(report.connected)}/{report.attempted} links accepted"
        )
        return report

    async def _node_status(self, index: int, node: Node, deadline: Optional[Deadline]) -> NodeStatus:
        # The three fields are fetched one after the other, each on its own
        block_height = await capture(node.get_block_height(deadline=deadline))
        peer_count = await capture(node.get_peer_count(deadline=deadline))
        mining = await capture(node.is_mining(deadline=deadline))

        status = NodeStatus(
            index=index,
            url=node.url,
            block_height=block_height,
            peer_count=peer_count,
            mining=mining
        )
        if not status.healthy:
            self.logger.warning(f"Incomplete status for node {index} ({node.url})")
        return status

    async def get_status_snapshot(self, deadline: Optional[Deadline] = None) -> List[NodeStatus]:
        """
        Fetch block height, peer count and mining status of every node.

        Nodes are queried concurrently. A failure only affects the field it
        happened in.

        Args:
            deadline: Optional overall deadline for the whole pass

        Returns:
            One NodeStatus per node, in registry order
        """
        return list(await asyncio.gather(*(
            self._node_status(i, node, deadline)
            for i, node in enumerate(self.nodes, start=1)
        )))

    def close(self) -> None:
        """Close every node connection."""
        for node in self.nodes:
            try:
                node.close()
            except Exception as e:
                self.logger.debug(f"Error closing {node.url}: {e}")

    def __str__(self) -> str:
        return f"PeerManager({len(self.nodes)} nodes)"
