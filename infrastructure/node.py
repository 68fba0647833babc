#!/usr/bin/env python3
"""
Node handle for a single Ethereum JSON-RPC endpoint.

Wraps one web3 HTTP connection and exposes the typed accessors the peer
manager needs. Every call is attempted once and bounded by a timeout; there
is no caching and no retry.

File: infrastructure/node.py
Class: Node
Methods: connect, call, get_block_height, get_peer_count, get_enode, add_peer, is_mining, close
"""

import asyncio
import re
import time
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, Optional

import requests
from web3 import Web3
from web3.providers import HTTPProvider

from infrastructure.errors import NodeError, ProtocolError, TransportError
from utils.logger import logger_manager

# JSON-RPC quantity: 0x prefix, hex digits only, never signed
HEX_QUANTITY = re.compile(r"0x[0-9a-fA-F]+")


class Deadline:
    """A monotonic expiry shared by all the calls of one operation."""

    def __init__(self, budget_seconds: float) -> None:
        self.budget_seconds = budget_seconds
        self.expires_at = time.monotonic() + budget_seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining():.2f}s)"


logger = logger_manager.get_logger("ProductionStatus")


async def block_height_fallback(node: "Node", deadline: Optional[Deadline] = None) -> bool:
    """
    Infer block production from the chain head.

    A head above genesis means blocks are being produced. If the head cannot
    be read the answer is False, not an error.
    """
    try:
        height = await node.get_block_height(deadline=deadline)
    except NodeError as e:
        logger.debug(f"Height fallback failed for {node.url}, reporting not mining: {e}")
        return False
    return height > 0


class ProductionStatusStrategy:
    """
    Decides whether a node is producing blocks.

    The primary check is the legacy eth_mining call. Recent geth releases
    (1.14+) dropped it, so when it fails the fallback policy is consulted.
    The default fallback swallows its own failure and reports False, which
    means "cannot tell" and "not producing" are indistinguishable downstream.
    """

    primary_method = "eth_mining"

    def __init__(
        self,
        fallback: Callable[["Node", Optional[Deadline]], Awaitable[bool]] = block_height_fallback
    ) -> None:
        self.fallback = fallback

    async def resolve(self, node: "Node", deadline: Optional[Deadline] = None) -> bool:
        try:
            result = await node.call(self.primary_method, deadline=deadline)
        except NodeError as e:
            logger.debug(f"{self.primary_method} unavailable on {node.url}: {e}")
            return await self.fallback(node, deadline)

        if not isinstance(result, bool):
            logger.debug(f"{self.primary_method} returned {result!r} on {node.url}, using fallback")
            return await self.fallback(node, deadline)

        return result


class Node:
    """
    Handle to one remote node.

    Attributes:
        url: Endpoint address, fixed for the lifetime of the handle
        web3: Web3 instance bound to the endpoint
        timeout_seconds: Upper bound for any single call
    """

    def __init__(
        self,
        url: str,
        web3: Web3,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
        production_status: Optional[ProductionStatusStrategy] = None
    ) -> None:
        self._url = url
        self.web3 = web3
        self.timeout_seconds = timeout_seconds
        self._session = session
        self.production_status = production_status or ProductionStatusStrategy()
        self.logger = logger_manager.get_logger("Node")

    @property
    def url(self) -> str:
        return self._url

    @classmethod
    def connect(cls, url: str, timeout_seconds: float = 10.0) -> "Node":
        """
        Open a connection to a node and check that it answers.

        Args:
            url: HTTP(S) JSON-RPC endpoint
            timeout_seconds: Request timeout used for every call

        Returns:
            Connected Node

        Raises:
            TransportError: If the endpoint is unusable or unreachable
        """
        if not url.startswith(("http://", "https://")):
            raise TransportError(f"unsupported endpoint {url!r}, expected http(s)", url)

        session = requests.Session()
        provider = HTTPProvider(
            url,
            request_kwargs={"timeout": timeout_seconds},
            session=session,
            exception_retry_configuration=None  # one attempt per call
        )
        web3 = Web3(provider)

        if not web3.is_connected():
            session.close()
            raise TransportError(f"failed to connect to {url}", url)

        return cls(url, web3, timeout_seconds=timeout_seconds, session=session)

    def _timeout(self, what: str, deadline: Optional[Deadline]) -> float:
        if deadline is None:
            return self.timeout_seconds
        remaining = deadline.remaining()
        if remaining <= 0:
            raise TransportError(f"{what}: deadline exceeded", self.url)
        return min(self.timeout_seconds, remaining)

    async def _run(self, what: str, fn: Callable[[], Any], deadline: Optional[Deadline]) -> Any:
        """Run a blocking web3 call in the executor, bounded by a timeout."""
        timeout = self._timeout(what, deadline)
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(loop.run_in_executor(None, fn), timeout)
        except asyncio.TimeoutError:
            raise TransportError(f"{what} timed out after {timeout:.1f}s", self.url) from None
        except NodeError:
            raise
        except Exception as e:
            raise TransportError(f"{what} failed: {e}", self.url) from e

    async def call(self, method: str, *params: Any, deadline: Optional[Deadline] = None) -> Any:
        """
        Generic JSON-RPC call.

        Args:
            method: RPC method name, e.g. "net_peerCount"
            *params: Positional parameters
            deadline: Optional deadline shared with sibling calls

        Returns:
            The "result" member of the response

        Raises:
            TransportError: Transport failure, timeout or a JSON-RPC error
            ProtocolError: Response without result or error
        """
        response = await self._run(
            method,
            lambda: self.web3.provider.make_request(method, list(params)),
            deadline
        )

        if not isinstance(response, Mapping):
            raise ProtocolError(f"{method}: unexpected response {response!r}", self.url)

        error = response.get("error")
        if error is not None:
            if isinstance(error, Mapping):
                message = f"{error.get('message', 'unknown error')} (code {error.get('code')})"
            else:
                message = str(error)
            raise TransportError(f"{method}: {message}", self.url)

        if "result" not in response:
            raise ProtocolError(f"{method}: response has no result", self.url)

        return response["result"]

    async def get_latest_header(self, deadline: Optional[Deadline] = None) -> Mapping:
        """Fetch the latest block header."""
        header = await self._run(
            "eth_getBlockByNumber",
            lambda: self.web3.eth.get_block("latest"),
            deadline
        )
        if not isinstance(header, Mapping):
            raise ProtocolError(f"unexpected block header {header!r}", self.url)
        return header

    async def get_block_height(self, deadline: Optional[Deadline] = None) -> int:
        """Current block height."""
        header = await self.get_latest_header(deadline=deadline)
        number = header.get("number")
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            raise ProtocolError(f"block header has invalid number {number!r}", self.url)
        return number

    async def get_peer_count(self, deadline: Optional[Deadline] = None) -> int:
        """Number of connected peers, decoded from the hex quantity."""
        result = await self.call("net_peerCount", deadline=deadline)
        if not isinstance(result, str):
            raise ProtocolError(f"net_peerCount returned {result!r}, expected hex string", self.url)
        if not HEX_QUANTITY.fullmatch(result):
            raise ProtocolError(f"net_peerCount returned malformed hex {result!r}", self.url)
        return int(result, 16)

    async def get_enode(self, deadline: Optional[Deadline] = None) -> str:
        """The node's enode URL from admin_nodeInfo."""
        result = await self.call("admin_nodeInfo", deadline=deadline)
        enode = result.get("enode") if isinstance(result, Mapping) else None
        if not isinstance(enode, str):
            raise ProtocolError("enode not found", self.url)
        return enode

    async def add_peer(self, enode: str, deadline: Optional[Deadline] = None) -> bool:
        """Ask the node to add a peer. Returns the node's acceptance flag."""
        result = await self.call("admin_addPeer", enode, deadline=deadline)
        return result is True

    async def is_mining(self, deadline: Optional[Deadline] = None) -> bool:
        """Whether the node is producing blocks, see ProductionStatusStrategy."""
        return await self.production_status.resolve(self, deadline)

    def close(self) -> None:
        """Release the HTTP session."""
        if self._session is not None:
            self._session.close()

    def __repr__(self) -> str:
        return f"Node({self.url!r})"
