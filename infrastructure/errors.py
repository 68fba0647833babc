"""
Error types raised by node handles and the peer manager.
"""

from typing import Optional


class NodeError(Exception):
    """Base class for failures talking to a single node."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class TransportError(NodeError):
    """Connection or call level failure against an endpoint, timeouts included."""


class ProtocolError(NodeError):
    """The endpoint answered, but with a malformed or unexpected response."""


class NoNodesAvailable(Exception):
    """Every configured address failed to connect."""
