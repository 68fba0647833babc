"""
Infrastructure components for talking to the managed nodes.

Import PeerManager from infrastructure.peer_manager directly.
"""

from .errors import NodeError, TransportError, ProtocolError, NoNodesAvailable
from .node import Node, Deadline, ProductionStatusStrategy, block_height_fallback

__all__ = [
    'Node',
    'Deadline',
    'ProductionStatusStrategy',
    'block_height_fallback',
    'NodeError',
    'TransportError',
    'ProtocolError',
    'NoNodesAvailable'
]
