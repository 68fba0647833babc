# models/node_status.py
"""
Data models for per-node status snapshots and peer introduction results.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Generic, List, Optional, Tuple, TypeVar

from infrastructure.errors import NodeError

T = TypeVar("T")


@dataclass(frozen=True)
class FieldResult(Generic[T]):
    """Either a fetched value or the error that prevented fetching it."""
    value: Optional[T] = None
    error: Optional[NodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def describe(self) -> str:
        """Render for the status table: the value, or an inline error."""
        if self.error is not None:
            return f"Error - {self.error}"
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)


async def capture(fetch: Awaitable[T]) -> FieldResult[T]:
    """
    Await a node accessor and record its outcome.

    Only node failures are captured; anything else is a bug and propagates.
    """
    try:
        return FieldResult(value=await fetch)
    except NodeError as e:
        return FieldResult(error=e)


@dataclass
class NodeStatus:
    """Status of one node at snapshot time."""
    index: int
    url: str
    block_height: FieldResult[int]
    peer_count: FieldResult[int]
    mining: FieldResult[bool]

    @property
    def label(self) -> str:
        """Ordinal label used for metrics, e.g. node-1."""
        return f"node-{self.index}"

    @property
    def healthy(self) -> bool:
        return self.block_height.ok and self.peer_count.ok and self.mining.ok

    def lines(self) -> List[str]:
        return [
            f"Node {self.index} ({self.url}):",
            f"  Block: {self.block_height.describe()}",
            f"  Peers: {self.peer_count.describe()}",
            f"  Mining: {self.mining.describe()}",
        ]


def format_network_status(snapshot: List[NodeStatus]) -> str:
    """Render a snapshot as the human readable status table."""
    out = ["", "=== Network Status ==="]
    for status in snapshot:
        out.append("")
        out.extend(status.lines())
    out.append("")
    return "\n".join(out)


@dataclass
class PeerIntroduction:
    """
    Outcome of one full-mesh introduction pass.

    Attributes:
        enodes: Rewritten enode per node, in registry order
        attempted: Number of admin_addPeer calls attempted
        connected: (from, to) ordinals of accepted introductions
        failures: (from, to, error) for failed introductions
    """
    enodes: List[str] = field(default_factory=list)
    attempted: int = 0
    connected: List[Tuple[int, int]] = field(default_factory=list)
    failures: List[Tuple[int, int, Any]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failures
