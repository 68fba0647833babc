"""
Shared fixtures and fakes for the test suite.

FakeWeb3 stands in for a web3 connection: a provider answering make_request
from a table of canned results, and an eth namespace serving get_block.
"""

import os
import tempfile
import time

# Keep rotating log files out of the working tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="eth-peer-mesh-logs-"))

import pytest

from infrastructure.node import Node


def rpc_result(value):
    return {"jsonrpc": "2.0", "id": 1, "result": value}


def rpc_error(message, code=-32601):
    return {"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}}


def slow(seconds, value):
    """Handler that answers after a delay."""
    def handler(params):
        time.sleep(seconds)
        return rpc_result(value)
    return handler


class FakeProvider:
    """
    Canned JSON-RPC provider.

    responses maps a method name to a plain value (returned as result), an
    exception instance (raised), or a callable taking params and returning a
    full response dict. Unknown methods get a "method not found" error.
    """

    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []

    def make_request(self, method, params):
        self.calls.append((method, list(params)))
        if method not in self.responses:
            return rpc_error(f"the method {method} does not exist/is not available")
        handler = self.responses[method]
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(params)
        return rpc_result(handler)

    def methods(self):
        return [method for method, _ in self.calls]


class FakeEth:
    def __init__(self, block):
        self.block = block
        self.requests = 0

    def get_block(self, identifier):
        self.requests += 1
        if isinstance(self.block, Exception):
            raise self.block
        return self.block


class FakeWeb3:
    def __init__(self, responses=None, block=None):
        self.provider = FakeProvider(responses or {})
        self.eth = FakeEth(block if block is not None else {"number": 0})


def enode_for(index):
    return f"enode://{'ab' * 32}{index}@127.0.0.1:3030{index}"


def make_node(
    url="http://127.0.0.1:8545",
    height=10,
    peers="0x2",
    mining=True,
    enode=None,
    timeout_seconds=1.0,
    **overrides
):
    """
    Build a Node over a FakeWeb3.

    height may be an exception to make header fetches fail. Extra keyword
    arguments override individual RPC methods by name.
    """
    responses = {
        "net_peerCount": peers,
        "eth_mining": mining,
        "admin_nodeInfo": {"enode": enode or enode_for(1), "name": "Geth/v1.13.15"},
        "admin_addPeer": True,
    }
    responses.update(overrides)
    block = height if isinstance(height, Exception) else {"number": height}
    web3 = FakeWeb3(responses, block)
    return Node(url, web3, timeout_seconds=timeout_seconds)


@pytest.fixture
def three_nodes():
    return [
        make_node(url=f"http://127.0.0.1:854{4 + i}", height=100 + i, peers=hex(i), enode=enode_for(i))
        for i in range(1, 4)
    ]
