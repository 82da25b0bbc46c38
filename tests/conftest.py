"""Shared fixtures: an in-memory transport pair that records every byte written."""

import asyncio
from typing import List, Optional, Tuple

import pytest

from hcap.errors import TransportError
from hcap.framing import FramedChannel
from hcap.identity import IdentityStore


class MemoryTransport:
    """
    One end of an in-memory duplex pipe with the StreamTransport interface.

    `chunk_size` splits every send into pieces so framing has to reassemble.
    close() delivers b"" to the peer, exactly like a TCP FIN.
    """

    def __init__(self, inbox: asyncio.Queue, outbox: asyncio.Queue, wire: List[bytes], chunk_size: Optional[int] = None) -> None:
        self.inbox = inbox
        self.outbox = outbox
        self.wire = wire
        self.chunk_size = chunk_size
        self.sent: List[bytes] = []
        self.closed = False

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise TransportError("send on closed transport")
        data = bytes(data)
        self.sent.append(data)
        self.wire.append(data)
        step = self.chunk_size or len(data) or 1
        for i in range(0, len(data), step):
            await self.outbox.put(data[i:i + step])

    async def receive(self) -> bytes:
        return await self.inbox.get()

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self.outbox.put(b"")


def make_pair(chunk_size: Optional[int] = None) -> Tuple[MemoryTransport, MemoryTransport, List[bytes]]:
    """Build (server_end, client_end, wire). Call from inside a running event loop."""
    a_to_b: asyncio.Queue = asyncio.Queue()
    b_to_a: asyncio.Queue = asyncio.Queue()
    wire: List[bytes] = []
    server_end = MemoryTransport(inbox=b_to_a, outbox=a_to_b, wire=wire, chunk_size=chunk_size)
    client_end = MemoryTransport(inbox=a_to_b, outbox=b_to_a, wire=wire, chunk_size=chunk_size)
    return server_end, client_end, wire


def make_channels(chunk_size: Optional[int] = None):
    """(server_channel, client_channel, wire) over a fresh memory pair."""
    server_end, client_end, wire = make_pair(chunk_size)
    return FramedChannel(server_end), FramedChannel(client_end), wire


async def run_both(server_session, client_session):
    """Drive both roles concurrently; returns (server_outcome, client_outcome)."""
    return await asyncio.gather(server_session.run(), client_session.run())


@pytest.fixture
def identities() -> IdentityStore:
    """The demo single principal: admin / pass123."""
    return IdentityStore.default()


@pytest.fixture
def multi_identities() -> IdentityStore:
    store = IdentityStore.default()
    store.add("alice", "alice-secret", "alice-pw")
    store.add("bob", b"\x00\x01binary-secret", "bob-pw")
    return store


@pytest.fixture
def channel_pair():
    """Factory: channel_pair(chunk_size=None) -> (server_channel, client_channel, wire)."""
    return make_channels


@pytest.fixture
def memory_pair():
    """Factory: memory_pair(chunk_size=None) -> (server_end, client_end, wire)."""
    return make_pair


@pytest.fixture
def drive():
    """drive(server_session, client_session) coroutine -> (server_outcome, client_outcome)."""
    return run_both
