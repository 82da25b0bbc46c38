import asyncio
import struct
from typing import Optional

from .errors import FrameError, PeerClosedError, ReceiveTimeout, TransportError

"""
framing.py — raw byte transport + length-prefixed framing for asyncio streams.

Two layers:
- StreamTransport: the bare Transport collaborator. send(bytes) writes,
  receive() does ONE bounded read (up to max_read bytes). An empty read means
  the peer closed. Optional receive timeout so a silent peer can't hang us.
- FramedChannel: what sessions actually talk through. Each message is a
  4-byte big-endian length (N) + N payload bytes. An internal buffer lets one
  frame arrive over several reads, or several frames in one read, without
  desyncing the handshake.

Anything that has async send/receive/close can sit under FramedChannel
(tests use an in-memory pair).
"""

MAX_READ = 1024                       # bytes per transport read
MAX_FRAME_SIZE = 64 * 1024            # nothing in the handshake comes close
LENGTH_STRUCT = struct.Struct("!I")   # big-endian unsigned 32-bit length


class StreamTransport:
    """Owns one asyncio reader/writer pair for the life of a session."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        max_read: int = MAX_READ,
        timeout: Optional[float] = None,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.max_read = max_read
        self.timeout = timeout

    @property
    def peername(self) -> str:
        return str(self.writer.get_extra_info("peername"))

    async def send(self, data: bytes) -> None:
        """Write everything and wait for the buffer to drain."""
        try:
            self.writer.write(data)
            await self.writer.drain()
        except (ConnectionError, OSError) as exc:
            raise TransportError(f"Write failed: {exc}") from exc

    async def receive(self) -> bytes:
        """One read of at most max_read bytes. b"" means EOF."""
        try:
            if self.timeout is None:
                return await self.reader.read(self.max_read)
            return await asyncio.wait_for(self.reader.read(self.max_read), self.timeout)
        except asyncio.TimeoutError as exc:
            # Must come before OSError: TimeoutError subclasses it on 3.11+.
            raise ReceiveTimeout(f"No data within {self.timeout}s") from exc
        except (ConnectionError, OSError) as exc:
            raise TransportError(f"Read failed: {exc}") from exc

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass  # already gone; nothing left to flush


class FramedChannel:
    """send_frame / receive_frame on top of any Transport."""

    def __init__(self, transport) -> None:
        self.transport = transport
        self._buffer = bytearray()

    async def send_frame(self, payload: bytes) -> None:
        if len(payload) > MAX_FRAME_SIZE:
            raise FrameError(f"Frame too large: {len(payload)} > {MAX_FRAME_SIZE}")
        await self.transport.send(LENGTH_STRUCT.pack(len(payload)) + bytes(payload))

    async def receive_frame(self) -> bytes:
        """
        Return exactly one frame's payload.

        Raises:
            PeerClosedError: EOF before a complete frame (never an empty message).
            FrameError: the announced length is over the cap.
            ReceiveTimeout / TransportError: from the transport.
        """
        # 1) Length prefix.
        await self._fill(LENGTH_STRUCT.size)
        (length,) = LENGTH_STRUCT.unpack_from(self._buffer)

        # Cap is checked before the body is buffered.
        if length > MAX_FRAME_SIZE:
            raise FrameError(f"Frame too large: {length} > {MAX_FRAME_SIZE}")

        # 2) Body; leftover bytes stay buffered for the next frame.
        end = LENGTH_STRUCT.size + length
        await self._fill(end)
        payload = bytes(self._buffer[LENGTH_STRUCT.size:end])
        del self._buffer[:end]
        return payload

    async def _fill(self, n: int) -> None:
        while len(self._buffer) < n:
            chunk = await self.transport.receive()
            if not chunk:
                raise PeerClosedError(
                    f"Peer closed with {len(self._buffer)} of {n} bytes buffered"
                )
            self._buffer.extend(chunk)

    async def close(self) -> None:
        await self.transport.close()
