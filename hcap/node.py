import asyncio
from typing import Any, Callable, List, Optional

from .errors import HCAPError, ProtocolError, RandomnessUnavailable, TransportError, TransportSetupError
from .framing import MAX_READ, FramedChannel, StreamTransport
from .log import get_logger
from .messages import SessionOutcome

"""
node.py — socket bootstrap for both roles.

- AuthServer binds, accepts, and runs one session per connection (one at a
  time). A session that dies on a transport/entropy/protocol error is logged
  and dropped; the next connection still gets served.
- open_client() connects and hands back a FramedChannel ready for a client
  session.

Setup failures (bind/listen/connect) surface as TransportSetupError; the
CLI treats those as fatal.
"""

logger = get_logger(__name__)

# Builds a fresh session object around a channel; must expose `async run()`.
SessionFactory = Callable[[FramedChannel], Any]


class AuthServer:
    def __init__(
        self,
        host: str,
        port: int,
        session_factory: SessionFactory,
        max_sessions: Optional[int] = 1,
        timeout: Optional[float] = None,
        max_read: int = MAX_READ,
    ) -> None:
        self.host = host
        self.port = port
        self.session_factory = session_factory
        self.max_sessions = max_sessions
        self.timeout = timeout
        self.max_read = max_read
        self.outcomes: List[SessionOutcome] = []
        self.failures: List[HCAPError] = []
        self._handled = 0
        self._server: Optional[asyncio.AbstractServer] = None
        self._done: Optional[asyncio.Event] = None
        self._lock: Optional[asyncio.Lock] = None

    async def start(self) -> None:
        """Bind + listen. Port 0 picks a free port (see bound_port)."""
        self._done = asyncio.Event()
        self._lock = asyncio.Lock()
        try:
            self._server = await asyncio.start_server(self.handle_conn, self.host, self.port)
        except OSError as exc:
            raise TransportSetupError(f"Cannot listen on {self.host}:{self.port}: {exc}") from exc
        addrs = ", ".join(str(sock.getsockname()) for sock in self._server.sockets or [])
        logger.info("Server listening on %s", addrs)

    @property
    def bound_port(self) -> int:
        if self._server is None or not self._server.sockets:
            raise RuntimeError("Server is not listening")
        return self._server.sockets[0].getsockname()[1]

    async def serve(self) -> List[SessionOutcome]:
        """Serve until max_sessions connections were handled (forever if None)."""
        if self._server is None:
            await self.start()
        try:
            await self._done.wait()
        finally:
            self._server.close()
            await self._server.wait_closed()
        return self.outcomes

    async def handle_conn(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """One connection == one session. Errors stay inside this connection."""
        transport = StreamTransport(reader, writer, max_read=self.max_read, timeout=self.timeout)
        peer = transport.peername
        async with self._lock:
            logger.info("Connection from %s", peer)
            try:
                outcome = await self.session_factory(FramedChannel(transport)).run()
                self.outcomes.append(outcome)
            except (TransportError, RandomnessUnavailable, ProtocolError) as exc:
                logger.error("Session with %s aborted: %s: %s", peer, type(exc).__name__, exc)
                self.failures.append(exc)
                await transport.close()
            finally:
                self._handled += 1
                if self.max_sessions is not None and self._handled >= self.max_sessions:
                    self._done.set()


async def open_client(
    host: str,
    port: int,
    timeout: Optional[float] = None,
    max_read: int = MAX_READ,
) -> FramedChannel:
    """Connect to host:port; the timeout also bounds the connect itself."""
    try:
        reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
    except (OSError, asyncio.TimeoutError) as exc:
        raise TransportSetupError(f"Cannot connect to {host}:{port}: {exc}") from exc
    logger.info("Connected to %s:%s", host, port)
    return FramedChannel(StreamTransport(reader, writer, max_read=max_read, timeout=timeout))
