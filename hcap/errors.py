"""
errors.py — exception taxonomy for HCAP.

Setup failures (socket/bind/listen/connect) are fatal to the process.
Everything else is fatal to the current session only; the server keeps
serving later connections.

A wrong digest or credential is NOT an exception: it is Verdict.FAILURE.
"""


class HCAPError(Exception):
    pass


class TransportSetupError(HCAPError):
    """Could not create, bind, listen on, or connect a socket."""


class TransportError(HCAPError):
    """Mid-session read/write failure. The session ends without a verdict."""


class PeerClosedError(TransportError):
    """Peer closed the connection (zero-byte read) before a full message arrived."""


class ReceiveTimeout(TransportError):
    """No bytes arrived within the configured receive timeout."""


class FrameError(TransportError):
    """Length prefix is malformed or exceeds the frame size cap."""


class RandomnessUnavailable(HCAPError):
    """The OS entropy source could not produce a challenge."""


class ProtocolError(HCAPError):
    """Peer sent something the state machine cannot act on."""
