"""
session.py — the challenge-response handshake, server and client roles.

Flow (one round-trip, no retries):

    client                               server
    ------                               ------
    IDLE
      greeting  ───────────────────────▶ AWAIT_GREETING
    GREETING_SENT                          │ fresh 16-byte challenge
                ◀─────────────────────── CHALLENGE_SENT
    CHALLENGE_RECEIVED                     │
      HMAC(secret, challenge) ─────────▶ AWAIT_RESPONSE
    DIGEST_SENT                            │ recompute + constant-time compare
                ◀─────────────────────── VERIFIED (verdict text, then close)
    DONE

The secret is only ever an input to compute_digest(); the only bytes on the
wire are the greeting, the public challenge, the digest, and the verdict.
"""

from enum import Enum
from typing import Callable, Optional, Union

from .crypto import (
    CHALLENGE_SIZE,
    compute_digest,
    constant_time_equal,
    encode_secret,
    generate_challenge,
)
from .errors import ProtocolError
from .identity import IdentityStore
from .log import get_logger
from .messages import (
    FAILURE_TEXT,
    HMAC_SUCCESS_TEXT,
    SessionOutcome,
    Verdict,
    build_greeting,
    decode_text,
    parse_greeting,
)

logger = get_logger(__name__)

SCHEME = "hmac"


class ServerState(str, Enum):
    AWAIT_GREETING = "await_greeting"
    CHALLENGE_SENT = "challenge_sent"
    AWAIT_RESPONSE = "await_response"
    VERIFIED = "verified"


class ClientState(str, Enum):
    IDLE = "idle"
    GREETING_SENT = "greeting_sent"
    CHALLENGE_RECEIVED = "challenge_received"
    DIGEST_SENT = "digest_sent"
    DONE = "done"


class ChallengeServerSession:
    """
    Server side of one handshake over one FramedChannel.

    The channel is owned by the session: run() always closes it, verdict or
    not. Transport/entropy errors propagate to the caller (AuthServer logs
    and isolates them).
    """

    def __init__(
        self,
        channel,
        identities: IdentityStore,
        challenge_size: int = CHALLENGE_SIZE,
        challenge_source: Callable[[int], bytes] = generate_challenge,
    ) -> None:
        self.channel = channel
        self.identities = identities
        self.challenge_size = challenge_size
        self._challenge_source = challenge_source
        self.state = ServerState.AWAIT_GREETING
        self.identity: Optional[str] = None
        self.challenge: Optional[bytes] = None
        self.verdict: Optional[Verdict] = None

    async def run(self) -> SessionOutcome:
        try:
            # AWAIT_GREETING: content is not checked.
            greeting = await self.channel.receive_frame()
            self.identity = parse_greeting(greeting) or self.identities.default_identity
            logger.info("Greeting received (%d bytes), identity claimed: %s", len(greeting), self.identity)

            # CHALLENGE_SENT: RandomnessUnavailable here ends the session before anything is sent.
            self.state = ServerState.CHALLENGE_SENT
            self.challenge = self._challenge_source(self.challenge_size)
            await self.channel.send_frame(self.challenge)
            logger.debug("Challenge sent: %s", self.challenge.hex())

            # AWAIT_RESPONSE
            self.state = ServerState.AWAIT_RESPONSE
            claimed = await self.channel.receive_frame()
            self.verdict = self.verify(claimed)

            # VERIFIED: one verdict, then teardown.
            self.state = ServerState.VERIFIED
            text = HMAC_SUCCESS_TEXT if self.verdict is Verdict.SUCCESS else FAILURE_TEXT
            await self.channel.send_frame(text.encode("utf-8"))
            logger.info("Verdict for %s: %s", self.identity, self.verdict.value)

            return SessionOutcome(
                scheme=SCHEME,
                verdict=self.verdict,
                identity=self.identity,
                message=text,
                challenge=self.challenge,
            )
        finally:
            await self.channel.close()

    def verify(self, claimed: bytes) -> Verdict:
        """Recompute HMAC(secret, challenge) for the claimed identity and compare."""
        if self.challenge is None:
            raise ProtocolError("verify() called before a challenge was issued")

        principal = self.identities.get(self.identity)
        if principal is None:
            # Burn a digest anyway; unknown and known identities cost the same.
            compute_digest(self.challenge, b"")
            logger.warning("Unknown identity %r", self.identity)
            return Verdict.FAILURE

        expected = compute_digest(self.challenge, principal.secret)
        if constant_time_equal(claimed, expected):
            return Verdict.SUCCESS
        return Verdict.FAILURE


class ChallengeClientSession:
    """
    Client side: proves knowledge of `secret` without sending it.

    One-way only: the client takes the server's verdict at face value.
    """

    def __init__(
        self,
        channel,
        secret: Union[str, bytes],
        identity: Optional[str] = None,
        challenge_size: int = CHALLENGE_SIZE,
    ) -> None:
        self.channel = channel
        self._secret = encode_secret(secret)
        self.identity = identity
        self.challenge_size = challenge_size
        self.state = ClientState.IDLE
        self.challenge: Optional[bytes] = None

    async def run(self) -> SessionOutcome:
        try:
            await self.channel.send_frame(build_greeting(self.identity))
            self.state = ClientState.GREETING_SENT

            challenge = await self.channel.receive_frame()
            if len(challenge) != self.challenge_size:
                raise ProtocolError(
                    f"Expected a {self.challenge_size}-byte challenge, got {len(challenge)} bytes"
                )
            self.challenge = challenge
            self.state = ClientState.CHALLENGE_RECEIVED
            logger.debug("Received challenge: %s", challenge.hex())

            await self.channel.send_frame(compute_digest(challenge, self._secret))
            self.state = ClientState.DIGEST_SENT

            text = decode_text(await self.channel.receive_frame())
            self.state = ClientState.DONE
            verdict = Verdict.from_text(text)
            logger.info("Server verdict: %s", verdict.value)

            return SessionOutcome(
                scheme=SCHEME,
                verdict=verdict,
                identity=self.identity,
                message=text,
                challenge=challenge,
            )
        finally:
            await self.channel.close()
