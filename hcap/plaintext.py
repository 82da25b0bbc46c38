"""
plaintext.py — the username/password baseline, kept for contrast.

No crypto and no freshness: every run sends the same password in the clear.
Prompts, in order:

    server: "Hello. Send your greeting."   client: greeting
    server: "Enter username:"              client: username
    server: "Enter password:"              client: password
    server: verdict text, then close
"""

from enum import Enum
from typing import Callable, Optional

from .crypto import constant_time_equal
from .identity import IdentityStore
from .log import get_logger
from .messages import (
    ASK_PASSWORD,
    ASK_USERNAME,
    FAILURE_TEXT,
    GREETING,
    PLAINTEXT_SUCCESS_TEXT,
    SERVER_WELCOME,
    Credential,
    SessionOutcome,
    Verdict,
    decode_text,
)

logger = get_logger(__name__)

SCHEME = "plaintext"


class PlaintextState(str, Enum):
    AWAIT_GREETING = "await_greeting"
    ASK_USERNAME = "ask_username"
    ASK_PASSWORD = "ask_password"
    VERIFIED = "verified"


def check_credential(identities: IdentityStore, received: Credential) -> Verdict:
    """Both fields must match the stored record exactly. Empty never matches a non-empty record."""
    try:
        identity = received.username.decode("utf-8")
    except UnicodeDecodeError:
        return Verdict.FAILURE

    principal = identities.get(identity) if identity else None
    if principal is None:
        return Verdict.FAILURE

    expected = principal.credential
    # Both fields are always compared.
    user_ok = constant_time_equal(received.username, expected.username)
    pass_ok = constant_time_equal(received.password, expected.password)
    return Verdict.SUCCESS if (user_ok and pass_ok) else Verdict.FAILURE


class PlaintextServerSession:
    def __init__(self, channel, identities: IdentityStore) -> None:
        self.channel = channel
        self.identities = identities
        self.state = PlaintextState.AWAIT_GREETING
        self.verdict: Optional[Verdict] = None

    async def _ask(self, prompt: str) -> bytes:
        await self.channel.send_frame(prompt.encode("utf-8"))
        return await self.channel.receive_frame()

    async def run(self) -> SessionOutcome:
        try:
            greeting = await self._ask(SERVER_WELCOME)
            logger.info("Client says: %s", decode_text(greeting))

            self.state = PlaintextState.ASK_USERNAME
            username = await self._ask(ASK_USERNAME)

            self.state = PlaintextState.ASK_PASSWORD
            password = await self._ask(ASK_PASSWORD)

            self.verdict = check_credential(self.identities, Credential(username, password))
            self.state = PlaintextState.VERIFIED
            text = PLAINTEXT_SUCCESS_TEXT if self.verdict is Verdict.SUCCESS else FAILURE_TEXT
            await self.channel.send_frame(text.encode("utf-8"))

            identity = decode_text(username)
            logger.info("Verdict for %s: %s", identity, self.verdict.value)
            return SessionOutcome(scheme=SCHEME, verdict=self.verdict, identity=identity, message=text)
        finally:
            await self.channel.close()


class PlaintextClientSession:
    """
    Mirrors the server: echo each prompt, answer from the operator.

    `read_username` / `read_password` stand in for the operator's keyboard;
    `echo` is where prompts and the verdict go (print by default).
    """

    def __init__(
        self,
        channel,
        read_username: Callable[[], str],
        read_password: Callable[[], str],
        echo: Callable[[str], None] = print,
        greeting: bytes = GREETING,
    ) -> None:
        self.channel = channel
        self.read_username = read_username
        self.read_password = read_password
        self.echo = echo
        self.greeting = greeting

    async def _prompted(self) -> str:
        text = decode_text(await self.channel.receive_frame())
        self.echo(text)
        return text

    async def run(self) -> SessionOutcome:
        try:
            await self._prompted()
            await self.channel.send_frame(self.greeting)

            await self._prompted()
            username = self.read_username()
            await self.channel.send_frame(username.encode("utf-8"))

            await self._prompted()
            await self.channel.send_frame(self.read_password().encode("utf-8"))

            text = await self._prompted()
            return SessionOutcome(
                scheme=SCHEME,
                verdict=Verdict.from_text(text),
                identity=username,
                message=text,
            )
        finally:
            await self.channel.close()
