from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

"""
messages.py — wire payloads, verdicts, and the per-session outcome record.

Challenge-response mode (each item is one frame, strict alternation):
    client -> server   greeting      b"hello" or b"hello <identity>"
    server -> client   challenge     16 random bytes
    client -> server   digest        20 bytes, HMAC-SHA1(secret, challenge)
    server -> client   verdict       human-readable UTF-8 text

Plaintext baseline:
    server -> client   SERVER_WELCOME
    client -> server   greeting
    server -> client   ASK_USERNAME
    client -> server   username
    server -> client   ASK_PASSWORD
    client -> server   password
    server -> client   verdict
"""

GREETING = b"hello"

# Verdict texts (kept byte-identical across both schemes' failure path).
HMAC_SUCCESS_TEXT = "Authentication successful. Welcome!"
PLAINTEXT_SUCCESS_TEXT = "Authentication successful.\n secret_data_from_server..."
FAILURE_TEXT = "Authentication failed."

# Plaintext baseline prompts.
SERVER_WELCOME = "Hello. Send your greeting."
ASK_USERNAME = "Enter username:"
ASK_PASSWORD = "Enter password:"


class Verdict(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"

    @staticmethod
    def from_text(text: str) -> "Verdict":
        """
        Interpret a server's verdict line. Anything that isn't a success line
        counts as failure; a client never upgrades an unknown reply.
        """
        if text.startswith("Authentication successful."):
            return Verdict.SUCCESS
        return Verdict.FAILURE


def build_greeting(identity: Optional[str] = None) -> bytes:
    """b"hello" for the default principal, b"hello <identity>" otherwise."""
    if not identity:
        return GREETING
    return GREETING + b" " + identity.encode("utf-8")


def parse_greeting(payload: bytes) -> Optional[str]:
    """
    Pull a claimed identity out of a greeting, or None if it doesn't claim one.

    Greeting content is never validated: junk, empty, or non-UTF-8 greetings
    just mean "the default principal".
    """
    prefix = GREETING + b" "
    if not payload.startswith(prefix):
        return None
    try:
        identity = payload[len(prefix):].decode("utf-8").strip()
    except UnicodeDecodeError:
        return None
    return identity or None


def decode_text(payload: bytes) -> str:
    """Verdicts/prompts are text; replace bad bytes rather than blow up the session."""
    return payload.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class Credential:
    """(username, password) pair for the plaintext baseline."""
    username: bytes
    password: bytes


@dataclass
class SessionOutcome:
    """
    What one session produced. Returned by every session's run().

    `challenge` is public (it crossed the wire); the secret never lands here.
    """
    scheme: str
    verdict: Verdict
    identity: Optional[str] = None
    message: str = ""
    challenge: Optional[bytes] = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.verdict is Verdict.SUCCESS
