"""
config.py — runtime settings: built-in defaults, then HCAP_* env vars, then CLI flags.

Defaults are the demo deployment (loopback, port 12345, one shared
secret "pass123"). Set HCAP_SHARED_SECRET on BOTH processes to change it, or
point HCAP_IDENTITIES at a JSON identities file (see identity.py).
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .crypto import CHALLENGE_SIZE
from .framing import MAX_READ
from .identity import DEFAULT_IDENTITY, DEFAULT_SECRET, IdentityStore

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 12345


@dataclass
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    secret: str = DEFAULT_SECRET
    identity: Optional[str] = None          # None -> greet as the default principal
    identities_path: Optional[str] = None
    timeout: Optional[float] = None         # seconds; None waits forever
    challenge_size: int = CHALLENGE_SIZE
    max_read: int = MAX_READ
    sessions: int = 1

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        s = cls()
        s.host = env.get("HCAP_HOST", s.host)
        if env.get("HCAP_PORT"):
            s.port = int(env["HCAP_PORT"])
        s.secret = env.get("HCAP_SHARED_SECRET", s.secret)
        s.identity = env.get("HCAP_IDENTITY") or None
        s.identities_path = env.get("HCAP_IDENTITIES") or None
        if env.get("HCAP_TIMEOUT"):
            s.timeout = float(env["HCAP_TIMEOUT"])
        return s

    def identity_store(self) -> IdentityStore:
        """Identities file wins; otherwise a single principal built from secret/identity."""
        if self.identities_path:
            return IdentityStore.load(self.identities_path)
        return IdentityStore.single(self.identity or DEFAULT_IDENTITY, self.secret)
