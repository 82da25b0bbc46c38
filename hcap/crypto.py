"""
crypto.py — the three primitives the challenge-response handshake needs.

Why this exists:
- Keep the HMAC and randomness bits in one place so sessions can call
  `generate_challenge / compute_digest / constant_time_equal` without caring
  about hash choice or entropy sources.
- The shared secret only ever goes INTO compute_digest; nothing here returns it.

Notes:
- HMAC-SHA1 gives a 20-byte digest. SHA-1 collisions don't hurt HMAC here;
  swap DIGEST_ALGORITHM if you need a longer tag (both sides must agree).
- Challenges come from the OS CSPRNG. A predictable challenge would let a
  recorded digest be replayed. There is no fallback RNG.
"""

import os

from cryptography.hazmat.primitives import constant_time, hashes, hmac

from .errors import RandomnessUnavailable

CHALLENGE_SIZE = 16
DIGEST_ALGORITHM = hashes.SHA1
DIGEST_SIZE = DIGEST_ALGORITHM.digest_size  # 20 bytes


# -------------------
# ChallengeGenerator
# -------------------

def generate_challenge(length: int = CHALLENGE_SIZE) -> bytes:
    """
    Return `length` fresh random bytes from the OS entropy pool.

    Raises:
        ValueError: length is not a positive int.
        RandomnessUnavailable: the entropy source failed or came back short.
    """
    if isinstance(length, bool) or not isinstance(length, int) or length <= 0:
        raise ValueError(f"Challenge length must be a positive integer, got {length!r}")
    try:
        challenge = os.urandom(length)
    except (NotImplementedError, OSError) as exc:
        raise RandomnessUnavailable(f"Entropy source failed: {exc}") from exc

    if len(challenge) != length:
        raise RandomnessUnavailable(
            f"Entropy source returned {len(challenge)} of {length} bytes"
        )
    return challenge


# -------------
# KeyedDigest
# -------------

def compute_digest(message: bytes, key: bytes) -> bytes:
    """
    HMAC(key, message) with DIGEST_ALGORITHM. Deterministic, no state.

    Empty key / empty message are legal; the protocol puts no length rules on
    either one.
    """
    if not isinstance(message, (bytes, bytearray)) or not isinstance(key, (bytes, bytearray)):
        raise TypeError("message and key must be bytes")
    mac = hmac.HMAC(bytes(key), DIGEST_ALGORITHM())
    mac.update(bytes(message))
    return mac.finalize()


def constant_time_equal(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without leaking where they differ."""
    return constant_time.bytes_eq(bytes(a), bytes(b))


# --------------------------------
# Secret handling helpers (CLI/env)
# --------------------------------

def encode_secret(secret) -> bytes:
    """Accept str or bytes from config; sessions always work on bytes."""
    if isinstance(secret, str):
        return secret.encode("utf-8")
    return bytes(secret)


def new_secret(nbytes: int = 32) -> str:
    """Random hex secret for `generate_secret.py` (hex so it pastes cleanly into JSON/env)."""
    return generate_challenge(nbytes).hex()
