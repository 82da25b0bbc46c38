"""
HCAP (HMAC Challenge Authentication Protocol) — two handshakes side by side.

- hmac:      server sends a fresh 16-byte challenge, client answers with
             HMAC-SHA1(shared_secret, challenge). The secret never crosses
             the wire and a recorded answer is useless next session.
- plaintext: server prompts for username and password and compares them.
             Kept only as the "don't do this" baseline.

Hardenings:
- Length-prefixed framing, so one message no longer has to equal one read.
- A zero-byte read is a closed peer, not an empty message.
- Optional receive timeout instead of blocking forever on a silent peer.
- Constant-time digest/credential comparison.
- Secrets come from an injected identity store, not from constants.

Set HCAP_SHARED_SECRET (or pass --secret) identically on both processes to
change the shared secret.
"""
__all__ = ["config", "crypto", "errors", "framing", "identity", "messages", "node", "plaintext", "run_node", "session"]
