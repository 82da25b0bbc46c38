import argparse
import asyncio
import getpass
import sys
from typing import List, Optional

from .config import Settings
from .errors import HCAPError, TransportSetupError
from .identity import IdentityStore
from .log import get_logger, set_log_level
from .messages import SessionOutcome
from .node import AuthServer, open_client
from .plaintext import PlaintextClientSession, PlaintextServerSession
from .session import ChallengeClientSession, ChallengeServerSession

"""
run_node.py — single entry point for the HCAP demo.

Modes:
- server: listen and run N sessions (default 1) of the chosen scheme
- client: connect once, run one session, print the server's verdict

Schemes:
- hmac:      challenge-response; the secret never crosses the wire
- plaintext: username/password prompts, sent in the clear (baseline)

Exit codes: 0 = authenticated, 1 = authentication failed or session aborted,
2 = bad configuration or could not set up the socket.
"""

logger = get_logger(__name__)


# -------------------------
# Process runners (thin wrappers)
# -------------------------

async def run_server(settings: Settings, scheme: str, identities: IdentityStore) -> List[SessionOutcome]:
    """Serve settings.sessions connections, one at a time."""
    if scheme == "plaintext":
        def factory(channel):
            return PlaintextServerSession(channel, identities)
    else:
        def factory(channel):
            return ChallengeServerSession(channel, identities, challenge_size=settings.challenge_size)

    server = AuthServer(
        settings.host,
        settings.port,
        factory,
        max_sessions=settings.sessions or None,
        timeout=settings.timeout,
        max_read=settings.max_read,
    )
    await server.start()
    print(f"Server listening on port {server.bound_port}...")
    outcomes = await server.serve()
    for o in outcomes:
        print(f"[{o.scheme}] {o.identity}: {o.verdict.value}")
    return outcomes


async def run_client(settings: Settings, scheme: str) -> SessionOutcome:
    """Connect once and run a single client session."""
    channel = await open_client(settings.host, settings.port, settings.timeout, settings.max_read)

    if scheme == "plaintext":
        session = PlaintextClientSession(
            channel,
            read_username=input,
            read_password=lambda: getpass.getpass(""),
        )
        # PlaintextClientSession echoes the verdict itself.
        return await session.run()

    session = ChallengeClientSession(
        channel,
        settings.secret,
        identity=settings.identity,
        challenge_size=settings.challenge_size,
    )
    outcome = await session.run()
    print(f"Received challenge: {outcome.challenge.hex()}")
    print(f"Server: {outcome.message}")
    return outcome


# -------------------------
# Argument parsing
# -------------------------

def non_negative_int(text: str) -> int:
    value = int(text)
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Quick examples:
      Server:            python -m hcap.run_node --mode server
      Client:            python -m hcap.run_node --mode client
      Wrong secret:      python -m hcap.run_node --mode client --secret wrongsecret
      Plaintext server:  python -m hcap.run_node --mode server --scheme plaintext
      Many principals:   python -m hcap.run_node --mode server --identities ids.json --sessions 0
    """
    p = argparse.ArgumentParser(prog="hcap", description="HMAC challenge-response authentication demo")
    p.add_argument("--mode", choices=["server", "client"], required=True)
    p.add_argument("--scheme", choices=["hmac", "plaintext"], default="hmac")
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.add_argument("--secret", help="Shared secret (client: what to prove; server: single-principal store)")
    p.add_argument("--identity", help="Identity to claim in the greeting (client) / name the principal (server)")
    p.add_argument("--identities", help="JSON identities file (server); overrides --secret/--identity")
    p.add_argument("--timeout", type=float, help="Receive timeout in seconds (default: wait forever)")
    p.add_argument("--sessions", type=non_negative_int, help="Sessions to serve before exiting; 0 = forever (server)")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="INFO")
    return p.parse_args(argv)


def settings_from_args(args: argparse.Namespace) -> Settings:
    """Env first, then any flag the user actually passed."""
    s = Settings.from_env()
    if args.host:
        s.host = args.host
    if args.port is not None:
        s.port = args.port
    if args.secret is not None:
        s.secret = args.secret
    if args.identity:
        s.identity = args.identity
    if args.identities:
        s.identities_path = args.identities
    if args.timeout is not None:
        s.timeout = args.timeout
    if args.sessions is not None:
        s.sessions = args.sessions
    return s


# -------------------------
# Main entrypoint
# -------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Dispatch into the chosen mode; keep top-level code very small."""
    args = parse_args(argv)
    set_log_level(args.log_level)
    try:
        settings = settings_from_args(args)
    except ValueError as exc:
        logger.error("Bad configuration: %s", exc)
        return 2

    try:
        if args.mode == "server":
            try:
                identities = settings.identity_store()
            except (OSError, ValueError) as exc:
                logger.error("Cannot load identities: %s", exc)
                return 2
            outcomes = asyncio.run(run_server(settings, args.scheme, identities))
            return 0 if outcomes and all(o.ok for o in outcomes) else 1

        outcome = asyncio.run(run_client(settings, args.scheme))
        return 0 if outcome.ok else 1

    except TransportSetupError as exc:
        logger.error("Setup failed: %s", exc)
        return 2
    except HCAPError as exc:
        logger.error("Session aborted: %s: %s", type(exc).__name__, exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Shutdown")
        return 1


if __name__ == "__main__":
    sys.exit(main())
