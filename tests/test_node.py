"""Integration tests over real loopback TCP: AuthServer, open_client, and the CLI wiring."""

import asyncio
import socket

import pytest

from hcap import run_node
from hcap.config import Settings
from hcap.errors import PeerClosedError, ReceiveTimeout, TransportSetupError
from hcap.identity import IdentityStore
from hcap.messages import PLAINTEXT_SUCCESS_TEXT, Verdict
from hcap.node import AuthServer, open_client
from hcap.plaintext import PlaintextClientSession, PlaintextServerSession
from hcap.session import ChallengeClientSession, ChallengeServerSession

HOST = "127.0.0.1"


def hmac_server(identities, **kwargs):
    return AuthServer(HOST, 0, lambda ch: ChallengeServerSession(ch, identities), **kwargs)


class TestAuthServer:
    def test_tcp_success_and_failure(self, identities):
        async def scenario():
            server = hmac_server(identities, max_sessions=2)
            await server.start()
            serving = asyncio.ensure_future(server.serve())

            good = await ChallengeClientSession(await open_client(HOST, server.bound_port), "pass123").run()
            bad = await ChallengeClientSession(await open_client(HOST, server.bound_port), "wrongsecret").run()
            outcomes = await serving
            return good, bad, outcomes

        good, bad, outcomes = asyncio.run(scenario())
        assert good.verdict is Verdict.SUCCESS
        assert bad.verdict is Verdict.FAILURE
        assert [o.verdict for o in outcomes] == [Verdict.SUCCESS, Verdict.FAILURE]

    def test_failed_session_does_not_stop_the_next(self, identities):
        async def scenario():
            server = hmac_server(identities, max_sessions=2)
            await server.start()
            serving = asyncio.ensure_future(server.serve())

            # First client connects and hangs up without greeting.
            _, writer = await asyncio.open_connection(HOST, server.bound_port)
            writer.close()
            await writer.wait_closed()

            good = await ChallengeClientSession(await open_client(HOST, server.bound_port), "pass123").run()
            outcomes = await serving
            return server, good, outcomes

        server, good, outcomes = asyncio.run(scenario())
        assert good.ok
        assert len(outcomes) == 1
        assert len(server.failures) == 1
        assert isinstance(server.failures[0], PeerClosedError)

    def test_server_timeout_on_silent_client(self, identities):
        async def scenario():
            server = hmac_server(identities, max_sessions=1, timeout=0.1)
            await server.start()
            serving = asyncio.ensure_future(server.serve())
            channel = await open_client(HOST, server.bound_port)
            outcomes = await serving
            await channel.close()
            return server, outcomes

        server, outcomes = asyncio.run(scenario())
        assert outcomes == []
        assert isinstance(server.failures[0], ReceiveTimeout)

    def test_plaintext_over_tcp(self, identities):
        echoed = []

        async def scenario():
            server = AuthServer(HOST, 0, lambda ch: PlaintextServerSession(ch, identities))
            await server.start()
            serving = asyncio.ensure_future(server.serve())
            client = PlaintextClientSession(
                await open_client(HOST, server.bound_port),
                read_username=lambda: "admin",
                read_password=lambda: "pass123",
                echo=echoed.append,
            )
            result = await client.run()
            await serving
            return result

        assert asyncio.run(scenario()).ok
        assert echoed[-1] == PLAINTEXT_SUCCESS_TEXT

    def test_bind_failure_is_setup_error(self, identities):
        async def scenario():
            with socket.socket() as taken:
                taken.bind((HOST, 0))
                taken.listen(1)
                port = taken.getsockname()[1]
                server = AuthServer(HOST, port, lambda ch: ChallengeServerSession(ch, identities))
                await server.start()

        with pytest.raises(TransportSetupError):
            asyncio.run(scenario())

    def test_bound_port_before_start(self, identities):
        with pytest.raises(RuntimeError):
            hmac_server(identities).bound_port


class TestOpenClient:
    def test_connect_refused_is_setup_error(self):
        with socket.socket() as s:
            s.bind((HOST, 0))
            port = s.getsockname()[1]
        # Nothing listens there any more.
        with pytest.raises(TransportSetupError):
            asyncio.run(open_client(HOST, port, timeout=1.0))


class TestCli:
    def test_parse_args(self):
        args = run_node.parse_args(["--mode", "client", "--secret", "x", "--port", "9", "--timeout", "1.5"])
        s = run_node.settings_from_args(args)
        assert (s.secret, s.port, s.timeout) == ("x", 9, 1.5)
        assert args.scheme == "hmac"

    def test_run_client_against_run_server(self, capsys):
        async def scenario():
            identities = IdentityStore.default()
            server = hmac_server(identities)
            await server.start()
            serving = asyncio.ensure_future(server.serve())
            settings = Settings(port=server.bound_port, secret="pass123")
            outcome = await run_node.run_client(settings, "hmac")
            await serving
            return outcome

        outcome = asyncio.run(scenario())
        assert outcome.ok
        out = capsys.readouterr().out
        assert "Server: Authentication successful. Welcome!" in out
        assert "pass123" not in out

    def test_main_returns_2_when_nothing_listens(self, monkeypatch):
        with socket.socket() as s:
            s.bind((HOST, 0))
            port = s.getsockname()[1]
        monkeypatch.delenv("HCAP_IDENTITIES", raising=False)
        assert run_node.main(["--mode", "client", "--port", str(port), "--timeout", "1"]) == 2

    @pytest.mark.parametrize("name,value", [("HCAP_PORT", "not-a-port"), ("HCAP_TIMEOUT", "soon")])
    def test_main_returns_2_on_bad_env(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        assert run_node.main(["--mode", "client"]) == 2

    @pytest.mark.parametrize("value", ["-1", "many"])
    def test_sessions_must_be_non_negative(self, value):
        with pytest.raises(SystemExit):
            run_node.parse_args(["--mode", "server", "--sessions", value])

    def test_sessions_zero_means_forever(self):
        args = run_node.parse_args(["--mode", "server", "--sessions", "0"])
        assert run_node.settings_from_args(args).sessions == 0
