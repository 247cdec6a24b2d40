"""
Tests for the LMS JSON-RPC client.

The happy path runs against the FakeLMS app from conftest; transport
failures use httpx.MockTransport.
"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from mprisqueeze.errors import RpcDecodeError, RpcError, RpcHttpError, RpcNetworkError
from mprisqueeze.lms.client import LMSClient
from mprisqueeze.lms.status import PlayerStatus
from mprisqueeze.models import PlayerIdentity, ServerAddress

from conftest import FakeLMS

KITCHEN = PlayerIdentity("Kitchen")


def mock_client(handler) -> LMSClient:
    return LMSClient(ServerAddress("lms.test"), transport=httpx.MockTransport(handler))


class TestRequest:
    """Tests for LMSClient.request."""

    async def test_payload_shape(self, lms: FakeLMS, client: LMSClient) -> None:
        """Player name and command words are wrapped as slim.request params."""
        await client.request(KITCHEN, ["playlist", "index"], ["+1"])
        assert lms.requests == [["Kitchen", ["playlist", "index", "+1"]]]

    async def test_server_wide_request(self, lms: FakeLMS, client: LMSClient) -> None:
        """Requests without a player use an empty player id."""
        await client.request(None, ["version", "?"])
        assert lms.requests == [["", ["version", "?"]]]

    async def test_returns_result(self, client: LMSClient) -> None:
        """The result object of the response is returned."""
        result = await client.request(None, ["version", "?"])
        assert result == {"_version": "8.3.1"}

    async def test_posts_to_jsonrpc_endpoint(self) -> None:
        """Requests go to POST /jsonrpc.js with the JSON envelope."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": 1, "result": {}})

        async with mock_client(handler) as client:
            await client.request(KITCHEN, ["play"])

        assert seen[0].method == "POST"
        assert str(seen[0].url) == "http://lms.test:9000/jsonrpc.js"
        assert json.loads(seen[0].read()) == {
            "id": 1,
            "method": "slim.request",
            "params": ["Kitchen", ["play"]],
        }

    async def test_network_error(self) -> None:
        """Connection failures raise RpcNetworkError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(RpcNetworkError):
                await client.request(KITCHEN, ["play"])

    async def test_timeout(self) -> None:
        """Timeouts raise RpcNetworkError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(RpcNetworkError):
                await client.request(KITCHEN, ["play"])

    async def test_unreachable_host(self) -> None:
        """A real request to a closed port raises RpcNetworkError."""
        async with LMSClient(ServerAddress("127.0.0.1", 1), timeout=2.0) as client:
            with pytest.raises(RpcNetworkError):
                await client.request(KITCHEN, ["play"])

    @pytest.mark.parametrize("status", [404, 500, 503])
    async def test_http_error(self, status: int) -> None:
        """Non-2xx responses raise RpcHttpError carrying the status."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, text="error")

        async with mock_client(handler) as client:
            with pytest.raises(RpcHttpError) as exc_info:
                await client.request(KITCHEN, ["play"])
        assert exc_info.value.status == status

    async def test_invalid_json(self) -> None:
        """A body that is not JSON raises RpcDecodeError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>not json</html>")

        async with mock_client(handler) as client:
            with pytest.raises(RpcDecodeError):
                await client.request(KITCHEN, ["play"])

    async def test_broken_content_encoding(self) -> None:
        """A body that does not match its Content-Encoding raises RpcDecodeError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-encoding": "gzip"}, content=b"not gzip")

        async with mock_client(handler) as client:
            with pytest.raises(RpcDecodeError):
                await client.request(KITCHEN, ["status"])

    async def test_closed_client(self) -> None:
        """Requests after close() raise RpcNetworkError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": {}})

        client = mock_client(handler)
        await client.close()

        with pytest.raises(RpcNetworkError):
            await client.request(KITCHEN, ["status"])

    @pytest.mark.parametrize(
        "body",
        [{"id": 1}, {"id": 1, "result": None}, {"id": 1, "result": [1, 2]}, [1, 2, 3]],
    )
    async def test_missing_result(self, body) -> None:
        """A body without a result object raises RpcDecodeError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        async with mock_client(handler) as client:
            with pytest.raises(RpcDecodeError):
                await client.request(KITCHEN, ["play"])

    def test_rpc_errors_share_base(self) -> None:
        """All request failures are RpcErrors."""
        for error in (RpcNetworkError, RpcHttpError, RpcDecodeError):
            assert issubclass(error, RpcError)

    async def test_failure_does_not_affect_other_calls(self) -> None:
        """One failing request does not disturb a concurrent one."""

        def handler(request: httpx.Request) -> httpx.Response:
            if b'"stop"' in request.read():
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json={"result": {"ok": 1}})

        async with mock_client(handler) as client:
            results = await asyncio.gather(
                client.request(KITCHEN, ["stop"]),
                client.request(KITCHEN, ["play"]),
                return_exceptions=True,
            )

        assert isinstance(results[0], RpcNetworkError)
        assert results[1] == {"ok": 1}


class TestQueries:
    """Tests for the typed query helpers."""

    async def test_status(self, lms: FakeLMS, client: LMSClient) -> None:
        """status() sends the status query and decodes it."""
        status = await client.status(KITCHEN)

        assert lms.commands == [["status", "-", "1", "tags:aldcKu"]]
        assert isinstance(status, PlayerStatus)
        assert status.mode == "play"
        assert status.track is not None
        assert status.track.title == "So What"

    async def test_players(self, lms: FakeLMS, client: LMSClient) -> None:
        """players() lists every player."""
        players = await client.players()

        assert lms.commands == [["players", "0", "100"]]
        assert [p.name for p in players] == ["Kitchen", "Bedroom"]
        assert players[0].connected is True
        assert players[1].connected is False
        assert players[0].playerid == "aa:bb:cc:dd:ee:ff"

    async def test_players_empty(self, lms: FakeLMS, client: LMSClient) -> None:
        """No players gives an empty list."""
        lms.players = []
        assert await client.players() == []

    async def test_players_bad_loop(self) -> None:
        """A players_loop that is not a list is a decode error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": {"players_loop": "nope"}})

        async with mock_client(handler) as client:
            with pytest.raises(RpcDecodeError):
                await client.players()

    async def test_version(self, client: LMSClient) -> None:
        """version() returns the server version string."""
        assert await client.version() == "8.3.1"

    async def test_version_missing(self) -> None:
        """A result without _version is a decode error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"result": {}})

        async with mock_client(handler) as client:
            with pytest.raises(RpcDecodeError):
                await client.version()
