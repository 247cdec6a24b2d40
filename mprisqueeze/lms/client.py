"""
JSON-RPC client for the Logitech Media Server control API.

Every request is an HTTP POST to /jsonrpc.js with the body:

    {"id": 1, "method": "slim.request", "params": [player, [command, ...args]]}

and LMS answers with the same envelope plus a `result` object. Commands
are documented in the LMS CLI reference; the JSON-RPC endpoint accepts the
same command arrays.

The client is stateless: no retries, no caching. LMS is the source of
truth for playback state and each call stands on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx

from mprisqueeze.errors import RpcDecodeError, RpcHttpError, RpcNetworkError
from mprisqueeze.lms.status import STATUS_TAGS, PlayerInfo, PlayerStatus
from mprisqueeze.models import PlayerIdentity, ServerAddress

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0

# Upper bound for the `players` query
MAX_PLAYERS = 100


class LMSClient:
    """
    Async JSON-RPC client bound to one LMS server.

    Usage:
        async with LMSClient(server) as client:
            status = await client.status(player)
            await client.request(player, ["pause"], ["1"])
    """

    def __init__(
        self,
        server: ServerAddress,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            server: Address of the LMS JSON-RPC endpoint.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.server = server
        self.timeout = timeout
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    @property
    def url(self) -> str:
        return self.server.url

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> LMSClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def request(
        self,
        player: PlayerIdentity | None,
        command: Sequence[str],
        params: Sequence[Any] = (),
    ) -> dict[str, Any]:
        """
        Send one slim.request.

        Args:
            player: Target player, or None for server-wide queries.
            command: Command words (e.g. ["playlist", "index"]).
            params: Command arguments appended after the command words.

        Returns:
            The `result` object of the response.

        Raises:
            RpcNetworkError: Connection failure, timeout or closed client.
            RpcHttpError: Non-2xx response.
            RpcDecodeError: Body cannot be decompressed, is not JSON or has
                no result object.
        """
        player_id = player.name if player is not None else ""
        payload = {
            "id": 1,
            "method": "slim.request",
            "params": [player_id, [*command, *params]],
        }
        logger.debug("Sending: %s", payload["params"])

        if self._client.is_closed:
            raise RpcNetworkError(f"Connection to LMS at {self.server} is closed")

        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.DecodingError as e:
            # Broken Content-Encoding
            raise RpcDecodeError(f"Cannot decode response from {self.server}: {e}") from e
        except httpx.RequestError as e:
            raise RpcNetworkError(f"Cannot reach LMS at {self.server}: {e!r}") from e

        if not response.is_success:
            raise RpcHttpError(response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise RpcDecodeError(f"Response is not JSON: {response.text[:200]!r}") from e

        if not isinstance(body, dict) or not isinstance(body.get("result"), dict):
            raise RpcDecodeError(f"Response has no result object: {body!r}")

        result: dict[str, Any] = body["result"]
        logger.debug("Received: %s", result)
        return result

    async def status(self, player: PlayerIdentity) -> PlayerStatus:
        """Query the player's status including the current track."""
        result = await self.request(player, ["status", "-", "1", STATUS_TAGS])
        return PlayerStatus.from_result(result, self.server.base_url)

    async def players(self) -> list[PlayerInfo]:
        """List the players known to the server."""
        result = await self.request(None, ["players", "0", str(MAX_PLAYERS)])
        loop = result.get("players_loop", [])
        if not isinstance(loop, list):
            raise RpcDecodeError(f"players_loop is not a list: {loop!r}")
        return [PlayerInfo.from_result(item) for item in loop if isinstance(item, dict)]

    async def version(self) -> str:
        """Get the server version."""
        result = await self.request(None, ["version", "?"])
        version = result.get("_version")
        if not isinstance(version, str):
            raise RpcDecodeError(f"No version in {result!r}")
        return version
