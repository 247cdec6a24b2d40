"""
Shared fixtures: a fake LMS JSON-RPC endpoint.

The fake is a small FastAPI app reached through httpx.ASGITransport, so
the real LMSClient code path (request building, HTTP, JSON decoding) runs
without a network.
"""

from __future__ import annotations

import copy
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Request

from mprisqueeze.lms.client import LMSClient
from mprisqueeze.models import PlayerIdentity, ServerAddress
from mprisqueeze.mpris.player import MprisPlayer

# Status of a player in the middle of a library track
PLAYING_STATUS: dict[str, Any] = {
    "player_name": "Kitchen",
    "player_connected": 1,
    "mode": "play",
    "time": 12.5,
    "duration": 562.5,
    "can_seek": 1,
    "mixer volume": 50,
    "playlist shuffle": 0,
    "playlist repeat": 2,
    "playlist_cur_index": "3",
    "playlist_tracks": 10,
    "playlist_loop": [
        {
            "playlist index": 3,
            "id": 42,
            "title": "So What",
            "artist": "Miles Davis",
            "album": "Kind of Blue",
            "duration": "562.5",
            "coverid": "abc123",
            "url": "file:///music/so_what.flac",
        }
    ],
}

# Status of a player with an empty playlist
EMPTY_STATUS: dict[str, Any] = {
    "player_name": "Kitchen",
    "player_connected": 1,
    "mode": "stop",
    "mixer volume": 30,
    "playlist shuffle": 0,
    "playlist repeat": 0,
    "playlist_tracks": 0,
}

PLAYERS: list[dict[str, Any]] = [
    {
        "playerid": "aa:bb:cc:dd:ee:ff",
        "name": "Kitchen",
        "connected": 1,
        "model": "squeezelite",
    },
    {
        "playerid": "00:11:22:33:44:55",
        "name": "Bedroom",
        "connected": 0,
        "model": "baby",
    },
]


class FakeLMS:
    """Records every slim.request and answers from canned results."""

    def __init__(self) -> None:
        self.requests: list[list[Any]] = []
        self.status: dict[str, Any] = copy.deepcopy(PLAYING_STATUS)
        self.players: list[dict[str, Any]] = copy.deepcopy(PLAYERS)
        self.version = "8.3.1"
        self.app = FastAPI()

        @self.app.post("/jsonrpc.js")
        async def jsonrpc(request: Request) -> dict[str, Any]:
            body = await request.json()
            self.requests.append(body["params"])
            _, command = body["params"]
            return {
                "id": body["id"],
                "method": body["method"],
                "params": body["params"],
                "result": self.result_for(command),
            }

    def result_for(self, command: list[str]) -> dict[str, Any]:
        if command[0] == "status":
            return self.status
        if command[0] == "players":
            return {"count": len(self.players), "players_loop": self.players}
        if command[:2] == ["version", "?"]:
            return {"_version": self.version}
        return {}

    @property
    def commands(self) -> list[list[str]]:
        """Command arrays of all requests, in order."""
        return [params[1] for params in self.requests]

    @property
    def control_commands(self) -> list[list[str]]:
        """Commands other than status queries."""
        return [command for command in self.commands if command[0] != "status"]


@pytest.fixture
def lms() -> FakeLMS:
    return FakeLMS()


@pytest.fixture
def server() -> ServerAddress:
    return ServerAddress(host="lms.test", port=9000)


@pytest.fixture
def identity() -> PlayerIdentity:
    return PlayerIdentity("Kitchen")


@pytest.fixture
async def client(lms: FakeLMS, server: ServerAddress) -> LMSClient:
    """LMSClient talking to the fake server."""
    async with LMSClient(server, transport=httpx.ASGITransport(app=lms.app)) as client:
        yield client


@pytest.fixture
def player(client: LMSClient, identity: PlayerIdentity) -> MprisPlayer:
    return MprisPlayer(client, identity)
