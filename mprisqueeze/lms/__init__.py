"""
Logitech Media Server control API.

- client: JSON-RPC requests against /jsonrpc.js
- status: decoding of status and players results
"""

from mprisqueeze.lms.client import LMSClient
from mprisqueeze.lms.status import PlayerInfo, PlayerStatus, TrackInfo

__all__ = ["LMSClient", "PlayerInfo", "PlayerStatus", "TrackInfo"]
