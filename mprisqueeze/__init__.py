"""
mprisqueeze - Control squeezelite through MPRIS.

mprisqueeze starts a squeezelite player, finds (or is told about) the
Logitech Media Server it talks to, and exposes the player on the D-Bus
session bus as an MPRIS media player. Every MPRIS call is translated into
an LMS JSON-RPC request for that player.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from mprisqueeze.models import PlayerIdentity, ServerAddress

__all__ = ["PlayerIdentity", "ServerAddress", "__version__"]
