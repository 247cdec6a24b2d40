"""
Network protocol clients for mprisqueeze.

- discovery: UDP broadcast discovery of LMS servers (port 3483)
"""

from mprisqueeze.protocol.discovery import DiscoveryReply, discover

__all__ = ["DiscoveryReply", "discover"]
