"""
UDP Discovery client for Logitech Media Server.

Squeezebox players and controllers find servers on the local network by
broadcasting a discovery packet to port 3483. Any LMS instance listening
on that port answers directly to the sender.

TLV Discovery Protocol:
    Request:  'e' followed by TLV entries naming the wanted fields
    Response: 'E' followed by TLV entries carrying the values

    - T: 4-byte ASCII tag (e.g., 'NAME', 'IPAD', 'JSON', 'VERS', 'UUID')
    - L: 1-byte length
    - V: value bytes (0-255 bytes)

Example reply from LMS:
    b"ENAME\\x0amyhostnameJSON\\x049000UUID\\x24e9b5...VERS\\x058.3.1"

The JSON tag carries the HTTP/JSON-RPC port, which is the only field we
strictly need. The host is taken from IPAD when the server sends it and
from the datagram's source address otherwise.
"""

from __future__ import annotations

import asyncio
import logging
import struct
from dataclasses import dataclass

from mprisqueeze.errors import DiscoveryError, DiscoveryTimeoutError, MalformedReplyError
from mprisqueeze.models import ServerAddress

logger = logging.getLogger(__name__)

# IANA-assigned port for Slim protocol
DISCOVERY_PORT = 3483

BROADCAST_ADDRESS = "255.255.255.255"

DEFAULT_TIMEOUT = 3.0

# Fields asked for in the discovery request
REQUEST_TAGS = ("NAME", "IPAD", "JSON", "UUID", "VERS")

TAG_LENGTH = 4


@dataclass(frozen=True)
class DiscoveryReply:
    """Decoded answer of an LMS server to a discovery broadcast."""

    host: str
    port: int
    name: str = ""
    uuid: str = ""
    version: str = ""

    @property
    def address(self) -> ServerAddress:
        return ServerAddress(host=self.host, port=self.port)


def build_request(tags: tuple[str, ...] = REQUEST_TAGS) -> bytes:
    """Build an 'e' discovery request asking for the given tags."""
    request = b"e"
    for tag in tags:
        encoded = tag.encode("ascii")
        if len(encoded) != TAG_LENGTH:
            raise ValueError(f"Discovery tags are {TAG_LENGTH} characters: {tag!r}")
        request += encoded + struct.pack("B", 0)
    return request


def parse_tlvs(data: bytes) -> dict[str, bytes]:
    """
    Parse TLV entries until the end of data.

    Unlike a lenient server-side parser, every entry must be complete:
    a dangling tag, a missing length byte or a value running past the end
    of the datagram makes the whole reply malformed.
    """
    tlvs: dict[str, bytes] = {}
    offset = 0

    while offset < len(data):
        if offset + TAG_LENGTH + 1 > len(data):
            raise MalformedReplyError(f"Truncated tag at offset {offset}")

        try:
            tag = data[offset:offset + TAG_LENGTH].decode("ascii")
        except UnicodeDecodeError as e:
            raise MalformedReplyError(f"Non-ASCII tag at offset {offset}") from e

        length = data[offset + TAG_LENGTH]
        start = offset + TAG_LENGTH + 1
        end = start + length
        if end > len(data):
            raise MalformedReplyError(
                f"Value of {tag} needs {length} bytes, only {len(data) - start} left"
            )

        tlvs[tag] = data[start:end]
        offset = end

    return tlvs


def _text(tlvs: dict[str, bytes], tag: str) -> str:
    try:
        return tlvs.get(tag, b"").decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedReplyError(f"{tag} is not valid UTF-8") from e


def parse_reply(data: bytes, sender_host: str) -> DiscoveryReply:
    """
    Decode a discovery reply datagram.

    Args:
        data: Raw datagram payload.
        sender_host: Source IP of the datagram, used when IPAD is absent.

    Returns:
        The decoded reply.

    Raises:
        MalformedReplyError: If the datagram does not follow the layout or
            lacks a usable JSON port.
    """
    if data[:1] != b"E":
        raise MalformedReplyError(f"Not a discovery reply: {data[:20].hex()}")

    tlvs = parse_tlvs(data[1:])

    if "JSON" not in tlvs:
        raise MalformedReplyError("Reply does not carry the JSON port")

    port_text = _text(tlvs, "JSON")
    try:
        port = int(port_text)
    except ValueError as e:
        raise MalformedReplyError(f"JSON port is not a number: {port_text!r}") from e
    if not 0 < port < 65536:
        raise MalformedReplyError(f"JSON port out of range: {port}")

    host = _text(tlvs, "IPAD") or sender_host

    return DiscoveryReply(
        host=host,
        port=port,
        name=_text(tlvs, "NAME"),
        uuid=_text(tlvs, "UUID"),
        version=_text(tlvs, "VERS"),
    )


class LMSDiscoveryProtocol(asyncio.DatagramProtocol):
    """
    Asyncio UDP protocol waiting for the first discovery reply.

    The outcome (reply or MalformedReplyError) is delivered through
    `self.reply`; later datagrams are ignored.
    """

    def __init__(self) -> None:
        self.transport: asyncio.DatagramTransport | None = None
        self.reply: asyncio.Future[DiscoveryReply] = (
            asyncio.get_running_loop().create_future()
        )

    def connection_made(self, transport: asyncio.DatagramTransport) -> None:  # type: ignore[override]
        self.transport = transport

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        if self.reply.done():
            return

        sender_host, sender_port = addr[0], addr[1]
        logger.debug(
            "Discovery reply from %s:%d: %s", sender_host, sender_port, data[:64].hex()
        )

        try:
            self.reply.set_result(parse_reply(data, sender_host))
        except MalformedReplyError as e:
            self.reply.set_exception(e)

    def error_received(self, exc: Exception) -> None:
        logger.warning("UDP Discovery error: %s", exc)


async def discover(
    timeout: float = DEFAULT_TIMEOUT,
    *,
    port: int = DISCOVERY_PORT,
    broadcast_address: str = BROADCAST_ADDRESS,
) -> ServerAddress:
    """
    Find an LMS server on the local network.

    A single request is broadcast; the first reply wins. Retrying is left
    to the caller.

    Args:
        timeout: Seconds to wait for a reply.
        port: Discovery port the servers listen on.
        broadcast_address: Destination of the request.

    Returns:
        Address of the server's JSON-RPC endpoint.

    Raises:
        DiscoveryTimeoutError: If nobody answered within timeout.
        DiscoveryError: If the discovery socket cannot be opened.
        MalformedReplyError: If the first reply could not be decoded.
    """
    logger.info("Discovering LMS server on the local network")
    loop = asyncio.get_running_loop()

    try:
        transport, protocol = await loop.create_datagram_endpoint(
            LMSDiscoveryProtocol,
            local_addr=("0.0.0.0", 0),
            allow_broadcast=True,
        )
    except OSError as e:
        raise DiscoveryError(f"Cannot open discovery socket: {e}") from e

    try:
        transport.sendto(build_request(), (broadcast_address, port))
        try:
            reply = await asyncio.wait_for(protocol.reply, timeout=timeout)
        except asyncio.TimeoutError:
            raise DiscoveryTimeoutError(timeout) from None
    finally:
        transport.close()

    logger.info(
        "Found LMS server %r at %s:%d (version %s)",
        reply.name,
        reply.host,
        reply.port,
        reply.version or "unknown",
    )
    return reply.address
