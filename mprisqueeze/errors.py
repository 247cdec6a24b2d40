"""
Exception hierarchy for mprisqueeze.

Startup errors (configuration, discovery, templating, spawning) are fatal
for the process. RPC errors are raised per LMS request and only fail the
D-Bus call that triggered them.
"""

from __future__ import annotations


class MprisqueezeError(Exception):
    """Base class for all mprisqueeze errors."""


class ConfigError(MprisqueezeError):
    """Raised when the configuration file cannot be used."""


class DiscoveryError(MprisqueezeError):
    """Base class for LMS discovery failures."""


class DiscoveryTimeoutError(DiscoveryError):
    """No server answered the discovery broadcast in time."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"No LMS server answered within {timeout:g} seconds")
        self.timeout = timeout


class MalformedReplyError(DiscoveryError):
    """A discovery reply did not follow the tag/length/value layout."""


class TemplateError(MprisqueezeError):
    """The player command template could not be parsed."""


class MissingPlaceholderError(TemplateError):
    """The template lacks a required placeholder."""

    def __init__(self, template: str, missing: list[str]) -> None:
        super().__init__(
            f"Command template {template!r} is missing {', '.join(missing)}"
        )
        self.template = template
        self.missing = missing


class SpawnError(MprisqueezeError):
    """The player process could not be started."""


class BinaryNotFoundError(SpawnError):
    """The player binary does not exist or is not on PATH."""


class SpawnPermissionError(SpawnError):
    """The player binary exists but cannot be executed."""


class RpcError(MprisqueezeError):
    """Base class for LMS JSON-RPC failures."""


class RpcNetworkError(RpcError):
    """The LMS server could not be reached or did not answer in time."""


class RpcHttpError(RpcError):
    """The LMS server answered with a non-2xx HTTP status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"LMS answered with HTTP status {status}")
        self.status = status


class RpcDecodeError(RpcError):
    """The LMS response body is not the expected JSON shape."""


class ServiceError(MprisqueezeError):
    """The MPRIS service could not be registered on the bus."""
