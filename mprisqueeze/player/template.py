"""
Command line templating for the squeezelite process.

A template is a shell-like command line in which `{name}` and `{server}`
are replaced by the player name and the LMS host. Both placeholders are
mandatory: without them the player could not be identified on LMS, or
would connect to the wrong server.
"""

from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass

from mprisqueeze.errors import MissingPlaceholderError, TemplateError
from mprisqueeze.models import PlayerIdentity, ServerAddress

logger = logging.getLogger(__name__)

NAME_PLACEHOLDER = "{name}"
SERVER_PLACEHOLDER = "{server}"

DEFAULT_TEMPLATE = f"squeezelite -n {NAME_PLACEHOLDER} -s {SERVER_PLACEHOLDER}"

_PLACEHOLDER_RE = re.compile(re.escape(NAME_PLACEHOLDER) + "|" + re.escape(SERVER_PLACEHOLDER))


@dataclass(frozen=True)
class CommandTemplate:
    """A parsed command line template."""

    source: str
    tokens: tuple[str, ...]

    @classmethod
    def parse(cls, template: str) -> CommandTemplate:
        """
        Parse a template string.

        Raises:
            TemplateError: If the template is empty or its quoting is broken.
            MissingPlaceholderError: If {name} or {server} never appears.
        """
        try:
            tokens = shlex.split(template)
        except ValueError as e:
            raise TemplateError(f"Cannot parse command template {template!r}: {e}") from e

        if not tokens:
            raise TemplateError("Command template is empty")

        missing = [
            placeholder
            for placeholder in (NAME_PLACEHOLDER, SERVER_PLACEHOLDER)
            if not any(placeholder in token for token in tokens)
        ]
        if missing:
            raise MissingPlaceholderError(template, missing)

        return cls(source=template, tokens=tuple(tokens))

    def render(self, name: PlayerIdentity, server: ServerAddress) -> list[str]:
        """
        Substitute the placeholders in every token.

        The server is rendered as its host only: the JSON-RPC port we know
        about is not the slimproto port squeezelite connects to.
        """
        values = {NAME_PLACEHOLDER: name.name, SERVER_PLACEHOLDER: server.host}
        argv = [
            _PLACEHOLDER_RE.sub(lambda match: values[match.group(0)], token)
            for token in self.tokens
        ]
        logger.debug("Rendered command template %r as %s", self.source, argv)
        return argv


def render(template: str, name: PlayerIdentity, server: ServerAddress) -> list[str]:
    """Parse `template` and render it for the given player and server."""
    return CommandTemplate.parse(template).render(name, server)
