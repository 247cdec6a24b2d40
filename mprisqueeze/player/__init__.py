"""
Player process handling.

- template: renders the squeezelite command line
- process: starts the player and waits for it to exit
"""

from mprisqueeze.player.process import SupervisedProcess, spawn
from mprisqueeze.player.template import DEFAULT_TEMPLATE, CommandTemplate, render

__all__ = ["DEFAULT_TEMPLATE", "CommandTemplate", "SupervisedProcess", "render", "spawn"]
