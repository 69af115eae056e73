"""
bbl.commands.version — Print the bbl version banner.
"""

from __future__ import annotations

from bbl import __version__
from bbl.storage import State
from bbl.ui import Logger


class Version:
    def __init__(self, ui: Logger) -> None:
        self._ui = ui

    def execute(self, args: list[str], state: State) -> State:
        self._ui.println(f"bbl {__version__}")
        return state
