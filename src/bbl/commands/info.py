"""
bbl.commands.info — Print single values recorded in the state file.
"""

from __future__ import annotations

from collections.abc import Callable

from bbl.commands.base import CommandParser
from bbl.errors import BBLError
from bbl.storage import State
from bbl.ui import Logger


class StateQuery:
    def __init__(self, ui: Logger, *, label: str, getter: Callable[[State], str]) -> None:
        self._ui = ui
        self._label = label
        self._getter = getter

    def execute(self, args: list[str], state: State) -> State:
        CommandParser(f"bbl {self._label.replace(' ', '-')}").parse_args(args)
        value = self._getter(state)
        if not value:
            raise BBLError(
                f"Could not retrieve {self._label}, "
                "please make sure you are targeting the proper state dir."
            )
        self._ui.println(value.rstrip("\n"))
        return state


def state_queries(ui: Logger) -> dict[str, StateQuery]:
    return {
        "director-address": StateQuery(
            ui, label="director address", getter=lambda state: state.bosh.director_address
        ),
        "director-username": StateQuery(
            ui, label="director username", getter=lambda state: state.bosh.director_username
        ),
        "director-password": StateQuery(
            ui, label="director password", getter=lambda state: state.bosh.director_password
        ),
        "director-ca-cert": StateQuery(
            ui, label="director ca cert", getter=lambda state: state.bosh.director_ssl_ca
        ),
        "ssh-key": StateQuery(
            ui, label="ssh key", getter=lambda state: state.key_pair.private_key
        ),
    }
