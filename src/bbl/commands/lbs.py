"""
bbl.commands.lbs — Print the load balancers attached to the environment.
"""

from __future__ import annotations

from typing import Any

from bbl.commands.base import CommandParser
from bbl.errors import BBLError, BBLNotFoundError
from bbl.storage import LBType, State
from bbl.ui import Logger

# Per lb type: (label, stack output prefix) for each load balancer it carries.
LOAD_BALANCERS: dict[str, tuple[tuple[str, str], ...]] = {
    LBType.CF: (("CF Router LB", "CFRouter"), ("CF SSH Proxy LB", "CFSSHProxy")),
    LBType.CONCOURSE: (("Concourse LB", "Concourse"),),
}


class LBs:
    def __init__(
        self, *, credential_validator: Any, infrastructure_manager: Any, ui: Logger
    ) -> None:
        self._credential_validator = credential_validator
        self._infrastructure = infrastructure_manager
        self._ui = ui

    def execute(self, args: list[str], state: State) -> State:
        CommandParser("bbl lbs").parse_args(args)
        self._credential_validator.validate()

        if not state.stack.name:
            raise BBLNotFoundError()
        stack = self._infrastructure.describe(state.stack.name)

        load_balancers = LOAD_BALANCERS.get(state.stack.lb_type)
        if not load_balancers:
            raise BBLError("no lbs found")
        for label, prefix in load_balancers:
            name = stack.outputs.get(f"{prefix}LoadBalancer", "")
            url = stack.outputs.get(f"{prefix}LoadBalancerURL", "")
            self._ui.println(f"{label}: {name} [{url}]")
        return state
