"""
bbl.commands.destroy — Tear the environment down in reverse dependency order.

Deployments, then the director VM, the stack, the key pair and finally the
load balancer certificate. Each state section is cleared as soon as its
resource is confirmed gone, so an interrupted destroy can be resumed.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from bbl.commands.base import CommandParser, director_client
from bbl.errors import BoshClientError, CommandInterruptedError, PartialStateError
from bbl.storage import BOSH, KeyPair, Stack, State
from bbl.ui import Logger

logger = logging.getLogger(__name__)

CONFIRMATION = (
    "Are you sure you want to delete your infrastructure? This operation cannot be undone!"
)


class Destroy:
    def __init__(
        self,
        *,
        credential_validator: Any,
        infrastructure_manager: Any,
        key_pair_manager: Any,
        certificate_manager: Any,
        bosh_init_runner: Any,
        bosh_client_provider: Any,
        ui: Logger,
    ) -> None:
        self._credential_validator = credential_validator
        self._infrastructure = infrastructure_manager
        self._key_pairs = key_pair_manager
        self._certificates = certificate_manager
        self._bosh_init = bosh_init_runner
        self._bosh_clients = bosh_client_provider
        self._ui = ui

    def execute(self, args: list[str], state: State) -> State:
        parser = CommandParser("bbl destroy")
        parser.add_argument("--no-confirm", action="store_true")
        options = parser.parse_args(args)

        if not options.no_confirm and not self._ui.prompt(CONFIRMATION):
            self._ui.step("exiting")
            return state

        self._credential_validator.validate()

        try:
            if state.bosh.director_address:
                self._delete_deployments(state)

            if state.bosh.manifest:
                self._bosh_init.delete(
                    state.bosh.manifest, state.bosh.state, state.key_pair.private_key
                )
            state = replace(state, bosh=BOSH())

            if state.stack.name:
                self._infrastructure.delete(state.stack.name)
                state = replace(state, stack=replace(state.stack, name=""))

            if state.key_pair.name:
                self._ui.step("deleting keypair")
                self._key_pairs.delete(state.key_pair.name)
            state = replace(state, key_pair=KeyPair())

            if state.stack.certificate_name:
                self._ui.step("deleting certificate")
                self._certificates.delete(state.stack.certificate_name)
            state = replace(state, stack=Stack())
        except KeyboardInterrupt as exc:
            raise CommandInterruptedError(exc, state) from exc
        except Exception as exc:
            raise PartialStateError(exc, state) from exc

        logger.info("Environment destroyed")
        return State()

    def _delete_deployments(self, state: State) -> None:
        client = director_client(state, self._bosh_clients)
        try:
            client.info()
        except BoshClientError as exc:
            logger.info("Director did not answer: %s", exc)
            self._ui.println("bosh director is unreachable, skipping deletion of deployments")
            return

        for name in client.deployments():
            self._ui.step(f"deleting bosh deployment {name}")
            client.delete_deployment(name)
