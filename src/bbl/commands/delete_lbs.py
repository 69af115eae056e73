"""
bbl.commands.delete_lbs — Detach the load balancer and drop its certificate.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from bbl.commands.base import CommandParser, ensure_environment
from bbl.errors import CommandInterruptedError, LBNotFoundError, PartialStateError
from bbl.storage import LBType, State, lb_attached
from bbl.ui import Logger

logger = logging.getLogger(__name__)


class DeleteLBs:
    def __init__(
        self,
        *,
        credential_validator: Any,
        infrastructure_manager: Any,
        bosh_client_provider: Any,
        certificate_manager: Any,
        availability_zone_retriever: Any,
        cloud_configurator: Any,
        cloud_config_manager: Any,
        ui: Logger,
    ) -> None:
        self._credential_validator = credential_validator
        self._infrastructure = infrastructure_manager
        self._bosh_clients = bosh_client_provider
        self._certificates = certificate_manager
        self._azs = availability_zone_retriever
        self._configurator = cloud_configurator
        self._cloud_config = cloud_config_manager
        self._ui = ui

    def execute(self, args: list[str], state: State) -> State:
        CommandParser("bbl delete-lbs").parse_args(args)
        self._credential_validator.validate()

        bosh_client = ensure_environment(state, self._infrastructure, self._bosh_clients)
        if not lb_attached(state.stack.lb_type):
            raise LBNotFoundError()

        old_certificate = state.stack.certificate_name
        azs = self._azs.retrieve(state.aws.region)
        stack = self._infrastructure.update(
            key_pair_name=state.key_pair.name,
            az_count=len(azs),
            lb_type=LBType.NONE,
            lb_certificate_arn="",
            stack_name=state.stack.name,
        )

        state = replace(
            state, stack=replace(state.stack, lb_type=LBType.UNSET, certificate_name="")
        )
        try:
            self._ui.step("deleting certificate")
            self._certificates.delete(old_certificate)
            self._cloud_config.update(self._configurator.configure(stack, azs), bosh_client)
        except KeyboardInterrupt as exc:
            raise CommandInterruptedError(exc, state) from exc
        except Exception as exc:
            raise PartialStateError(exc, state) from exc
        return state
