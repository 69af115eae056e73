"""
bbl.commands.create_lbs — Attach a cf or concourse load balancer.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from bbl.commands.base import CommandParser, discard_certificate, ensure_environment
from bbl.errors import CommandInterruptedError, PartialStateError, ValidationError
from bbl.storage import ATTACHABLE_LB_TYPES, State, lb_attached
from bbl.ui import Logger

logger = logging.getLogger(__name__)


class CreateLBs:
    def __init__(
        self,
        *,
        credential_validator: Any,
        certificate_validator: Any,
        infrastructure_manager: Any,
        bosh_client_provider: Any,
        certificate_manager: Any,
        availability_zone_retriever: Any,
        cloud_configurator: Any,
        cloud_config_manager: Any,
        ui: Logger,
    ) -> None:
        self._credential_validator = credential_validator
        self._certificate_validator = certificate_validator
        self._infrastructure = infrastructure_manager
        self._bosh_clients = bosh_client_provider
        self._certificates = certificate_manager
        self._azs = availability_zone_retriever
        self._configurator = cloud_configurator
        self._cloud_config = cloud_config_manager
        self._ui = ui

    def execute(self, args: list[str], state: State) -> State:
        parser = CommandParser("bbl create-lbs")
        parser.add_argument("--type", dest="lb_type", default="")
        parser.add_argument("--cert", default="")
        parser.add_argument("--key", default="")
        parser.add_argument("--chain", default="")
        parser.add_argument("--skip-if-exists", action="store_true")
        options = parser.parse_args(args)

        self._credential_validator.validate()
        self._certificate_validator.validate(
            "create-lbs", options.cert, options.key, options.chain
        )

        if options.lb_type not in ATTACHABLE_LB_TYPES:
            raise ValidationError(
                f'"{options.lb_type}" is not a valid lb type, '
                "valid lb types are: concourse and cf"
            )

        current = state.stack.lb_type
        if lb_attached(current):
            if options.skip_if_exists:
                self._ui.println(f'lb type "{current}" exists, skipping...')
                return state
            raise ValidationError(
                f"bbl already has a {current} load balancer attached, "
                "please remove the previous load balancer before attaching a new one"
            )

        bosh_client = ensure_environment(state, self._infrastructure, self._bosh_clients)

        self._ui.step("uploading certificate")
        certificate_name = self._certificates.create(options.cert, options.key, options.chain)
        attached = replace(
            state,
            stack=replace(
                state.stack, lb_type=options.lb_type, certificate_name=certificate_name
            ),
        )
        try:
            certificate = self._certificates.describe(certificate_name)
            azs = self._azs.retrieve(state.aws.region)
            stack = self._infrastructure.update(
                key_pair_name=state.key_pair.name,
                az_count=len(azs),
                lb_type=options.lb_type,
                lb_certificate_arn=certificate.arn,
                stack_name=state.stack.name,
            )
        except KeyboardInterrupt as exc:
            # The stack update may still be running; delete-lbs can undo it.
            raise CommandInterruptedError(exc, attached) from exc
        except Exception:
            discard_certificate(self._certificates, certificate_name)
            raise

        state = attached
        try:
            self._cloud_config.update(self._configurator.configure(stack, azs), bosh_client)
        except KeyboardInterrupt as exc:
            raise CommandInterruptedError(exc, state) from exc
        except Exception as exc:
            raise PartialStateError(exc, state) from exc
        return state
