"""
bbl.commands.update_lbs — Rotate the certificate of the attached load balancer.

The old certificate is deleted only after the stack has moved to the new one;
IAM refuses to delete a certificate a load balancer still uses.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from bbl.aws.iam import Certificate
from bbl.commands.base import CommandParser, discard_certificate, ensure_environment
from bbl.errors import CommandInterruptedError, LBNotFoundError, PartialStateError
from bbl.storage import State, lb_attached
from bbl.ui import Logger

logger = logging.getLogger(__name__)


class UpdateLBs:
    def __init__(
        self,
        *,
        credential_validator: Any,
        certificate_validator: Any,
        infrastructure_manager: Any,
        bosh_client_provider: Any,
        certificate_manager: Any,
        availability_zone_retriever: Any,
        ui: Logger,
    ) -> None:
        self._credential_validator = credential_validator
        self._certificate_validator = certificate_validator
        self._infrastructure = infrastructure_manager
        self._bosh_clients = bosh_client_provider
        self._certificates = certificate_manager
        self._azs = availability_zone_retriever
        self._ui = ui

    def execute(self, args: list[str], state: State) -> State:
        parser = CommandParser("bbl update-lbs")
        parser.add_argument("--cert", default="")
        parser.add_argument("--key", default="")
        parser.add_argument("--chain", default="")
        options = parser.parse_args(args)

        self._credential_validator.validate()

        if not lb_attached(state.stack.lb_type):
            raise LBNotFoundError()

        ensure_environment(state, self._infrastructure, self._bosh_clients)
        self._certificate_validator.validate(
            "update-lbs", options.cert, options.key, options.chain
        )

        old_name = state.stack.certificate_name
        current = self._certificates.describe(old_name)
        if _same_certificate(current, options.cert, options.chain):
            self._ui.println("no updates are to be performed")
            return state

        self._ui.step("uploading new certificate")
        new_name = self._certificates.create(options.cert, options.key, options.chain)
        rotated = replace(state, stack=replace(state.stack, certificate_name=new_name))
        try:
            certificate = self._certificates.describe(new_name)
            azs = self._azs.retrieve(state.aws.region)
            self._infrastructure.update(
                key_pair_name=state.key_pair.name,
                az_count=len(azs),
                lb_type=state.stack.lb_type,
                lb_certificate_arn=certificate.arn,
                stack_name=state.stack.name,
            )
        except KeyboardInterrupt as exc:
            raise CommandInterruptedError(exc, rotated) from exc
        except Exception:
            discard_certificate(self._certificates, new_name)
            raise

        state = rotated
        try:
            self._ui.step("deleting old certificate")
            self._certificates.delete(old_name)
        except KeyboardInterrupt as exc:
            raise CommandInterruptedError(exc, state) from exc
        except Exception as exc:
            raise PartialStateError(exc, state) from exc
        return state


def _read_pem(path: str) -> str:
    return Path(path).read_text(encoding="utf-8").strip() if path else ""


def _same_certificate(current: Certificate, cert_path: str, chain_path: str) -> bool:
    """An empty --chain matches a certificate uploaded without one."""
    same_body = current.body.strip() == _read_pem(cert_path)
    return same_body and current.chain.strip() == _read_pem(chain_path)
