"""
bbl.commands.up — Create or converge the director and its infrastructure.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from bbl.aws.cloudformation.stacks import Stack
from bbl.boshinit.credentials import (
    DirectorSSL,
    InternalCredentials,
    generate_director_ssl,
    generate_password,
    generate_username,
)
from bbl.boshinit.manifests import (
    ManifestBuilder,
    ManifestProperties,
    dump_manifest,
    merge_prior,
)
from bbl.commands.base import CommandParser, director_client
from bbl.errors import CommandInterruptedError, PartialStateError
from bbl.storage import State, lb_attached
from bbl.ui import Logger

logger = logging.getLogger(__name__)


def default_stack_name() -> str:
    return f"bbl-aws-{secrets.token_hex(4)}"


class Up:
    def __init__(
        self,
        *,
        credential_validator: Any,
        key_pair_synchronizer: Any,
        availability_zone_retriever: Any,
        infrastructure_manager: Any,
        certificate_manager: Any,
        manifest_builder: ManifestBuilder,
        bosh_init_runner: Any,
        bosh_client_provider: Any,
        cloud_configurator: Any,
        cloud_config_manager: Any,
        ui: Logger,
        stack_name_generator: Callable[[], str] = default_stack_name,
        username_generator: Callable[[], str] = generate_username,
        password_generator: Callable[[], str] = generate_password,
        ssl_generator: Callable[[str], DirectorSSL] = generate_director_ssl,
    ) -> None:
        self._credential_validator = credential_validator
        self._key_pairs = key_pair_synchronizer
        self._azs = availability_zone_retriever
        self._infrastructure = infrastructure_manager
        self._certificates = certificate_manager
        self._manifest_builder = manifest_builder
        self._bosh_init = bosh_init_runner
        self._bosh_clients = bosh_client_provider
        self._configurator = cloud_configurator
        self._cloud_config = cloud_config_manager
        self._ui = ui
        self._stack_name_generator = stack_name_generator
        self._username_generator = username_generator
        self._password_generator = password_generator
        self._ssl_generator = ssl_generator

    def execute(self, args: list[str], state: State) -> State:
        CommandParser("bbl up").parse_args(args)
        self._credential_validator.validate()

        state = replace(state, key_pair=self._key_pairs.sync(state.key_pair))
        try:
            azs = self._azs.retrieve(state.aws.region)

            if not state.stack.name:
                stack_name = self._stack_name_generator()
                state = replace(state, stack=replace(state.stack, name=stack_name))

            certificate_arn = ""
            if lb_attached(state.stack.lb_type):
                certificate_arn = self._certificates.describe(state.stack.certificate_name).arn

            stack = self._infrastructure.create(
                key_pair_name=state.key_pair.name,
                az_count=len(azs),
                stack_name=state.stack.name,
                lb_type=state.stack.lb_type,
                lb_certificate_arn=certificate_arn,
            )

            properties, ssl = self._manifest_properties(state, stack)
            manifest = dump_manifest(self._manifest_builder.build(properties))
            freshly_created = not state.bosh.director_address

            bosh_init_state = self._bosh_init.deploy(
                manifest, state.bosh.state, state.key_pair.private_key
            )
            state = replace(
                state,
                bosh=replace(
                    state.bosh,
                    director_address=stack.outputs.get("BOSHURL", ""),
                    director_username=properties.director_username,
                    director_password=properties.director_password,
                    director_ssl_ca=ssl.ca,
                    director_ssl_certificate=ssl.certificate,
                    director_ssl_private_key=ssl.private_key,
                    credentials=properties.credentials.to_dict(),
                    manifest=manifest,
                    state=bosh_init_state,
                ),
            )

            if freshly_created:
                cloud_config = self._configurator.configure(stack, azs)
                bosh_client = director_client(state, self._bosh_clients)
                self._cloud_config.update(cloud_config, bosh_client)
        except KeyboardInterrupt as exc:
            raise CommandInterruptedError(exc, state) from exc
        except Exception as exc:
            raise PartialStateError(exc, state) from exc
        return state

    def _manifest_properties(
        self, state: State, stack: Stack
    ) -> tuple[ManifestProperties, DirectorSSL]:
        outputs = stack.outputs
        bosh = state.bosh
        if bosh.director_ssl_certificate and bosh.director_ssl_private_key:
            ssl = DirectorSSL(
                ca=bosh.director_ssl_ca,
                certificate=bosh.director_ssl_certificate,
                private_key=bosh.director_ssl_private_key,
            )
        else:
            ssl = self._ssl_generator(outputs.get("BOSHEIP", ""))

        properties = ManifestProperties(
            director_username=bosh.director_username,
            director_password=bosh.director_password,
            subnet_id=outputs.get("BOSHSubnet", ""),
            availability_zone=outputs.get("BOSHSubnetAZ", ""),
            elastic_ip=outputs.get("BOSHEIP", ""),
            access_key_id=outputs.get("BOSHUserAccessKey", ""),
            secret_access_key=outputs.get("BOSHUserSecretAccessKey", ""),
            default_key_name=state.key_pair.name,
            region=state.aws.region,
            security_group=outputs.get("BOSHSecurityGroup", ""),
            ssl_certificate=ssl.certificate,
            ssl_private_key=ssl.private_key,
            credentials=InternalCredentials.from_dict(bosh.credentials),
        )
        properties = merge_prior(properties, bosh.manifest)
        properties = replace(
            properties,
            director_username=properties.director_username or self._username_generator(),
            director_password=properties.director_password or self._password_generator(),
            credentials=properties.credentials.fill_missing(self._password_generator),
        )
        return properties, ssl
