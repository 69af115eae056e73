"""
bbl.cli — Process entry point.

Sets up diagnostic logging, wires every collaborator for the state's AWS
credentials and maps SIGTERM onto KeyboardInterrupt so long-running calls
(stack waits, bosh-init) stop the same way Ctrl-C does.

Usage:
    bbl [--state-dir DIR] [--aws-access-key-id ID] [--aws-secret-access-key KEY]
        [--aws-region REGION] COMMAND [OPTIONS]
"""

from __future__ import annotations

import logging
import signal
import sys
from typing import Any

from bbl.application import App
from bbl.aws.clients import ClientProvider
from bbl.aws.cloudformation.infrastructure import InfrastructureManager
from bbl.aws.cloudformation.stacks import StackManager
from bbl.aws.cloudformation.templates import TemplateBuilder
from bbl.aws.credentials import CredentialValidator
from bbl.aws.ec2 import AvailabilityZoneRetriever, KeyPairManager, KeyPairSynchronizer
from bbl.aws.iam import CertificateManager
from bbl.bosh.client import BoshClientProvider
from bbl.bosh.cloud_config import CloudConfigManager, CloudConfigurator
from bbl.boshinit.manifests import ManifestBuilder
from bbl.boshinit.runner import BoshInitRunner
from bbl.certs import CertificateValidator
from bbl.commands.create_lbs import CreateLBs
from bbl.commands.delete_lbs import DeleteLBs
from bbl.commands.destroy import Destroy
from bbl.commands.help import Help
from bbl.commands.info import state_queries
from bbl.commands.lbs import LBs
from bbl.commands.up import Up
from bbl.commands.update_lbs import UpdateLBs
from bbl.commands.version import Version
from bbl.config import Settings, load_settings
from bbl.errors import ValidationError
from bbl.storage import AWS
from bbl.ui import Logger

logger = logging.getLogger("bbl")


def build_commands(aws: AWS, *, settings: Settings, ui: Logger) -> dict[str, Any]:
    """Wire the command set against one set of AWS credentials."""
    clients = ClientProvider(aws)
    credential_validator = CredentialValidator(aws, clients)
    certificate_validator = CertificateValidator()
    az_retriever = AvailabilityZoneRetriever(clients)
    key_pair_manager = KeyPairManager(clients)
    certificate_manager = CertificateManager(clients)
    infrastructure_manager = InfrastructureManager(
        TemplateBuilder(ui),
        StackManager(
            clients,
            ui,
            poll_interval_seconds=settings.stack_poll_interval_seconds,
            timeout_seconds=settings.stack_timeout_seconds,
        ),
    )
    bosh_client_provider = BoshClientProvider(
        timeout_seconds=settings.bosh_timeout_seconds,
        task_timeout_seconds=settings.bosh_task_timeout_seconds,
    )
    cloud_configurator = CloudConfigurator()
    cloud_config_manager = CloudConfigManager(ui)
    bosh_init_runner = BoshInitRunner(ui, executable=settings.bosh_init_path)

    commands: dict[str, Any] = {
        "help": Help(ui),
        "version": Version(ui),
        "up": Up(
            credential_validator=credential_validator,
            key_pair_synchronizer=KeyPairSynchronizer(key_pair_manager, ui),
            availability_zone_retriever=az_retriever,
            infrastructure_manager=infrastructure_manager,
            certificate_manager=certificate_manager,
            manifest_builder=ManifestBuilder(ui),
            bosh_init_runner=bosh_init_runner,
            bosh_client_provider=bosh_client_provider,
            cloud_configurator=cloud_configurator,
            cloud_config_manager=cloud_config_manager,
            ui=ui,
        ),
        "destroy": Destroy(
            credential_validator=credential_validator,
            infrastructure_manager=infrastructure_manager,
            key_pair_manager=key_pair_manager,
            certificate_manager=certificate_manager,
            bosh_init_runner=bosh_init_runner,
            bosh_client_provider=bosh_client_provider,
            ui=ui,
        ),
        "create-lbs": CreateLBs(
            credential_validator=credential_validator,
            certificate_validator=certificate_validator,
            infrastructure_manager=infrastructure_manager,
            bosh_client_provider=bosh_client_provider,
            certificate_manager=certificate_manager,
            availability_zone_retriever=az_retriever,
            cloud_configurator=cloud_configurator,
            cloud_config_manager=cloud_config_manager,
            ui=ui,
        ),
        "update-lbs": UpdateLBs(
            credential_validator=credential_validator,
            certificate_validator=certificate_validator,
            infrastructure_manager=infrastructure_manager,
            bosh_client_provider=bosh_client_provider,
            certificate_manager=certificate_manager,
            availability_zone_retriever=az_retriever,
            ui=ui,
        ),
        "delete-lbs": DeleteLBs(
            credential_validator=credential_validator,
            infrastructure_manager=infrastructure_manager,
            bosh_client_provider=bosh_client_provider,
            certificate_manager=certificate_manager,
            availability_zone_retriever=az_retriever,
            cloud_configurator=cloud_configurator,
            cloud_config_manager=cloud_config_manager,
            ui=ui,
        ),
        "lbs": LBs(
            credential_validator=credential_validator,
            infrastructure_manager=infrastructure_manager,
            ui=ui,
        ),
    }
    commands.update(state_queries(ui))
    return commands


def _interrupt(signum: int, frame: Any) -> None:
    raise KeyboardInterrupt


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    try:
        settings = load_settings()
    except ValidationError as exc:
        print(exc, file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    signal.signal(signal.SIGTERM, _interrupt)

    ui = Logger()
    app = App(lambda aws: build_commands(aws, settings=settings, ui=ui))
    try:
        return app.run(sys.argv[1:] if argv is None else argv)
    except KeyboardInterrupt:
        logger.warning("Interrupted, state was not saved")
        print("interrupted", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
