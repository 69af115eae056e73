"""
bbl.aws.ec2 — Availability zones and the director's SSH key pair.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any
from uuid import uuid4

from botocore.exceptions import ClientError
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from bbl.aws.clients import ClientProvider, error_code
from bbl.storage import KeyPair
from bbl.ui import Logger

logger = logging.getLogger(__name__)

_KEY_PAIR_NOT_FOUND = "InvalidKeyPair.NotFound"


class AvailabilityZoneRetriever:
    def __init__(self, client_provider: ClientProvider) -> None:
        self._clients = client_provider

    def retrieve(self, region: str) -> list[str]:
        """Return the sorted names of the zones currently available in region."""
        response = self._clients.ec2().describe_availability_zones()
        zones = [
            str(zone["ZoneName"])
            for zone in response.get("AvailabilityZones", [])
            if zone.get("RegionName", region) == region
            and zone.get("State", "available") == "available"
        ]
        return sorted(zones)


def generate_key_pair(name: str) -> KeyPair:
    """Generate an RSA-2048 key pair: OpenSSH public key, PEM private key."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_openssh = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.OpenSSH,
            format=serialization.PublicFormat.OpenSSH,
        )
        .decode("utf-8")
    )
    return KeyPair(name=name, public_key=public_openssh, private_key=private_pem)


def default_key_pair_name() -> str:
    return f"keypair-{uuid4()}"


class KeyPairManager:
    """EC2 key pair lookups, imports and deletes."""

    def __init__(self, client_provider: ClientProvider) -> None:
        self._clients = client_provider

    def exists(self, name: str) -> bool:
        try:
            response = self._clients.ec2().describe_key_pairs(KeyNames=[name])
        except ClientError as exc:
            if error_code(exc) == _KEY_PAIR_NOT_FOUND:
                return False
            raise
        return any(item.get("KeyName") == name for item in response.get("KeyPairs", []))

    def upload(self, key_pair: KeyPair) -> None:
        self._clients.ec2().import_key_pair(
            KeyName=key_pair.name,
            PublicKeyMaterial=key_pair.public_key.encode("utf-8"),
        )
        logger.info("Imported key pair %s", key_pair.name)

    def delete(self, name: str) -> None:
        """Delete a key pair; one that is already gone counts as deleted."""
        try:
            self._clients.ec2().delete_key_pair(KeyName=name)
        except ClientError as exc:
            if error_code(exc) != _KEY_PAIR_NOT_FOUND:
                raise
            logger.info("Key pair %s already deleted", name)


class KeyPairSynchronizer:
    """Make the cloud's key pair match the one recorded in state."""

    def __init__(
        self,
        manager: Any,
        ui: Logger,
        *,
        generator: Callable[[str], KeyPair] = generate_key_pair,
        name_generator: Callable[[], str] = default_key_pair_name,
    ) -> None:
        self._manager = manager
        self._ui = ui
        self._generate = generator
        self._new_name = name_generator

    def sync(self, key_pair: KeyPair) -> KeyPair:
        if not key_pair.has_material:
            self._ui.step("creating keypair")
            generated = self._generate(self._new_name())
            self._manager.upload(generated)
            return replace(
                key_pair,
                name=generated.name,
                public_key=generated.public_key,
                private_key=generated.private_key,
            )

        name = key_pair.name or self._new_name()
        self._ui.step("checking if keypair exists")
        if self._manager.exists(name):
            return replace(key_pair, name=name)

        self._ui.step("uploading keypair")
        synced = replace(key_pair, name=name)
        self._manager.upload(synced)
        return synced
