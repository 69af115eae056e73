"""
bbl.aws.iam — Load balancer certificates stored as IAM server certificates.

Every upload gets a fresh, timestamped name; identical content uploaded
twice yields two certificates.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from botocore.exceptions import ClientError

from bbl.aws.clients import ClientProvider, error_code
from bbl.errors import BBLError

logger = logging.getLogger(__name__)

CERTIFICATE_NAME_PREFIX = "bbl-cert"
_NO_SUCH_ENTITY = "NoSuchEntity"


class CertificateNotFoundError(BBLError):
    """Raised when a named server certificate does not exist."""


@dataclass(frozen=True)
class Certificate:
    name: str
    arn: str
    body: str = ""
    chain: str = ""


def unique_certificate_name(now: datetime | None = None) -> str:
    moment = now or datetime.now(UTC)
    return f"{CERTIFICATE_NAME_PREFIX}-{moment:%Y%m%d%H%M%S}-{secrets.token_hex(4)}"


class CertificateManager:
    def __init__(
        self,
        client_provider: ClientProvider,
        *,
        name_generator: Callable[[], str] = unique_certificate_name,
    ) -> None:
        self._clients = client_provider
        self._new_name = name_generator

    def create(self, cert_path: str, key_path: str, chain_path: str = "") -> str:
        """Upload certificate + key (+ chain) and return the generated name."""
        name = self._new_name()
        upload_args: dict[str, Any] = {
            "ServerCertificateName": name,
            "CertificateBody": Path(cert_path).read_text(encoding="utf-8"),
            "PrivateKey": Path(key_path).read_text(encoding="utf-8"),
        }
        if chain_path:
            upload_args["CertificateChain"] = Path(chain_path).read_text(encoding="utf-8")
        self._clients.iam().upload_server_certificate(**upload_args)
        logger.info("Uploaded server certificate %s", name)
        return name

    def describe(self, name: str) -> Certificate:
        try:
            response = self._clients.iam().get_server_certificate(ServerCertificateName=name)
        except ClientError as exc:
            if error_code(exc) == _NO_SUCH_ENTITY:
                raise CertificateNotFoundError(f"certificate not found: {name}") from exc
            raise
        server_certificate = response["ServerCertificate"]
        metadata = server_certificate["ServerCertificateMetadata"]
        return Certificate(
            name=str(metadata["ServerCertificateName"]),
            arn=str(metadata["Arn"]),
            body=str(server_certificate.get("CertificateBody", "")),
            chain=str(server_certificate.get("CertificateChain", "")),
        )

    def delete(self, name: str) -> None:
        """Delete a certificate; an in-use certificate surfaces the cloud's error."""
        try:
            self._clients.iam().delete_server_certificate(ServerCertificateName=name)
        except ClientError as exc:
            if error_code(exc) != _NO_SUCH_ENTITY:
                raise
            logger.info("Server certificate %s already deleted", name)
