"""
bbl.boshinit.credentials — Secrets baked into the director manifest.

Generated once on the first ``bbl up`` and stored in state so later runs
produce the same manifest.
"""

from __future__ import annotations

import ipaddress
import secrets
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from datetime import UTC, datetime, timedelta
from typing import Any, ClassVar

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

PASSWORD_LENGTH = 15
SSL_VALIDITY_DAYS = 365 * 2


def generate_password() -> str:
    return secrets.token_hex(PASSWORD_LENGTH)[:PASSWORD_LENGTH]


def generate_username() -> str:
    return f"user-{secrets.token_hex(4)}"


@dataclass(frozen=True)
class InternalCredentials:
    mbus_password: str = ""
    nats_password: str = ""
    postgres_password: str = ""
    registry_password: str = ""
    blobstore_director_password: str = ""
    blobstore_agent_password: str = ""
    hm_password: str = ""

    _KEYS: ClassVar[dict[str, str]] = {
        "mbus_password": "mbusPassword",
        "nats_password": "natsPassword",
        "postgres_password": "postgresPassword",
        "registry_password": "registryPassword",
        "blobstore_director_password": "blobstoreDirectorPassword",
        "blobstore_agent_password": "blobstoreAgentPassword",
        "hm_password": "hmPassword",
    }

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> InternalCredentials:
        raw = raw or {}
        return cls(
            **{attr: str(raw.get(key, "")) for attr, key in cls._KEYS.items() if raw.get(key)}
        )

    def to_dict(self) -> dict[str, str]:
        return {key: getattr(self, attr) for attr, key in self._KEYS.items()}

    def is_complete(self) -> bool:
        return all(getattr(self, f.name) for f in fields(self))

    def merged_with(self, fallback: InternalCredentials) -> InternalCredentials:
        """Fill blank fields from fallback."""
        blanks = [f.name for f in fields(self) if not getattr(self, f.name)]
        return replace(self, **{name: getattr(fallback, name) for name in blanks})

    def fill_missing(self, generator: Callable[[], str] = generate_password) -> InternalCredentials:
        blanks = [f.name for f in fields(self) if not getattr(self, f.name)]
        return replace(self, **{name: generator() for name in blanks})


@dataclass(frozen=True)
class DirectorSSL:
    ca: str
    certificate: str
    private_key: str


def _private_key_pem(key: rsa.RSAPrivateKey) -> str:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def _certificate_pem(certificate: x509.Certificate) -> str:
    return certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def _subject_alternative_name(address: str) -> x509.GeneralName:
    try:
        return x509.IPAddress(ipaddress.ip_address(address))
    except ValueError:
        return x509.DNSName(address)


def generate_director_ssl(address: str, now: datetime | None = None) -> DirectorSSL:
    """Create a CA and a director certificate for address, signed by that CA."""
    issued_at = now or datetime.now(UTC)
    expires_at = issued_at + timedelta(days=SSL_VALIDITY_DAYS)

    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca_name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "bbl-director-ca")])
    ca_certificate = (
        x509.CertificateBuilder()
        .subject_name(ca_name)
        .issuer_name(ca_name)
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(issued_at)
        .not_valid_after(expires_at)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )

    director_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    director_certificate = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, address or "bosh")]))
        .issuer_name(ca_name)
        .public_key(director_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(issued_at)
        .not_valid_after(expires_at)
        .add_extension(
            x509.SubjectAlternativeName([_subject_alternative_name(address or "bosh")]),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )

    return DirectorSSL(
        ca=_certificate_pem(ca_certificate),
        certificate=_certificate_pem(director_certificate),
        private_key=_private_key_pem(director_key),
    )
