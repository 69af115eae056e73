from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from bbl.ui import Logger

REGION = "us-east-1"


@pytest.fixture(autouse=True)
def aws_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Fake AWS credentials so moto intercepts every boto3 call."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")  # pragma: allowlist secret
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")  # pragma: allowlist secret
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.delenv("BBL_AWS_ACCESS_KEY_ID", raising=False)
    monkeypatch.delenv("BBL_AWS_SECRET_ACCESS_KEY", raising=False)
    monkeypatch.delenv("BBL_AWS_REGION", raising=False)


@pytest.fixture
def stdout() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def ui(stdout: io.StringIO) -> Logger:
    return Logger(stdout=stdout, stdin=io.StringIO())


@dataclass
class CertFiles:
    cert: Path
    key: Path
    chain: Path
    other_key: Path


def _key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def _key_pem(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _certificate(
    subject: str, key: rsa.RSAPrivateKey, issuer: str, signer: rsa.RSAPrivateKey, *, ca: bool
) -> x509.Certificate:
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, subject)]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer)]))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .sign(signer, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def cert_material() -> dict[str, bytes]:
    ca_key = _key()
    leaf_key = _key()
    ca = _certificate("test-ca", ca_key, "test-ca", ca_key, ca=True)
    leaf = _certificate("lb.example.com", leaf_key, "test-ca", ca_key, ca=False)
    return {
        "cert": leaf.public_bytes(serialization.Encoding.PEM),
        "key": _key_pem(leaf_key),
        "chain": ca.public_bytes(serialization.Encoding.PEM),
        "other_key": _key_pem(_key()),
    }


@pytest.fixture
def cert_files(tmp_path: Path, cert_material: dict[str, bytes]) -> CertFiles:
    paths = {}
    for name, content in cert_material.items():
        path = tmp_path / f"{name}.pem"
        path.write_bytes(content)
        paths[name] = path
    return CertFiles(**paths)
