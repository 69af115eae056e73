"""
bbl.certs — Local checks on the certificate files passed to the lb commands.

Runs before anything is uploaded: the files must exist, parse as PEM, the key
must belong to the certificate and, when a chain is given, the certificate
must be issued by a certificate in the chain.
"""

from __future__ import annotations

from pathlib import Path

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization

from bbl.errors import ValidationError


def _read(path: str, label: str) -> bytes:
    file_path = Path(path)
    if not file_path.is_file():
        raise ValidationError(f"{label} file not found: {path}")
    try:
        return file_path.read_bytes()
    except OSError as exc:
        raise ValidationError(f"failed to read {label} file {path}: {exc}") from exc


def _public_key_der(public_key: object) -> bytes:
    return public_key.public_bytes(  # type: ignore[attr-defined]
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class CertificateValidator:
    def validate(self, command: str, cert_path: str, key_path: str, chain_path: str = "") -> None:
        if not cert_path or not key_path:
            raise ValidationError(f"--cert and --key are required for {command}")

        try:
            certificate = x509.load_pem_x509_certificate(_read(cert_path, "certificate"))
        except ValueError as exc:
            raise ValidationError(f"failed to parse certificate: {cert_path}") from exc

        try:
            private_key = serialization.load_pem_private_key(
                _read(key_path, "key"), password=None
            )
        except (ValueError, TypeError) as exc:
            raise ValidationError(f"failed to parse private key: {key_path}") from exc

        if _public_key_der(private_key.public_key()) != _public_key_der(certificate.public_key()):
            raise ValidationError("certificate and key mismatch")

        if chain_path:
            self._validate_chain(certificate, chain_path)

    def _validate_chain(self, certificate: x509.Certificate, chain_path: str) -> None:
        try:
            chain = x509.load_pem_x509_certificates(_read(chain_path, "chain"))
        except ValueError as exc:
            raise ValidationError(f"failed to parse chain: {chain_path}") from exc

        for issuer in chain:
            try:
                certificate.verify_directly_issued_by(issuer)
            except (ValueError, TypeError, InvalidSignature):
                continue
            return
        raise ValidationError("certificate is not signed by the provided chain")
