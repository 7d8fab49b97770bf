from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    pkcs12,
)
from cryptography.x509 import Certificate

from abrasf.services.exceptions import CertificateError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningMaterial:
    """Decrypted key/certificate PEM pair, alive only inside ``signing_scope``."""

    key_pem: bytes
    cert_pem: bytes
    certificate: Certificate

    @property
    def not_after(self) -> datetime:
        return self.certificate.not_valid_after_utc


def _load(pfx_data: bytes, password: str) -> tuple:
    try:
        private_key, certificate, chain = pkcs12.load_key_and_certificates(
            pfx_data, password.encode() if password else None
        )
    except ValueError as exc:
        # cryptography reports both a wrong password and a corrupt archive as ValueError
        raise CertificateError(f"Falha ao abrir certificado digital: senha incorreta ou arquivo invalido ({exc})") from exc
    if private_key is None or certificate is None:
        raise CertificateError("Certificado ou chave privada nao encontrados no arquivo .pfx")
    return private_key, certificate, chain


def load_pfx(pfx_data: bytes, password: str) -> SigningMaterial:
    """Decrypt a .pfx/.p12 archive into PEM key and certificate."""
    if not pfx_data:
        raise CertificateError("Certificado digital nao informado")
    private_key, certificate, _ = _load(pfx_data, password)
    key_pem = private_key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=NoEncryption(),
    )
    return SigningMaterial(
        key_pem=key_pem,
        cert_pem=certificate.public_bytes(Encoding.PEM),
        certificate=certificate,
    )


def certificate_info(pfx_data: bytes, password: str) -> dict:
    """Return subject, issuer, validity window and serial of the certificate."""
    _, certificate, _ = _load(pfx_data, password)
    now = datetime.now(UTC)
    return {
        "subject": certificate.subject.rfc4514_string(),
        "issuer": certificate.issuer.rfc4514_string(),
        "not_before": certificate.not_valid_before_utc,
        "not_after": certificate.not_valid_after_utc,
        "valid": certificate.not_valid_before_utc <= now <= certificate.not_valid_after_utc,
        "serial": certificate.serial_number,
    }


def check_not_expired(not_after: datetime, now: datetime | None = None) -> None:
    """Raise CertificateError when the certificate validity has ended."""
    now = now or datetime.now(UTC)
    if not_after < now:
        raise CertificateError(f"Certificado digital vencido em {not_after:%d/%m/%Y}")


@contextmanager
def signing_scope(pfx_data: bytes, password: str) -> Iterator[SigningMaterial]:
    """Decrypt the certificate for the signing step of one pipeline call.

    Callers should not keep the yielded material past the block.
    """
    material = load_pfx(pfx_data, password)
    logger.debug("Certificado carregado: %s", material.certificate.subject.rfc4514_string())
    yield material
