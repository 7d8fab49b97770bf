from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from abrasf.config import get_cert_password, get_cert_path
from abrasf.services.exceptions import CertificateError

logger = logging.getLogger(__name__)


class CertificateSource(Protocol):
    """Certificate collaborator: hands out the tenant's .pfx bytes and passphrase.

    The pipeline borrows both for one call and never stores them.
    """

    def get_certificate(self, tenant_id: str) -> tuple[bytes, str]: ...


class LocalCertificateSource:
    """Single-certificate source backed by CERT_PFX_PATH and the env/keyring password."""

    def __init__(self, pfx_path: str | None = None, password: str | None = None) -> None:
        self._pfx_path = pfx_path
        self._password = password

    def get_certificate(self, tenant_id: str) -> tuple[bytes, str]:
        try:
            pfx_path = self._pfx_path or get_cert_path()
            password = self._password if self._password is not None else get_cert_password()
        except KeyError as exc:
            raise CertificateError(
                f"Certificado digital nao configurado ({exc.args[0]} ausente)"
            ) from None
        try:
            data = Path(pfx_path).read_bytes()
        except OSError as exc:
            raise CertificateError(f"Certificado digital nao encontrado: {pfx_path}") from exc
        logger.debug("Certificado de %s lido de %s", tenant_id, pfx_path)
        return data, password
