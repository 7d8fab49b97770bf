from __future__ import annotations


class NfseError(Exception):
    """Base class for every fault the pipeline turns into a failed Resultado."""

    codigo = "ERRO"

    def __init__(self, message: str, codigo: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if codigo is not None:
            self.codigo = codigo


class ValidationError(NfseError, ValueError):
    """Malformed request or missing mandatory field, raised before any network call."""

    codigo = "VALIDACAO"


class CertificateError(NfseError):
    """Wrong passphrase, corrupt archive, missing or expired certificate."""

    codigo = "CERTIFICADO"


class SignatureError(NfseError):
    """The document has nothing the signer can reference."""

    codigo = "ASSINATURA"


class TransportError(NfseError):
    codigo = "COMUNICACAO"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class HttpStatusError(TransportError):
    """The web service answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int, body: str = "") -> None:
        super().__init__(message, status_code=status_code)
        self.body = body


class TransportTimeoutError(TransportError):
    pass


class TransportConnectionError(TransportError):
    pass


class UnsupportedMunicipalityError(NfseError):
    """The municipality code has no registered provider."""

    codigo = "MUNICIPIO_NAO_SUPORTADO"

    def __init__(self, message: str, disponiveis: list[str] | None = None) -> None:
        super().__init__(message)
        self.disponiveis = disponiveis or []


class TenantError(NfseError):
    """Inactive tenant or tenant without a municipality code."""

    codigo = "EMPRESA_INVALIDA"


class ResponseParseError(NfseError):
    codigo = "RESPOSTA_INVALIDA"
