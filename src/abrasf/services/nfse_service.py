from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, date, datetime
from pathlib import Path

from lxml import etree

from abrasf import operations as op
from abrasf.config import SOAP_TIMEOUT
from abrasf.models.requests import (
    CancelarNfseRequest,
    ConsultarNfsePorRpsRequest,
    ConsultarNfseRequest,
    LoteRpsRequest,
    SubstituirNfseRequest,
)
from abrasf.models.result import Resultado
from abrasf.models.rps import Rps
from abrasf.models.tenant import Tenant
from abrasf.providers.base import MunicipioDisponivel, NfseProvider
from abrasf.providers.registry import ProviderRegistry, default_registry
from abrasf.services import xml_builder, xsd_validator
from abrasf.services.certificates import CertificateSource
from abrasf.services.exceptions import (
    CertificateError,
    NfseError,
    TenantError,
    TransportError,
)
from abrasf.services.http_retry import RetryPolicy, retry_call
from abrasf.services.response_parser import parse_response
from abrasf.services.soap_client import post_envelope
from abrasf.services.xml_signer import sign_document
from abrasf.utils.certificate import check_not_expired, signing_scope

logger = logging.getLogger(__name__)

ERRO_INTERNO = "ERRO_INTERNO"
MENSAGEM_ERRO_INTERNO = "Erro interno ao processar a requisicao. Consulte os logs do servidor."

# Builds the unsigned document once the provider is known.
Montador = Callable[[NfseProvider], etree._Element]


class NfseService:
    """Pipeline orchestrator for the nine ABRASF operations.

    Each call is independent: provider lookup, assembly, certificate
    decryption, signing, SOAP wrap, transport and normalization happen inside
    the call and every outcome, fault or not, comes back as one Resultado.
    """

    def __init__(
        self,
        certificates: CertificateSource,
        registry: ProviderRegistry | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout: int = SOAP_TIMEOUT,
        schema_dir: Path | None = None,
    ) -> None:
        self.certificates = certificates
        self.registry = registry or default_registry()
        self.retry_policy = retry_policy
        self.timeout = timeout
        self.schema_dir = schema_dir

    def listar_municipios(self) -> list[MunicipioDisponivel]:
        return self.registry.list_available()

    # --- Operations ---

    def gerar_nfse(self, tenant: Tenant, rps: Rps) -> Resultado:
        return self.executar(
            op.GERAR_NFSE,
            tenant,
            lambda p: xml_builder.build_gerar_nfse(rps, tenant, p.descriptor.namespace_nfse),
            esquema=xsd_validator.esquema_padrao(op.GERAR_NFSE),
        )

    def enviar_lote_rps(self, tenant: Tenant, lote: LoteRpsRequest) -> Resultado:
        return self.executar(
            op.RECEPCIONAR_LOTE_RPS,
            tenant,
            lambda p: xml_builder.build_enviar_lote(lote, tenant, p.descriptor.namespace_nfse),
            esquema=xsd_validator.esquema_padrao(op.RECEPCIONAR_LOTE_RPS),
        )

    def enviar_lote_rps_sincrono(self, tenant: Tenant, lote: LoteRpsRequest) -> Resultado:
        return self.executar(
            op.RECEPCIONAR_LOTE_RPS_SINCRONO,
            tenant,
            lambda p: xml_builder.build_enviar_lote(lote, tenant, p.descriptor.namespace_nfse, sincrono=True),
            esquema=xsd_validator.esquema_padrao(op.RECEPCIONAR_LOTE_RPS_SINCRONO),
        )

    def consultar_situacao_lote_rps(self, tenant: Tenant, protocolo: str) -> Resultado:
        return self.executar(
            op.CONSULTAR_SITUACAO_LOTE_RPS,
            tenant,
            lambda p: xml_builder.build_consultar_situacao_lote(protocolo, tenant, p.descriptor.namespace_nfse),
        )

    def consultar_lote_rps(self, tenant: Tenant, protocolo: str) -> Resultado:
        return self.executar(
            op.CONSULTAR_LOTE_RPS,
            tenant,
            lambda p: xml_builder.build_consultar_lote(protocolo, tenant, p.descriptor.namespace_nfse),
        )

    def consultar_nfse_por_rps(self, tenant: Tenant, request: ConsultarNfsePorRpsRequest) -> Resultado:
        return self.executar(
            op.CONSULTAR_NFSE_POR_RPS,
            tenant,
            lambda p: xml_builder.build_consultar_nfse_por_rps(request, tenant, p.descriptor.namespace_nfse),
        )

    def consultar_nfse(self, tenant: Tenant, request: ConsultarNfseRequest) -> Resultado:
        return self.executar(
            op.CONSULTAR_NFSE_SERVICO_PRESTADO,
            tenant,
            lambda p: xml_builder.build_consultar_nfse(request, tenant, p.descriptor.namespace_nfse),
            pagina=request.pagina,
        )

    def cancelar_nfse(self, tenant: Tenant, request: CancelarNfseRequest) -> Resultado:
        return self.executar(
            op.CANCELAR_NFSE,
            tenant,
            lambda p: xml_builder.build_cancelar_nfse(request, tenant, p.descriptor.namespace_nfse),
        )

    def substituir_nfse(self, tenant: Tenant, request: SubstituirNfseRequest) -> Resultado:
        return self.executar(
            op.SUBSTITUIR_NFSE,
            tenant,
            lambda p: xml_builder.build_substituir_nfse(request, tenant, p.descriptor.namespace_nfse),
        )

    # --- Pipeline ---

    def _preflight(self, tenant: Tenant | None, today: date | None = None) -> NfseProvider:
        if tenant is None:
            raise TenantError("Empresa nao encontrada")
        if not tenant.ativa:
            raise TenantError(f"Empresa {tenant.id} esta inativa")
        if not tenant.codigo_municipio:
            raise TenantError(f"Empresa {tenant.id} sem codigo de municipio configurado")
        provider = self.registry.resolve(tenant.codigo_municipio)
        if tenant.certificado_validade is not None:
            today = today or datetime.now(UTC).date()
            if tenant.certificado_validade < today:
                raise CertificateError(
                    f"Certificado digital vencido em {tenant.certificado_validade:%d/%m/%Y}"
                )
        return provider

    def executar(
        self,
        operacao: str,
        tenant: Tenant,
        montar: Montador,
        *,
        pagina: int = 1,
        direto: bool = False,
        esquema: str | None = None,
    ) -> Resultado:
        """Run one operation end to end; never raises.

        When *esquema* names a schema file, the assembled document is checked
        against it before the certificate is even opened.
        """
        inicio = time.perf_counter()
        enviado: dict[str, str] = {}
        logger.info(
            "%s: empresa=%s municipio=%s ambiente=%s",
            operacao,
            getattr(tenant, "id", None),
            getattr(tenant, "codigo_municipio", None),
            getattr(tenant, "tipo_ambiente", None),
        )
        try:
            provider = self._preflight(tenant)
            doc = montar(provider)
            if esquema:
                xsd_validator.validate_document(doc, self.schema_dir, esquema)
            result = self._enviar(provider, tenant, operacao, doc, enviado, pagina=pagina, direto=direto)
        except TransportError as exc:
            logger.error("%s: falha de comunicacao: %s", operacao, exc)
            result = Resultado.falha(operacao, exc.codigo, exc.message)
        except NfseError as exc:
            logger.warning("%s: %s (%s)", operacao, exc.message, exc.codigo)
            result = Resultado.falha(operacao, exc.codigo, exc.message)
        except Exception:
            logger.exception("%s: erro inesperado (empresa=%s)", operacao, getattr(tenant, "id", None))
            result = Resultado.falha(operacao, ERRO_INTERNO, MENSAGEM_ERRO_INTERNO)

        result.xml_enviado = result.xml_enviado or enviado.get("xml")
        result.tempo_ms = int((time.perf_counter() - inicio) * 1000)
        logger.info("%s: sucesso=%s em %dms", operacao, result.sucesso, result.tempo_ms)
        return result

    def _enviar(
        self,
        provider: NfseProvider,
        tenant: Tenant,
        operacao: str,
        doc: etree._Element,
        enviado: dict[str, str],
        *,
        pagina: int,
        direto: bool,
    ) -> Resultado:
        pfx_data, password = self.certificates.get_certificate(tenant.id)
        url = provider.url(tenant.homologacao)
        soap_action = provider.soap_action(operacao)

        with signing_scope(pfx_data, password) as material:
            check_not_expired(material.not_after)
            if op.requer_assinatura(operacao):
                doc = sign_document(doc, material.key_pem, material.cert_pem)
        # The POST only needs the archive and its passphrase.
        del material

        xml = xml_builder.to_bytes(doc)
        enviado["xml"] = xml.decode("utf-8")
        envelope = provider.wrap(xml, operacao, direto=direto)
        logger.debug("%s: envelope para %s\n%s", operacao, url, envelope.decode("utf-8"))

        resposta = retry_call(
            lambda: post_envelope(envelope, url, soap_action, pfx_data, password, timeout=self.timeout),
            self.retry_policy,
        )

        conteudo = provider.unwrap(resposta, operacao)
        result = parse_response(conteudo, operacao, pagina=pagina)
        result.xml_enviado = enviado["xml"]
        return result
