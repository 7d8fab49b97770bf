from __future__ import annotations

import logging

from lxml import etree

from abrasf import operations as op
from abrasf.models.result import Resultado
from abrasf.models.tenant import Tenant
from abrasf.providers.base import NfseProvider
from abrasf.services import xsd_validator
from abrasf.services.exceptions import ValidationError
from abrasf.services.nfse_service import NfseService

logger = logging.getLogger(__name__)

# Caller XML is untrusted: no entity expansion, no network access.
_SAFE_PARSER = etree.XMLParser(
    resolve_entities=False,
    no_network=True,
    remove_blank_text=True,
    remove_comments=True,
)


def parse_caller_xml(xml_content: str | bytes) -> etree._Element:
    if isinstance(xml_content, str):
        xml_content = xml_content.strip().encode("utf-8")
    if not xml_content:
        raise ValidationError("XML nao informado")
    try:
        return etree.fromstring(xml_content, _SAFE_PARSER)
    except etree.XMLSyntaxError as exc:
        raise ValidationError(f"XML invalido: {exc}") from exc


class XmlDirectService:
    """Alternate entry point: caller-built, unsigned ABRASF XML.

    The document is moved into the provider's wire namespaces, then goes
    through the same sign/wrap/transport/normalize path as structured input.
    """

    def __init__(self, pipeline: NfseService) -> None:
        self.pipeline = pipeline

    def processar_xml(
        self,
        tenant: Tenant,
        xml_content: str,
        operacao: str,
        validar_xsd: bool = False,
        nome_schema: str | None = None,
    ) -> Resultado:
        """Sign and send caller XML for *operacao*.

        With *validar_xsd* the document is checked in its original ABRASF
        namespace against *nome_schema* (default: the operation's usual schema)
        before it is re-namespaced.
        """
        if operacao not in op.OPERACOES:
            return Resultado.falha(
                operacao,
                ValidationError.codigo,
                f"Operacao SOAP desconhecida: {operacao}. Validas: {', '.join(op.OPERACOES)}",
            )
        esquema = (nome_schema or xsd_validator.esquema_padrao(operacao)) if validar_xsd else None
        if validar_xsd and not esquema:
            return Resultado.falha(
                operacao,
                ValidationError.codigo,
                f"Informe o arquivo XSD para validar {operacao}",
            )

        def montar(provider: NfseProvider) -> etree._Element:
            doc = parse_caller_xml(xml_content)
            logger.debug("%s: XML original com raiz %s", operacao, etree.QName(doc).localname)
            if esquema:
                xsd_validator.validate_document(doc, self.pipeline.schema_dir, esquema)
            return provider.renamespace(doc, operacao)

        result = self.pipeline.executar(operacao, tenant, montar, direto=True)
        result.xml_original = xml_content
        return result
