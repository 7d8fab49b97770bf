from __future__ import annotations

import logging

from lxml import etree

from abrasf import operations as op
from abrasf.config import ABRASF_VERSION, SOAP_ENV_NS
from abrasf.providers.base import NfseProvider, ProviderDescriptor
from abrasf.services.xml_namespaces import renamespace

logger = logging.getLogger(__name__)

GISS_SOAP_NS = "http://nfse.abrasf.org.br"
GISS_TIPOS_NS = "http://www.giss.com.br/tipos-v2_04.xsd"
GISS_CABECALHO_NS = "http://www.giss.com.br/cabecalho-v2_04.xsd"
ABRASF_NFSE_NS = "http://www.abrasf.org.br/nfse.xsd"

_GISS_XSD = "http://www.giss.com.br/{}-v2_04.xsd"

GISS_NAMESPACES_RAIZ = {
    op.GERAR_NFSE: _GISS_XSD.format("gerar-nfse-envio"),
    op.RECEPCIONAR_LOTE_RPS: _GISS_XSD.format("enviar-lote-rps-envio"),
    op.RECEPCIONAR_LOTE_RPS_SINCRONO: _GISS_XSD.format("enviar-lote-rps-sincrono-envio"),
    op.CONSULTAR_SITUACAO_LOTE_RPS: _GISS_XSD.format("consultar-situacao-lote-rps-envio"),
    op.CONSULTAR_LOTE_RPS: _GISS_XSD.format("consultar-lote-rps-envio"),
    op.CONSULTAR_NFSE_POR_RPS: _GISS_XSD.format("consultar-nfse-rps-envio"),
    op.CONSULTAR_NFSE_SERVICO_PRESTADO: _GISS_XSD.format("consultar-nfse-servico-prestado-envio"),
    op.CANCELAR_NFSE: _GISS_XSD.format("cancelar-nfse-envio"),
    op.SUBSTITUIR_NFSE: _GISS_XSD.format("substituir-nfse-envio"),
}

GISS_SOAP_ACTIONS = {
    metodo: f"{GISS_SOAP_NS}/{metodo}"
    for metodo in (*op.OPERACOES, "ConsultarNfseServicoTomado")
}

# Reply elements that carry the ABRASF document, by preference.
_OUTPUT_ELEMENTS = ("outputXML", "return")

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def _localname(el: etree._Element) -> str:
    return etree.QName(el).localname


def _find_local(doc: etree._Element, name: str) -> etree._Element | None:
    for el in doc.iter():
        if isinstance(el.tag, str) and _localname(el) == name:
            return el
    return None


class GissProvider(NfseProvider):
    """GISS web services: SOAP 1.1, document and header sent as CDATA text."""

    def _cabecalho(self, direto: bool) -> str:
        d = self.descriptor
        ns = d.namespace_cabecalho_direto if direto and d.namespace_cabecalho_direto else d.namespace_cabecalho
        cabecalho = etree.Element(f"{{{ns}}}cabecalho", nsmap={None: ns})  # type: ignore[dict-item]
        cabecalho.set("versao", d.versao_abrasf)
        etree.SubElement(cabecalho, f"{{{ns}}}versaoDados").text = d.versao_abrasf
        return etree.tostring(cabecalho, encoding="unicode")

    def wrap(self, xml: bytes, operacao: str, direto: bool = False) -> bytes:
        d = self.descriptor
        envelope = etree.Element(
            f"{{{SOAP_ENV_NS}}}Envelope",
            nsmap={"soap": SOAP_ENV_NS, "nfse": d.namespace_soap},
        )
        body = etree.SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body")
        request = etree.SubElement(body, f"{{{d.namespace_soap}}}{operacao}Request")
        etree.SubElement(request, "nfseCabecMsg").text = etree.CDATA(self._cabecalho(direto))
        dados = xml.decode("utf-8") if isinstance(xml, bytes) else xml
        if dados.startswith("<?xml"):
            dados = dados[dados.index("?>") + 2:].lstrip()
        etree.SubElement(request, "nfseDadosMsg").text = etree.CDATA(dados)
        return etree.tostring(envelope, xml_declaration=True, encoding="utf-8")

    def unwrap(self, resposta: str, operacao: str) -> str:
        try:
            doc = etree.fromstring(resposta.encode("utf-8"), _PARSER)
        except (etree.XMLSyntaxError, ValueError):
            logger.warning("Resposta SOAP de %s nao e XML valido; repassando conteudo bruto", operacao)
            return resposta

        for name in (*_OUTPUT_ELEMENTS, f"{operacao}Response"):
            el = _find_local(doc, name)
            if el is None:
                continue
            text = (el.text or "").strip()
            if text:
                return text
            children = [c for c in el if isinstance(c.tag, str)]
            if children:
                return etree.tostring(children[0], encoding="unicode")
            return etree.tostring(el, encoding="unicode")

        body = _find_local(doc, "Body")
        if body is not None:
            children = [c for c in body if isinstance(c.tag, str)]
            if children:
                return etree.tostring(children[0], encoding="unicode")
        return resposta

    def renamespace(self, doc: etree._Element, operacao: str) -> etree._Element:
        d = self.descriptor
        return renamespace(doc, d.namespace_raiz(operacao), d.namespace_tipos)


def giss_descriptor(
    codigo_municipio: str,
    nome_municipio: str,
    uf: str,
    aliases: tuple[str, ...] = (),
) -> ProviderDescriptor:
    """Descriptor for a municipality served by the GISS ABRASF 2.04 web service."""
    return ProviderDescriptor(
        codigo_municipio=codigo_municipio,
        nome_municipio=nome_municipio,
        uf=uf,
        provedor="GISS",
        versao_abrasf=ABRASF_VERSION,
        url_homologacao="https://ws-homologacao-rtc.giss.com.br/service-ws/nf/nfse-ws",
        url_producao="https://ws.giss.com.br/service-ws/nf/nfse-ws",
        namespace_nfse=GISS_SOAP_NS,
        namespace_soap=GISS_SOAP_NS,
        namespace_cabecalho=ABRASF_NFSE_NS,
        namespace_tipos=GISS_TIPOS_NS,
        namespace_cabecalho_direto=GISS_CABECALHO_NS,
        namespaces_raiz=GISS_NAMESPACES_RAIZ,
        soap_actions=GISS_SOAP_ACTIONS,
        aliases=aliases,
    )


SANTOS = giss_descriptor("3548500", "Santos", "SP", aliases=("Santos", "Santos/SP"))
