"""Normalize ABRASF replies into a Resultado.

Elements are matched by local name so the same parsers work whatever
namespace (or prefix) a given authority uses in its replies.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from lxml import etree

from abrasf import operations as op
from abrasf.models.result import MensagemRetorno, NfseGerada, Resultado
from abrasf.services.exceptions import ResponseParseError

logger = logging.getLogger(__name__)

SITUACOES_LOTE = {
    1: "Não Recebido",
    2: "Não Processado",
    3: "Processado com Erro",
    4: "Processado com Sucesso",
}
SITUACAO_DESCONHECIDA = "Desconhecido"

SEM_RETORNO = "SEM_RETORNO"

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=True)


def _local(el: etree._Element) -> str:
    return etree.QName(el).localname


def _descendants(el: etree._Element, name: str) -> list[etree._Element]:
    return [d for d in el.iter() if isinstance(d.tag, str) and _local(d) == name]


def _first(el: etree._Element, name: str) -> etree._Element | None:
    found = _descendants(el, name)
    return found[0] if found else None


def _child(el: etree._Element | None, name: str) -> etree._Element | None:
    if el is None:
        return None
    for c in el:
        if isinstance(c.tag, str) and _local(c) == name:
            return c
    return None


def _text(el: etree._Element | None) -> str | None:
    if el is None or el.text is None:
        return None
    return el.text.strip()


def descricao_situacao(codigo: int | None) -> str:
    return SITUACOES_LOTE.get(codigo, SITUACAO_DESCONHECIDA)


def parse_xml(raw: str) -> etree._Element:
    if not raw or not raw.strip():
        raise ResponseParseError("Resposta vazia do WebService")
    try:
        return etree.fromstring(raw.strip().encode("utf-8"), _PARSER)
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise ResponseParseError(f"Resposta do WebService nao e um XML valido: {exc}") from exc


def extract_mensagens(doc: etree._Element) -> list[MensagemRetorno]:
    """Every MensagemRetorno/MensagemRetornoLote entry, verbatim, in document order.

    A SOAP Fault in the payload is reported as one entry as well.
    """
    mensagens = []
    for el in doc.iter():
        if not isinstance(el.tag, str):
            continue
        name = _local(el)
        if name in ("MensagemRetorno", "MensagemRetornoLote"):
            mensagens.append(
                MensagemRetorno(
                    codigo=_text(_child(el, "Codigo")) or "",
                    mensagem=_text(_child(el, "Mensagem")) or "",
                    correcao=_text(_child(el, "Correcao")),
                )
            )
        elif name == "Fault":
            mensagens.append(
                MensagemRetorno(
                    codigo=_text(_child(el, "faultcode")) or "SOAP_FAULT",
                    mensagem=_text(_child(el, "faultstring")) or "",
                )
            )
    return mensagens


def _nfse(comp: etree._Element) -> NfseGerada | None:
    inf = _child(_child(comp, "Nfse"), "InfNfse")
    if inf is None:
        return None
    return NfseGerada(
        numero=_text(_child(inf, "Numero")) or "0",
        codigo_verificacao=_text(_child(inf, "CodigoVerificacao")) or "",
        data_emissao=_text(_child(inf, "DataEmissao")),
        xml=etree.tostring(comp, encoding="unicode"),
    )


def extract_nfses(doc: etree._Element) -> list[NfseGerada]:
    nfses = []
    for comp in _descendants(doc, "CompNfse"):
        nfse = _nfse(comp)
        if nfse is not None:
            nfses.append(nfse)
    return nfses


# --- Per-operation parsers ---


def _gerar_nfse(doc: etree._Element, result: Resultado, **_) -> None:
    result.nfses = extract_nfses(doc)[:1]
    result.sucesso = bool(result.nfses)


def _enviar_lote(doc: etree._Element, result: Resultado, **_) -> None:
    result.numero_lote = _text(_first(doc, "NumeroLote"))
    result.protocolo = _text(_first(doc, "Protocolo"))
    result.data_recebimento = _text(_first(doc, "DataRecebimento"))
    result.sucesso = bool(result.protocolo)


def _enviar_lote_sincrono(doc: etree._Element, result: Resultado, **_) -> None:
    result.numero_lote = _text(_first(doc, "NumeroLote"))
    result.protocolo = _text(_first(doc, "Protocolo"))
    result.data_recebimento = _text(_first(doc, "DataRecebimento"))
    result.nfses = extract_nfses(doc)
    result.sucesso = bool(result.nfses)


def _consultar_situacao(doc: etree._Element, result: Resultado, **_) -> None:
    result.numero_lote = _text(_first(doc, "NumeroLote"))
    situacao = _text(_first(doc, "Situacao"))
    if not situacao:
        return
    try:
        result.situacao = int(situacao)
    except ValueError:
        logger.warning("Codigo de situacao nao numerico: %r", situacao)
        result.situacao = None
    result.descricao_situacao = descricao_situacao(result.situacao)
    result.sucesso = True


def _consultar_lote(doc: etree._Element, result: Resultado, **_) -> None:
    result.numero_lote = _text(_first(doc, "NumeroLote"))
    result.nfses = extract_nfses(doc)
    result.sucesso = True


def _consultar_nfse_por_rps(doc: etree._Element, result: Resultado, **_) -> None:
    result.nfses = extract_nfses(doc)[:1]
    result.sucesso = bool(result.nfses)


def _consultar_nfse(doc: etree._Element, result: Resultado, pagina: int = 1, **_) -> None:
    result.nfses = extract_nfses(doc)
    # Paging only knows about the ProximaPagina marker; there is no total count.
    pagina_xml = _text(_first(doc, "Pagina"))
    try:
        result.pagina_atual = int(pagina_xml) if pagina_xml else pagina
    except ValueError:
        result.pagina_atual = pagina
    proxima = _text(_first(doc, "ProximaPagina"))
    result.total_paginas = result.pagina_atual + 1 if proxima else result.pagina_atual
    result.sucesso = True


def _cancelar_nfse(doc: etree._Element, result: Resultado, **_) -> None:
    confirmacao = None
    for nome in ("InfConfirmacaoCancelamento", "ConfirmacaoCancelamento", "Confirmacao"):
        confirmacao = _first(doc, nome)
        if confirmacao is not None:
            break
    if confirmacao is None:
        return
    result.numero_nfse_cancelada = _text(_first(confirmacao, "Numero"))
    result.data_cancelamento = _text(_first(confirmacao, "DataHora"))
    result.sucesso = True


def _substituir_nfse(doc: etree._Element, result: Resultado, **_) -> None:
    substituicao = _first(doc, "RetSubstituicao")
    if substituicao is None:
        substituicao = _first(doc, "SubstituicaoNfse")
    if substituicao is None:
        return
    substituida = _first(substituicao, "NfseSubstituida")
    if substituida is not None:
        inf = _first(substituida, "InfNfse")
        result.numero_nfse_cancelada = _text(_child(inf, "Numero")) if inf is not None else _text(substituida)
    substituidora = _first(substituicao, "NfseSubstituidora")
    result.nfses = extract_nfses(substituidora if substituidora is not None else substituicao)[:1]
    result.sucesso = True


_PARSERS: dict[str, Callable[..., None]] = {
    op.GERAR_NFSE: _gerar_nfse,
    op.RECEPCIONAR_LOTE_RPS: _enviar_lote,
    op.RECEPCIONAR_LOTE_RPS_SINCRONO: _enviar_lote_sincrono,
    op.CONSULTAR_SITUACAO_LOTE_RPS: _consultar_situacao,
    op.CONSULTAR_LOTE_RPS: _consultar_lote,
    op.CONSULTAR_NFSE_POR_RPS: _consultar_nfse_por_rps,
    op.CONSULTAR_NFSE_SERVICO_PRESTADO: _consultar_nfse,
    op.CANCELAR_NFSE: _cancelar_nfse,
    op.SUBSTITUIR_NFSE: _substituir_nfse,
}


def parse_response(raw: str, operacao: str, *, pagina: int = 1) -> Resultado:
    """Turn the unwrapped authority reply for *operacao* into a Resultado.

    Any MensagemRetorno makes the result unsuccessful and nothing else is
    extracted from the reply; entries are kept verbatim and in order.
    Raises ResponseParseError for non-XML replies.
    """
    doc = parse_xml(raw)

    mensagens = extract_mensagens(doc)
    if mensagens:
        for m in mensagens:
            logger.warning("%s: mensagem de retorno %s - %s", operacao, m.codigo, m.mensagem)
        return Resultado(operacao=operacao, sucesso=False, mensagens=mensagens, xml_retorno=raw)

    result = Resultado(operacao=operacao, xml_retorno=raw)
    parser = _PARSERS.get(operacao, _gerar_nfse)
    parser(doc, result, pagina=pagina)
    if not result.sucesso:
        result.mensagens = [
            MensagemRetorno(
                codigo=SEM_RETORNO,
                mensagem=f"Resposta de {operacao} sem o conteudo esperado",
            )
        ]
    return result
