from __future__ import annotations

# ABRASF method names, as used in the SOAP request element and SOAPAction.
GERAR_NFSE = "GerarNfse"
RECEPCIONAR_LOTE_RPS = "RecepcionarLoteRps"
RECEPCIONAR_LOTE_RPS_SINCRONO = "RecepcionarLoteRpsSincrono"
CONSULTAR_SITUACAO_LOTE_RPS = "ConsultarSituacaoLoteRps"
CONSULTAR_LOTE_RPS = "ConsultarLoteRps"
CONSULTAR_NFSE_POR_RPS = "ConsultarNfsePorRps"
CONSULTAR_NFSE_SERVICO_PRESTADO = "ConsultarNfseServicoPrestado"
CANCELAR_NFSE = "CancelarNfse"
SUBSTITUIR_NFSE = "SubstituirNfse"

OPERACOES = (
    GERAR_NFSE,
    RECEPCIONAR_LOTE_RPS,
    RECEPCIONAR_LOTE_RPS_SINCRONO,
    CONSULTAR_SITUACAO_LOTE_RPS,
    CONSULTAR_LOTE_RPS,
    CONSULTAR_NFSE_POR_RPS,
    CONSULTAR_NFSE_SERVICO_PRESTADO,
    CANCELAR_NFSE,
    SUBSTITUIR_NFSE,
)

# Query schemas carry no Signature element; these are the only signed documents.
OPERACOES_ASSINADAS = frozenset({
    GERAR_NFSE,
    RECEPCIONAR_LOTE_RPS,
    RECEPCIONAR_LOTE_RPS_SINCRONO,
    CANCELAR_NFSE,
    SUBSTITUIR_NFSE,
})


def requer_assinatura(operacao: str) -> bool:
    return operacao in OPERACOES_ASSINADAS
