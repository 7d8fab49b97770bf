from __future__ import annotations

from dataclasses import asdict, dataclass, field


@dataclass(frozen=True)
class MensagemRetorno:
    codigo: str
    mensagem: str
    correcao: str | None = None


@dataclass(frozen=True)
class NfseGerada:
    numero: str
    codigo_verificacao: str
    data_emissao: str | None = None
    xml: str | None = None


@dataclass
class Resultado:
    """Canonical result of one pipeline invocation.

    Built fresh for every call; ``sucesso`` is False whenever any fault occurred.
    """

    operacao: str
    sucesso: bool = False
    mensagens: list[MensagemRetorno] = field(default_factory=list)
    nfses: list[NfseGerada] = field(default_factory=list)
    numero_lote: str | None = None
    protocolo: str | None = None
    data_recebimento: str | None = None
    situacao: int | None = None
    descricao_situacao: str | None = None
    pagina_atual: int | None = None
    total_paginas: int | None = None
    numero_nfse_cancelada: str | None = None
    data_cancelamento: str | None = None
    xml_enviado: str | None = None
    xml_retorno: str | None = None
    xml_original: str | None = None
    tempo_ms: int | None = None

    @property
    def nfse(self) -> NfseGerada | None:
        """First generated/queried NFS-e, for single-document operations."""
        return self.nfses[0] if self.nfses else None

    @classmethod
    def falha(cls, operacao: str, codigo: str, mensagem: str, correcao: str | None = None) -> Resultado:
        return cls(
            operacao=operacao,
            sucesso=False,
            mensagens=[MensagemRetorno(codigo=codigo, mensagem=mensagem, correcao=correcao)],
        )

    def to_dict(self, include_xml: bool = False) -> dict:
        """Plain dict for JSON output; raw XML fields are dropped unless requested."""
        data = asdict(self)
        if not include_xml:
            for key in ("xml_enviado", "xml_retorno", "xml_original"):
                data.pop(key)
            for nfse in data["nfses"]:
                nfse.pop("xml")
        return {k: v for k, v in data.items() if v is not None}
