from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from abrasf.models.rps import IdentificacaoPessoa, IdentificacaoRps, Intermediario, Rps
from abrasf.services.exceptions import ValidationError
from abrasf.utils.validators import parse_date


@dataclass(frozen=True)
class LoteRpsRequest:
    """A lot of RPS; quantidade_rps, when declared, must equal len(lista_rps)."""

    numero_lote: str
    lista_rps: tuple[Rps, ...]
    quantidade_rps: int | None = None

    @property
    def quantidade(self) -> int:
        if self.quantidade_rps is not None and self.quantidade_rps != len(self.lista_rps):
            raise ValidationError(
                f"QuantidadeRps ({self.quantidade_rps}) difere do total de RPS na lista "
                f"({len(self.lista_rps)})"
            )
        return len(self.lista_rps)

    @property
    def id(self) -> str:
        return f"lote{self.numero_lote}"

    @classmethod
    def from_dict(cls, d: dict) -> LoteRpsRequest:
        quantidade = d.get("quantidade_rps")
        return cls(
            numero_lote=str(d["numero_lote"]),
            lista_rps=tuple(Rps.from_dict(r) for r in d.get("lista_rps") or ()),
            quantidade_rps=int(quantidade) if quantidade is not None else None,
        )


@dataclass(frozen=True)
class ConsultarNfsePorRpsRequest:
    identificacao_rps: IdentificacaoRps

    @classmethod
    def from_dict(cls, d: dict) -> ConsultarNfsePorRpsRequest:
        return cls(identificacao_rps=IdentificacaoRps.from_dict(d.get("identificacao_rps", d)))


@dataclass(frozen=True)
class ConsultarNfseRequest:
    """Query by issue period, NFS-e number, tomador or intermediário (paged)."""

    data_inicial: date | None = None
    data_final: date | None = None
    numero_nfse: int | None = None
    tomador: IdentificacaoPessoa | None = None
    intermediario: Intermediario | None = None
    pagina: int = 1

    @classmethod
    def from_dict(cls, d: dict) -> ConsultarNfseRequest:
        return cls(
            data_inicial=parse_date(d["data_inicial"], "data_inicial") if d.get("data_inicial") else None,
            data_final=parse_date(d["data_final"], "data_final") if d.get("data_final") else None,
            numero_nfse=int(d["numero_nfse"]) if d.get("numero_nfse") is not None else None,
            tomador=IdentificacaoPessoa.from_dict(d["tomador"]) if d.get("tomador") else None,
            intermediario=Intermediario.from_dict(d["intermediario"]) if d.get("intermediario") else None,
            pagina=int(d.get("pagina", 1)),
        )


@dataclass(frozen=True)
class CancelarNfseRequest:
    numero_nfse: int
    codigo_cancelamento: str

    @property
    def id(self) -> str:
        return f"cancel{self.numero_nfse}"

    @classmethod
    def from_dict(cls, d: dict) -> CancelarNfseRequest:
        return cls(
            numero_nfse=int(d["numero_nfse"]),
            codigo_cancelamento=str(d["codigo_cancelamento"]),
        )


@dataclass(frozen=True)
class SubstituirNfseRequest:
    numero_nfse_substituida: int
    codigo_cancelamento: str
    rps_substituto: Rps

    @classmethod
    def from_dict(cls, d: dict) -> SubstituirNfseRequest:
        return cls(
            numero_nfse_substituida=int(d["numero_nfse_substituida"]),
            codigo_cancelamento=str(d["codigo_cancelamento"]),
            rps_substituto=Rps.from_dict(d["rps_substituto"]),
        )
