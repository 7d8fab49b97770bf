from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from abrasf.config import AMBIENTE_HOMOLOGACAO, AMBIENTE_PRODUCAO
from abrasf.utils.validators import normalize_cpf_cnpj, parse_date


@dataclass(frozen=True)
class Tenant:
    """Issuing company (prestador) as exposed by the tenant collaborator."""

    id: str
    cnpj: str
    inscricao_municipal: str
    codigo_municipio: str
    tipo_ambiente: str = AMBIENTE_HOMOLOGACAO
    ativa: bool = True
    razao_social: str | None = None
    certificado_validade: date | None = None

    @property
    def cnpj_normalizado(self) -> str:
        return normalize_cpf_cnpj(self.cnpj)

    @property
    def homologacao(self) -> bool:
        """Only tipo_ambiente "1" is production; anything else targets the test endpoint."""
        return self.tipo_ambiente != AMBIENTE_PRODUCAO

    @classmethod
    def from_dict(cls, d: dict) -> Tenant:
        validade = d.get("certificado_validade")
        return cls(
            id=str(d.get("id") or d["cnpj"]),
            cnpj=str(d["cnpj"]),
            inscricao_municipal=str(d["inscricao_municipal"]),
            codigo_municipio=str(d.get("codigo_municipio") or ""),
            tipo_ambiente=str(d.get("tipo_ambiente", AMBIENTE_HOMOLOGACAO)),
            ativa=bool(d.get("ativa", True)),
            razao_social=d.get("razao_social"),
            certificado_validade=parse_date(validade, "certificado_validade") if validade else None,
        )
