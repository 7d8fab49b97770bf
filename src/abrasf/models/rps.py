from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from abrasf.utils.validators import parse_date, parse_decimal


def _dec(d: dict, key: str) -> Decimal | None:
    value = d.get(key)
    if value is None or value == "":
        return None
    return parse_decimal(value, key)


def _str(d: dict, key: str, default: str | None = None) -> str | None:
    value = d.get(key, default)
    if value is None:
        return None
    return str(value)


def _int(d: dict, key: str) -> int | None:
    value = d.get(key)
    return None if value is None else int(value)


@dataclass(frozen=True)
class IdentificacaoRps:
    numero: int
    serie: str
    tipo: int = 1  # 1-RPS, 2-Nota Fiscal Conjugada, 3-Cupom

    @classmethod
    def from_dict(cls, d: dict) -> IdentificacaoRps:
        return cls(numero=int(d["numero"]), serie=str(d["serie"]), tipo=int(d.get("tipo", 1)))


@dataclass(frozen=True)
class Endereco:
    logradouro: str | None = None
    numero: str | None = None
    complemento: str | None = None
    bairro: str | None = None
    codigo_municipio: str | None = None
    uf: str | None = None
    cep: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> Endereco:
        return cls(
            logradouro=_str(d, "logradouro"),
            numero=_str(d, "numero"),
            complemento=_str(d, "complemento"),
            bairro=_str(d, "bairro"),
            codigo_municipio=_str(d, "codigo_municipio"),
            uf=_str(d, "uf"),
            cep=_str(d, "cep"),
        )


@dataclass(frozen=True)
class Contato:
    telefone: str | None = None
    email: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> Contato:
        return cls(telefone=_str(d, "telefone"), email=_str(d, "email"))


@dataclass(frozen=True)
class IdentificacaoPessoa:
    """CPF/CNPJ plus optional inscrição municipal (tomador or intermediário)."""

    cpf_cnpj: str | None = None
    inscricao_municipal: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> IdentificacaoPessoa:
        return cls(
            cpf_cnpj=_str(d, "cpf_cnpj"),
            inscricao_municipal=_str(d, "inscricao_municipal"),
        )


@dataclass(frozen=True)
class Tomador:
    """Service taker: identification, name, address and contact, all optional."""

    identificacao: IdentificacaoPessoa | None = None
    razao_social: str | None = None
    endereco: Endereco | None = None
    contato: Contato | None = None

    @classmethod
    def from_dict(cls, d: dict) -> Tomador:
        ident = d.get("identificacao")
        if ident is None and d.get("cpf_cnpj"):
            ident = {"cpf_cnpj": d["cpf_cnpj"], "inscricao_municipal": d.get("inscricao_municipal")}
        return cls(
            identificacao=IdentificacaoPessoa.from_dict(ident) if ident else None,
            razao_social=_str(d, "razao_social"),
            endereco=Endereco.from_dict(d["endereco"]) if d.get("endereco") else None,
            contato=Contato.from_dict(d["contato"]) if d.get("contato") else None,
        )


@dataclass(frozen=True)
class Intermediario:
    cpf_cnpj: str
    inscricao_municipal: str | None = None
    razao_social: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> Intermediario:
        return cls(
            cpf_cnpj=str(d["cpf_cnpj"]),
            inscricao_municipal=_str(d, "inscricao_municipal"),
            razao_social=_str(d, "razao_social"),
        )


@dataclass(frozen=True)
class ConstrucaoCivil:
    codigo_obra: str | None = None
    art: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> ConstrucaoCivil:
        return cls(codigo_obra=_str(d, "codigo_obra"), art=_str(d, "art"))


# --- Tributação ---


@dataclass(frozen=True)
class PisCofins:
    cst: str = "00"
    v_bc_pis_cofins: Decimal | None = None
    p_aliq_pis: Decimal | None = None
    p_aliq_cofins: Decimal | None = None
    v_pis: Decimal | None = None
    v_cofins: Decimal | None = None
    tp_ret_pis_cofins: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> PisCofins:
        return cls(
            cst=str(d.get("cst", "00")).zfill(2),
            v_bc_pis_cofins=_dec(d, "v_bc_pis_cofins"),
            p_aliq_pis=_dec(d, "p_aliq_pis"),
            p_aliq_cofins=_dec(d, "p_aliq_cofins"),
            v_pis=_dec(d, "v_pis"),
            v_cofins=_dec(d, "v_cofins"),
            tp_ret_pis_cofins=_str(d, "tp_ret_pis_cofins"),
        )


@dataclass(frozen=True)
class PercentualTributos:
    """Approximate tax burden split by jurisdiction (federal, estadual, municipal)."""

    fed: Decimal = Decimal("0")
    est: Decimal = Decimal("0")
    mun: Decimal = Decimal("0")

    @classmethod
    def from_dict(cls, d: dict) -> PercentualTributos:
        return cls(
            fed=_dec(d, "fed") or Decimal("0"),
            est=_dec(d, "est") or Decimal("0"),
            mun=_dec(d, "mun") or Decimal("0"),
        )


@dataclass(frozen=True)
class TotalTributos:
    """Either the per-jurisdiction shape or the single Simples Nacional percentage."""

    usa_percentual_separado: bool = True
    p_tot_trib: PercentualTributos | None = None
    p_tot_trib_sn: Decimal | None = None

    @property
    def por_jurisdicao(self) -> bool:
        return self.usa_percentual_separado and self.p_tot_trib is not None

    @classmethod
    def from_dict(cls, d: dict) -> TotalTributos:
        return cls(
            usa_percentual_separado=bool(d.get("usa_percentual_separado", True)),
            p_tot_trib=PercentualTributos.from_dict(d["p_tot_trib"]) if d.get("p_tot_trib") else None,
            p_tot_trib_sn=_dec(d, "p_tot_trib_sn"),
        )


@dataclass(frozen=True)
class Tributacao:
    pis_cofins: PisCofins | None = None
    tot_trib: TotalTributos = field(default_factory=TotalTributos)

    @classmethod
    def from_dict(cls, d: dict) -> Tributacao:
        return cls(
            pis_cofins=PisCofins.from_dict(d["pis_cofins"]) if d.get("pis_cofins") else None,
            tot_trib=TotalTributos.from_dict(d.get("tot_trib") or {}),
        )


@dataclass(frozen=True)
class IbsCbs:
    """IBS/CBS block of the tax reform (mandatory for GISS)."""

    fin_nfse: str = "0"
    ind_final: str = "0"
    c_ind_op: str = "000000"
    tp_oper: str | None = None
    ref_nfse: tuple[str, ...] = ()
    tp_ente_gov: str | None = None
    ind_dest: str = "0"
    cst: str = "000"
    c_class_trib: str = "000000"
    c_localidade_incid: str | None = None
    p_redutor: Decimal = Decimal("0")
    v_bc: Decimal | None = None

    @classmethod
    def from_dict(cls, d: dict) -> IbsCbs:
        return cls(
            fin_nfse=str(d.get("fin_nfse", "0")),
            ind_final=str(d.get("ind_final", "0")),
            c_ind_op=str(d.get("c_ind_op", "000000")).zfill(6),
            tp_oper=_str(d, "tp_oper"),
            ref_nfse=tuple(str(r) for r in d.get("ref_nfse") or ()),
            tp_ente_gov=_str(d, "tp_ente_gov"),
            ind_dest=str(d.get("ind_dest", "0")),
            cst=str(d.get("cst", "000")).zfill(3),
            c_class_trib=str(d.get("c_class_trib", "000000")).zfill(6),
            c_localidade_incid=_str(d, "c_localidade_incid"),
            p_redutor=_dec(d, "p_redutor") or Decimal("0"),
            v_bc=_dec(d, "v_bc"),
        )


@dataclass(frozen=True)
class ComercioExterior:
    md_prestacao: str = "0"
    vinc_prest: str = "0"
    tp_moeda: str = "790"
    v_serv_moeda: Decimal = Decimal("0")
    mec_af_comex_p: str = "01"
    mec_af_comex_t: str = "01"
    mov_temp_bens: str = "1"
    n_di: str | None = None
    n_re: str | None = None
    mdic: str = "0"

    @classmethod
    def from_dict(cls, d: dict) -> ComercioExterior:
        return cls(
            md_prestacao=str(d.get("md_prestacao", "0")),
            vinc_prest=str(d.get("vinc_prest", "0")),
            tp_moeda=str(d.get("tp_moeda", "790")),
            v_serv_moeda=_dec(d, "v_serv_moeda") or Decimal("0"),
            mec_af_comex_p=str(d.get("mec_af_comex_p", "01")).zfill(2),
            mec_af_comex_t=str(d.get("mec_af_comex_t", "01")).zfill(2),
            mov_temp_bens=str(d.get("mov_temp_bens", "1")),
            n_di=_str(d, "n_di"),
            n_re=_str(d, "n_re"),
            mdic=str(d.get("mdic", "0")),
        )


# Optional monetary fields of Valores, in schema order.
CAMPOS_MONETARIOS = (
    ("valor_deducoes", "ValorDeducoes"),
    ("valor_pis", "ValorPis"),
    ("valor_cofins", "ValorCofins"),
    ("valor_inss", "ValorInss"),
    ("valor_ir", "ValorIr"),
    ("valor_csll", "ValorCsll"),
    ("outras_retencoes", "OutrasRetencoes"),
    ("val_tot_tributos", "ValTotTributos"),
    ("valor_iss", "ValorIss"),
)


@dataclass(frozen=True)
class ValoresServico:
    valor_servicos: Decimal
    valor_deducoes: Decimal | None = None
    valor_pis: Decimal | None = None
    valor_cofins: Decimal | None = None
    valor_inss: Decimal | None = None
    valor_ir: Decimal | None = None
    valor_csll: Decimal | None = None
    outras_retencoes: Decimal | None = None
    val_tot_tributos: Decimal | None = None
    valor_iss: Decimal | None = None
    aliquota: Decimal | None = None
    desconto_incondicionado: Decimal | None = None
    desconto_condicionado: Decimal | None = None
    iss_retido: int | None = None  # 1-Sim, 2-Não
    responsavel_retencao: int | None = None  # 1-Tomador, 2-Intermediário
    trib: Tributacao = field(default_factory=Tributacao)
    ibs_cbs: IbsCbs = field(default_factory=IbsCbs)

    @classmethod
    def from_dict(cls, d: dict) -> ValoresServico:
        kwargs = {attr: _dec(d, attr) for attr, _ in CAMPOS_MONETARIOS}
        return cls(
            valor_servicos=parse_decimal(d["valor_servicos"], "valor_servicos"),
            aliquota=_dec(d, "aliquota"),
            desconto_incondicionado=_dec(d, "desconto_incondicionado"),
            desconto_condicionado=_dec(d, "desconto_condicionado"),
            iss_retido=_int(d, "iss_retido"),
            responsavel_retencao=_int(d, "responsavel_retencao"),
            trib=Tributacao.from_dict(d.get("trib") or {}),
            ibs_cbs=IbsCbs.from_dict(d.get("ibs_cbs") or {}),
            **kwargs,
        )


@dataclass(frozen=True)
class Servico:
    valores: ValoresServico
    item_lista_servico: str
    discriminacao: str
    codigo_municipio: str
    codigo_nbs: str = ""
    codigo_cnae: str | None = None
    codigo_tributacao_municipio: str | None = None
    codigo_pais: str | None = None
    exigibilidade_iss: int | None = None
    identif_nao_exigibilidade: str | None = None
    municipio_incidencia: str | None = None
    numero_processo: str | None = None
    com_ext: ComercioExterior | None = None

    @classmethod
    def from_dict(cls, d: dict) -> Servico:
        return cls(
            valores=ValoresServico.from_dict(d["valores"]),
            item_lista_servico=str(d["item_lista_servico"]),
            discriminacao=str(d["discriminacao"]),
            codigo_municipio=str(d["codigo_municipio"]),
            codigo_nbs=str(d.get("codigo_nbs", "")),
            codigo_cnae=_str(d, "codigo_cnae"),
            codigo_tributacao_municipio=_str(d, "codigo_tributacao_municipio"),
            codigo_pais=_str(d, "codigo_pais"),
            exigibilidade_iss=_int(d, "exigibilidade_iss"),
            identif_nao_exigibilidade=_str(d, "identif_nao_exigibilidade"),
            municipio_incidencia=_str(d, "municipio_incidencia"),
            numero_processo=_str(d, "numero_processo"),
            com_ext=ComercioExterior.from_dict(d["com_ext"]) if d.get("com_ext") else None,
        )


@dataclass(frozen=True)
class Rps:
    """Recibo Provisório de Serviços: the input the authority turns into an NFS-e."""

    identificacao: IdentificacaoRps
    data_emissao: date
    servico: Servico
    competencia: date | None = None
    status: int = 1  # 1-Normal, 2-Cancelado
    regime_especial_tributacao: int | None = None
    optante_simples_nacional: int = 2  # 1-Sim, 2-Não
    incentivo_fiscal: int = 2  # 1-Sim, 2-Não
    tomador: Tomador | None = None
    intermediario: Intermediario | None = None
    construcao_civil: ConstrucaoCivil | None = None

    @property
    def id(self) -> str:
        """Synthetic Id of InfDeclaracaoPrestacaoServico, the signature target."""
        return f"rps{self.identificacao.serie}{self.identificacao.numero}"

    @classmethod
    def from_dict(cls, d: dict) -> Rps:
        data_emissao = parse_date(d["data_emissao"], "data_emissao")
        competencia = d.get("competencia")
        return cls(
            identificacao=IdentificacaoRps.from_dict(d["identificacao"]),
            data_emissao=data_emissao,
            servico=Servico.from_dict(d["servico"]),
            competencia=parse_date(competencia, "competencia") if competencia else None,
            status=int(d.get("status", 1)),
            regime_especial_tributacao=_int(d, "regime_especial_tributacao"),
            optante_simples_nacional=int(d.get("optante_simples_nacional", 2)),
            incentivo_fiscal=int(d.get("incentivo_fiscal", 2)),
            tomador=Tomador.from_dict(d["tomador"]) if d.get("tomador") else None,
            intermediario=Intermediario.from_dict(d["intermediario"]) if d.get("intermediario") else None,
            construcao_civil=(
                ConstrucaoCivil.from_dict(d["construcao_civil"]) if d.get("construcao_civil") else None
            ),
        )
