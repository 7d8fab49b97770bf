"""ABRASF 2.04 document assembly.

Every builder returns the root element of an ``*Envio`` document in the
provider's document namespace. Optional elements are omitted when the value is
absent; nothing is ever emitted empty. Output is deterministic: the same input
always serializes to the same bytes.
"""

from __future__ import annotations

from decimal import Decimal

from lxml import etree

from abrasf.config import ABRASF_VERSION
from abrasf.models.requests import (
    CancelarNfseRequest,
    ConsultarNfsePorRpsRequest,
    ConsultarNfseRequest,
    LoteRpsRequest,
    SubstituirNfseRequest,
)
from abrasf.models.rps import (
    CAMPOS_MONETARIOS,
    ComercioExterior,
    ConstrucaoCivil,
    Contato,
    Endereco,
    IbsCbs,
    IdentificacaoPessoa,
    IdentificacaoRps,
    Intermediario,
    Rps,
    Servico,
    Tomador,
    Tributacao,
)
from abrasf.models.tenant import Tenant
from abrasf.services.exceptions import ValidationError
from abrasf.utils.formatters import format_date, format_money, format_rate
from abrasf.utils.validators import is_cpf, require, validate_cpf_cnpj, validate_digits

DEFAULT_NS = "http://www.abrasf.org.br/nfse.xsd"


def _sub(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    ns = etree.QName(parent).namespace
    el = etree.SubElement(parent, f"{{{ns}}}{tag}" if ns else tag)
    if text is not None:
        el.text = text
    return el


def _opt(parent: etree._Element, tag: str, value: object) -> None:
    """Emit *tag* only when *value* is present and non-empty."""
    if value is None or value == "":
        return
    if isinstance(value, Decimal):
        value = format_money(value)
    _sub(parent, tag, str(value))


def _root(tag: str, namespace: str) -> etree._Element:
    return etree.Element(f"{{{namespace}}}{tag}", nsmap={None: namespace})  # type: ignore[dict-item]


def to_bytes(el: etree._Element) -> bytes:
    """Serialize a document with an XML declaration, no pretty printing."""
    return etree.tostring(el, xml_declaration=True, encoding="utf-8")


# --- Shared blocks ---


def _cpf_cnpj(parent: etree._Element, value: str, campo: str = "CpfCnpj") -> None:
    doc = validate_cpf_cnpj(value, campo)
    cpf_cnpj = _sub(parent, "CpfCnpj")
    _sub(cpf_cnpj, "Cpf" if is_cpf(doc) else "Cnpj", doc)


def _prestador(parent: etree._Element, tenant: Tenant, tag: str = "Prestador") -> None:
    require(tenant.cnpj, "Prestador.Cnpj")
    require(tenant.inscricao_municipal, "Prestador.InscricaoMunicipal")
    prestador = _sub(parent, tag)
    _cpf_cnpj(prestador, tenant.cnpj, "Prestador.Cnpj")
    _sub(prestador, "InscricaoMunicipal", tenant.inscricao_municipal)


def _identificacao_rps(parent: etree._Element, ident: IdentificacaoRps) -> None:
    el = _sub(parent, "IdentificacaoRps")
    _sub(el, "Numero", str(ident.numero))
    _sub(el, "Serie", ident.serie)
    _sub(el, "Tipo", str(ident.tipo))


def _endereco(parent: etree._Element, endereco: Endereco) -> None:
    el = _sub(parent, "Endereco")
    _opt(el, "Endereco", endereco.logradouro)
    _opt(el, "Numero", endereco.numero)
    _opt(el, "Complemento", endereco.complemento)
    _opt(el, "Bairro", endereco.bairro)
    _opt(el, "CodigoMunicipio", endereco.codigo_municipio)
    _opt(el, "Uf", endereco.uf)
    _opt(el, "Cep", endereco.cep.replace("-", "") if endereco.cep else None)


def _contato(parent: etree._Element, contato: Contato) -> None:
    el = _sub(parent, "Contato")
    _opt(el, "Telefone", contato.telefone)
    _opt(el, "Email", contato.email)


def _identificacao_pessoa(parent: etree._Element, tag: str, ident: IdentificacaoPessoa) -> None:
    el = _sub(parent, tag)
    if ident.cpf_cnpj:
        _cpf_cnpj(el, ident.cpf_cnpj, f"{tag}.CpfCnpj")
    _opt(el, "InscricaoMunicipal", ident.inscricao_municipal)


def _tomador(parent: etree._Element, tomador: Tomador) -> None:
    el = _sub(parent, "Tomador")
    if tomador.identificacao is not None and tomador.identificacao.cpf_cnpj:
        _identificacao_pessoa(el, "IdentificacaoTomador", tomador.identificacao)
    _opt(el, "RazaoSocial", tomador.razao_social)
    if tomador.endereco is not None:
        _endereco(el, tomador.endereco)
    if tomador.contato is not None:
        _contato(el, tomador.contato)


def _intermediario(parent: etree._Element, intermediario: Intermediario) -> None:
    require(intermediario.cpf_cnpj, "Intermediario.CpfCnpj")
    el = _sub(parent, "Intermediario")
    ident = IdentificacaoPessoa(intermediario.cpf_cnpj, intermediario.inscricao_municipal)
    _identificacao_pessoa(el, "IdentificacaoIntermediario", ident)
    _opt(el, "RazaoSocial", intermediario.razao_social)


def _construcao_civil(parent: etree._Element, obra: ConstrucaoCivil) -> None:
    el = _sub(parent, "ConstrucaoCivil")
    _opt(el, "CodigoObra", obra.codigo_obra)
    _opt(el, "Art", obra.art)


# --- Servico ---


def _trib(parent: etree._Element, trib: Tributacao) -> None:
    el = _sub(parent, "trib")

    if trib.pis_cofins is not None:
        pc = trib.pis_cofins
        piscofins = _sub(_sub(el, "tribFed"), "piscofins")
        _sub(piscofins, "CST", pc.cst)
        _opt(piscofins, "vBCPisCofins", pc.v_bc_pis_cofins)
        _opt(piscofins, "pAliqPis", pc.p_aliq_pis)
        _opt(piscofins, "pAliqCofins", pc.p_aliq_cofins)
        _opt(piscofins, "vPis", pc.v_pis)
        _opt(piscofins, "vCofins", pc.v_cofins)
        _opt(piscofins, "tpRetPisCofins", pc.tp_ret_pis_cofins)

    tot = trib.tot_trib
    tot_trib = _sub(el, "totTrib")
    if tot.por_jurisdicao:
        p = _sub(tot_trib, "pTotTrib")
        _sub(p, "pTotTribFed", format_money(tot.p_tot_trib.fed))
        _sub(p, "pTotTribEst", format_money(tot.p_tot_trib.est))
        _sub(p, "pTotTribMun", format_money(tot.p_tot_trib.mun))
    else:
        _sub(tot_trib, "pTotTribSN", format_money(tot.p_tot_trib_sn or Decimal("0")))


def _ibs_cbs(parent: etree._Element, ibs: IbsCbs, codigo_municipio: str) -> None:
    validate_digits(ibs.cst, 3, "IBSCBS.CST")
    validate_digits(ibs.c_class_trib, 6, "IBSCBS.cClassTrib")
    validate_digits(ibs.c_ind_op, 6, "IBSCBS.cIndOp")

    el = _sub(parent, "IBSCBS")
    _sub(el, "finNFSe", ibs.fin_nfse)
    _sub(el, "indFinal", ibs.ind_final)
    _sub(el, "cIndOp", ibs.c_ind_op)
    _opt(el, "tpOper", ibs.tp_oper)
    if ibs.ref_nfse:
        g_ref = _sub(el, "gRefNFSe")
        for ref in ibs.ref_nfse:
            _sub(g_ref, "refNFSe", ref)
    _opt(el, "tpEnteGov", ibs.tp_ente_gov)
    _sub(el, "indDest", ibs.ind_dest)

    valores = _sub(el, "valores")
    g = _sub(_sub(valores, "trib"), "gIBSCBS")
    _sub(g, "CST", ibs.cst)
    _sub(g, "cClassTrib", ibs.c_class_trib)
    _sub(valores, "cLocalidadeIncid", ibs.c_localidade_incid or codigo_municipio)
    _sub(valores, "pRedutor", format_money(ibs.p_redutor))
    _opt(valores, "vBC", ibs.v_bc)


def _com_ext(parent: etree._Element, com: ComercioExterior) -> None:
    el = _sub(parent, "comExt")
    _sub(el, "mdPrestacao", com.md_prestacao)
    _sub(el, "vincPrest", com.vinc_prest)
    _sub(el, "tpMoeda", com.tp_moeda)
    _sub(el, "vServMoeda", format_money(com.v_serv_moeda))
    _sub(el, "mecAFComexP", com.mec_af_comex_p)
    _sub(el, "mecAFComexT", com.mec_af_comex_t)
    _sub(el, "movTempBens", com.mov_temp_bens)
    _opt(el, "nDI", com.n_di)
    _opt(el, "nRE", com.n_re)
    _sub(el, "mdic", com.mdic)


def _servico(parent: etree._Element, servico: Servico) -> None:
    require(servico.item_lista_servico, "Servico.ItemListaServico")
    require(servico.discriminacao, "Servico.Discriminacao")
    require(servico.codigo_municipio, "Servico.CodigoMunicipio")
    valores = servico.valores
    if valores.valor_servicos is None or valores.valor_servicos <= 0:
        raise ValidationError("Servico.ValorServicos: deve ser maior que zero")

    el = _sub(parent, "Servico")
    v = _sub(el, "Valores")
    _sub(v, "ValorServicos", format_money(valores.valor_servicos))
    for attr, tag in CAMPOS_MONETARIOS:
        _opt(v, tag, getattr(valores, attr))
    if valores.aliquota is not None:
        _sub(v, "Aliquota", format_rate(valores.aliquota))
    _opt(v, "DescontoIncondicionado", valores.desconto_incondicionado)
    _opt(v, "DescontoCondicionado", valores.desconto_condicionado)
    _trib(v, valores.trib)
    _ibs_cbs(v, valores.ibs_cbs, servico.codigo_municipio)

    _opt(el, "IssRetido", valores.iss_retido)
    _opt(el, "ResponsavelRetencao", valores.responsavel_retencao)
    _sub(el, "ItemListaServico", servico.item_lista_servico)
    _opt(el, "CodigoCnae", servico.codigo_cnae)
    _opt(el, "CodigoTributacaoMunicipio", servico.codigo_tributacao_municipio)
    _sub(el, "CodigoNbs", servico.codigo_nbs)
    _sub(el, "Discriminacao", servico.discriminacao)
    _sub(el, "CodigoMunicipio", servico.codigo_municipio)
    _opt(el, "CodigoPais", servico.codigo_pais)
    _opt(el, "ExigibilidadeISS", servico.exigibilidade_iss)
    _opt(el, "IdentifNaoExigibilidade", servico.identif_nao_exigibilidade)
    _opt(el, "MunicipioIncidencia", servico.municipio_incidencia)
    _opt(el, "NumeroProcesso", servico.numero_processo)
    if servico.com_ext is not None:
        _com_ext(el, servico.com_ext)


# --- RPS ---


def build_rps(parent: etree._Element, rps: Rps, tenant: Tenant) -> etree._Element:
    """Append one ``Rps`` element (with its signable InfDeclaracaoPrestacaoServico)."""
    require(rps.identificacao.serie, "Rps.IdentificacaoRps.Serie")
    if rps.identificacao.numero <= 0:
        raise ValidationError("Rps.IdentificacaoRps.Numero: deve ser maior que zero")

    el = _sub(parent, "Rps")
    inf = _sub(el, "InfDeclaracaoPrestacaoServico")
    inf.set("Id", rps.id)

    inner = _sub(inf, "Rps")
    _identificacao_rps(inner, rps.identificacao)
    _sub(inner, "DataEmissao", format_date(rps.data_emissao))
    _sub(inner, "Status", str(rps.status))

    _sub(inf, "Competencia", format_date(rps.competencia or rps.data_emissao))
    _servico(inf, rps.servico)
    _prestador(inf, tenant)
    if rps.tomador is not None:
        _tomador(inf, rps.tomador)
    if rps.intermediario is not None:
        _intermediario(inf, rps.intermediario)
    if rps.construcao_civil is not None:
        _construcao_civil(inf, rps.construcao_civil)
    _opt(inf, "RegimeEspecialTributacao", rps.regime_especial_tributacao)
    _sub(inf, "OptanteSimplesNacional", str(rps.optante_simples_nacional))
    _sub(inf, "IncentivoFiscal", str(rps.incentivo_fiscal))
    return el


def build_gerar_nfse(rps: Rps, tenant: Tenant, namespace: str = DEFAULT_NS) -> etree._Element:
    root = _root("GerarNfseEnvio", namespace)
    build_rps(root, rps, tenant)
    return root


def build_enviar_lote(
    lote: LoteRpsRequest,
    tenant: Tenant,
    namespace: str = DEFAULT_NS,
    sincrono: bool = False,
) -> etree._Element:
    require(lote.numero_lote, "LoteRps.NumeroLote")
    if not lote.lista_rps:
        raise ValidationError("LoteRps.ListaRps: o lote deve conter ao menos um RPS")
    quantidade = lote.quantidade

    root = _root("EnviarLoteRpsSincronoEnvio" if sincrono else "EnviarLoteRpsEnvio", namespace)
    lote_el = _sub(root, "LoteRps")
    lote_el.set("Id", lote.id)
    lote_el.set("versao", ABRASF_VERSION)
    _sub(lote_el, "NumeroLote", lote.numero_lote)
    _cpf_cnpj(lote_el, tenant.cnpj, "Prestador.Cnpj")
    _sub(lote_el, "InscricaoMunicipal", tenant.inscricao_municipal)
    _sub(lote_el, "QuantidadeRps", str(quantidade))
    lista = _sub(lote_el, "ListaRps")
    for rps in lote.lista_rps:
        build_rps(lista, rps, tenant)
    return root


def _build_consulta_protocolo(tag: str, protocolo: str, tenant: Tenant, namespace: str) -> etree._Element:
    require(protocolo, "Protocolo")
    root = _root(tag, namespace)
    _prestador(root, tenant)
    _sub(root, "Protocolo", protocolo)
    return root


def build_consultar_situacao_lote(protocolo: str, tenant: Tenant, namespace: str = DEFAULT_NS) -> etree._Element:
    return _build_consulta_protocolo("ConsultarSituacaoLoteRpsEnvio", protocolo, tenant, namespace)


def build_consultar_lote(protocolo: str, tenant: Tenant, namespace: str = DEFAULT_NS) -> etree._Element:
    return _build_consulta_protocolo("ConsultarLoteRpsEnvio", protocolo, tenant, namespace)


def build_consultar_nfse_por_rps(
    request: ConsultarNfsePorRpsRequest, tenant: Tenant, namespace: str = DEFAULT_NS
) -> etree._Element:
    require(request.identificacao_rps.serie, "IdentificacaoRps.Serie")
    root = _root("ConsultarNfsePorRpsEnvio", namespace)
    _identificacao_rps(root, request.identificacao_rps)
    _prestador(root, tenant)
    return root


def build_consultar_nfse(request: ConsultarNfseRequest, tenant: Tenant, namespace: str = DEFAULT_NS) -> etree._Element:
    if request.pagina < 1:
        raise ValidationError("Pagina: deve ser maior ou igual a 1")
    if request.data_inicial and request.data_final and request.data_inicial > request.data_final:
        raise ValidationError("PeriodoEmissao: DataInicial posterior a DataFinal")

    root = _root("ConsultarNfseServicoPrestadoEnvio", namespace)
    _prestador(root, tenant)
    _opt(root, "NumeroNfse", request.numero_nfse)
    if request.data_inicial or request.data_final:
        periodo = _sub(root, "PeriodoEmissao")
        if request.data_inicial:
            _sub(periodo, "DataInicial", format_date(request.data_inicial))
        if request.data_final:
            _sub(periodo, "DataFinal", format_date(request.data_final))
    if request.tomador is not None and request.tomador.cpf_cnpj:
        _identificacao_pessoa(root, "Tomador", request.tomador)
    if request.intermediario is not None:
        ident = IdentificacaoPessoa(request.intermediario.cpf_cnpj, request.intermediario.inscricao_municipal)
        _identificacao_pessoa(root, "Intermediario", ident)
    _sub(root, "Pagina", str(request.pagina))
    return root


def _pedido_cancelamento(parent: etree._Element, numero_nfse: int, codigo: str, tenant: Tenant) -> None:
    require(codigo, "CodigoCancelamento")
    require(tenant.codigo_municipio, "Prestador.CodigoMunicipio")
    pedido = _sub(parent, "Pedido")
    inf = _sub(pedido, "InfPedidoCancelamento")
    inf.set("Id", f"cancel{numero_nfse}")
    ident = _sub(inf, "IdentificacaoNfse")
    _sub(ident, "Numero", str(numero_nfse))
    _cpf_cnpj(ident, tenant.cnpj, "Prestador.Cnpj")
    _sub(ident, "InscricaoMunicipal", tenant.inscricao_municipal)
    _sub(ident, "CodigoMunicipio", tenant.codigo_municipio)
    _sub(inf, "CodigoCancelamento", codigo)


def build_cancelar_nfse(request: CancelarNfseRequest, tenant: Tenant, namespace: str = DEFAULT_NS) -> etree._Element:
    root = _root("CancelarNfseEnvio", namespace)
    _pedido_cancelamento(root, request.numero_nfse, request.codigo_cancelamento, tenant)
    return root


def build_substituir_nfse(
    request: SubstituirNfseRequest, tenant: Tenant, namespace: str = DEFAULT_NS
) -> etree._Element:
    root = _root("SubstituirNfseEnvio", namespace)
    substituicao = _sub(root, "SubstituicaoNfse")
    _pedido_cancelamento(substituicao, request.numero_nfse_substituida, request.codigo_cancelamento, tenant)
    build_rps(substituicao, request.rps_substituto, tenant)
    return root
