from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from abrasf import operations as op
from abrasf.services.exceptions import NfseError


def _setup_logging() -> None:
    level = os.environ.get("ABRASF_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _print_json(data: object) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _load_tenant(name: str):
    from abrasf.config import load_tenant
    from abrasf.models.tenant import Tenant

    return Tenant.from_dict(load_tenant(name))


def _service():
    from abrasf.config import get_schema_dir
    from abrasf.services.certificates import LocalCertificateSource
    from abrasf.services.nfse_service import NfseService

    return NfseService(LocalCertificateSource(), schema_dir=get_schema_dir())


def _emit(result, include_xml: bool) -> int:
    _print_json(result.to_dict(include_xml=include_xml))
    return 0 if result.sucesso else 1


def _cmd_municipios(args: argparse.Namespace) -> int:
    from abrasf.providers.registry import default_registry

    municipios = default_registry().list_available()
    _print_json([
        {
            "codigo": m.codigo,
            "nome": m.nome,
            "uf": m.uf,
            "provedor": m.provedor,
            "versao_abrasf": m.versao_abrasf,
        }
        for m in municipios
    ])
    return 0


def _cmd_empresas(args: argparse.Namespace) -> int:
    from abrasf.config import get_config_dir, list_tenants

    empresas = list_tenants()
    if not empresas:
        print(f"Nenhuma empresa configurada em {get_config_dir() / 'tenants'}", file=sys.stderr)
        return 1
    _print_json(empresas)
    return 0


def _cmd_certificado(args: argparse.Namespace) -> int:
    from abrasf.services.certificates import LocalCertificateSource
    from abrasf.utils.certificate import certificate_info

    data, password = LocalCertificateSource().get_certificate("local")
    info = certificate_info(data, password)
    _print_json(info)
    return 0 if info["valid"] else 1


def _cmd_gerar(args: argparse.Namespace) -> int:
    from abrasf.config import load_yaml
    from abrasf.models.rps import Rps

    tenant = _load_tenant(args.empresa)
    rps = Rps.from_dict(load_yaml(Path(args.rps)))
    return _emit(_service().gerar_nfse(tenant, rps), args.xml)


def _cmd_lote(args: argparse.Namespace) -> int:
    from abrasf.config import load_yaml
    from abrasf.models.requests import LoteRpsRequest

    tenant = _load_tenant(args.empresa)
    lote = LoteRpsRequest.from_dict(load_yaml(Path(args.lote)))
    service = _service()
    if args.sincrono:
        return _emit(service.enviar_lote_rps_sincrono(tenant, lote), args.xml)
    return _emit(service.enviar_lote_rps(tenant, lote), args.xml)


def _cmd_situacao(args: argparse.Namespace) -> int:
    tenant = _load_tenant(args.empresa)
    return _emit(_service().consultar_situacao_lote_rps(tenant, args.protocolo), args.xml)


def _cmd_cancelar(args: argparse.Namespace) -> int:
    from abrasf.models.requests import CancelarNfseRequest

    tenant = _load_tenant(args.empresa)
    request = CancelarNfseRequest(numero_nfse=args.numero, codigo_cancelamento=args.codigo)
    return _emit(_service().cancelar_nfse(tenant, request), args.xml)


def _cmd_xml(args: argparse.Namespace) -> int:
    from abrasf.services.xml_direct import XmlDirectService

    tenant = _load_tenant(args.empresa)
    content = Path(args.arquivo).read_text(encoding="utf-8")
    result = XmlDirectService(_service()).processar_xml(
        tenant,
        content,
        args.operacao,
        validar_xsd=args.validar_xsd or bool(args.xsd),
        nome_schema=args.xsd,
    )
    return _emit(result, args.xml)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="abrasf-nfse",
        description="Emissão de NFS-e no padrão ABRASF",
    )
    sub = parser.add_subparsers(dest="comando", required=True)

    p = sub.add_parser("municipios", help="Lista os municípios disponíveis")
    p.set_defaults(func=_cmd_municipios)

    p = sub.add_parser("empresas", help="Lista as empresas configuradas")
    p.set_defaults(func=_cmd_empresas)

    p = sub.add_parser("certificado", help="Mostra os dados do certificado digital configurado")
    p.set_defaults(func=_cmd_certificado)

    p = sub.add_parser("gerar", help="Gera uma NFS-e a partir de um RPS em YAML")
    p.add_argument("empresa", help="Nome do arquivo em config/tenants (sem .yaml)")
    p.add_argument("rps", help="Arquivo YAML do RPS")
    p.set_defaults(func=_cmd_gerar)

    p = sub.add_parser("lote", help="Envia um lote de RPS em YAML")
    p.add_argument("empresa")
    p.add_argument("lote", help="Arquivo YAML do lote")
    p.add_argument("--sincrono", action="store_true", help="Usa RecepcionarLoteRpsSincrono")
    p.set_defaults(func=_cmd_lote)

    p = sub.add_parser("situacao", help="Consulta a situação de um lote pelo protocolo")
    p.add_argument("empresa")
    p.add_argument("protocolo")
    p.set_defaults(func=_cmd_situacao)

    p = sub.add_parser("cancelar", help="Cancela uma NFS-e")
    p.add_argument("empresa")
    p.add_argument("numero", type=int)
    p.add_argument("codigo", help="Código de cancelamento")
    p.set_defaults(func=_cmd_cancelar)

    p = sub.add_parser("xml", help="Envia um XML ABRASF já montado (sem assinatura)")
    p.add_argument("empresa")
    p.add_argument("operacao", choices=op.OPERACOES)
    p.add_argument("arquivo", help="Arquivo XML")
    p.add_argument("--validar-xsd", action="store_true", help="Valida o XML contra o XSD antes de enviar")
    p.add_argument("--xsd", help="Nome do arquivo XSD no diretório de schemas")
    p.set_defaults(func=_cmd_xml)

    for name in ("gerar", "lote", "situacao", "cancelar", "xml"):
        sub.choices[name].add_argument("--xml", action="store_true", help="Inclui os XMLs na saída")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point for the abrasf-nfse CLI."""
    _setup_logging()
    args = build_parser().parse_args(argv)
    try:
        code = args.func(args)
    except FileNotFoundError as e:
        print(f"Erro: arquivo não encontrado: {e.filename}", file=sys.stderr)
        sys.exit(1)
    except NfseError as e:
        print(f"Erro: {e.message}", file=sys.stderr)
        sys.exit(1)
    except (KeyError, ValueError) as e:
        print(f"Erro: configuração inválida: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
