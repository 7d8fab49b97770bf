"""Offline XSD validation of outgoing ABRASF documents.

Schemas are read from a local directory; includes and imports resolve
relative to the main schema file and never touch the network. A missing
schema is not an error: validation is skipped with a warning.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from lxml import etree

from abrasf import operations as op
from abrasf.services.exceptions import ValidationError

logger = logging.getLogger(__name__)

ESQUEMA_ENVIO_LOTE = "servico_enviar_lote_rps_envio.xsd"

# Operations whose assembled document is checked before signing.
ESQUEMAS_POR_OPERACAO = {
    op.GERAR_NFSE: ESQUEMA_ENVIO_LOTE,
    op.RECEPCIONAR_LOTE_RPS: ESQUEMA_ENVIO_LOTE,
    op.RECEPCIONAR_LOTE_RPS_SINCRONO: ESQUEMA_ENVIO_LOTE,
}

_SCHEMA_PARSER = etree.XMLParser(load_dtd=False, resolve_entities=False, no_network=True)


def esquema_padrao(operacao: str) -> str | None:
    return ESQUEMAS_POR_OPERACAO.get(operacao)


@lru_cache(maxsize=32)
def load_schema(path: str) -> etree.XMLSchema:
    """Parse and compile the schema at *path*. Compiled schemas are cached per path."""
    try:
        doc = etree.parse(path, _SCHEMA_PARSER)
        return etree.XMLSchema(doc)
    except (etree.XMLSyntaxError, etree.XMLSchemaParseError) as exc:
        raise ValidationError(f"Schema XSD invalido ({Path(path).name}): {exc}") from exc


def validate_document(doc: etree._Element, schema_dir: Path | str | None, nome_schema: str) -> bool:
    """Validate *doc* against ``schema_dir/nome_schema``.

    Returns False when validation was skipped because no schema is available,
    True when the document is valid. Raises ValidationError listing every
    schema error otherwise.
    """
    if schema_dir is None:
        logger.warning("Diretorio de schemas XSD nao configurado; validacao de %s ignorada", nome_schema)
        return False
    caminho = Path(schema_dir) / nome_schema
    if not caminho.is_file():
        logger.warning("Schema XSD nao encontrado: %s", caminho)
        return False

    schema = load_schema(str(caminho.resolve()))
    if schema.validate(doc):
        logger.debug("XML valido segundo %s", nome_schema)
        return True

    erros = [e.message for e in schema.error_log]
    raise ValidationError(f"XML invalido: {'; '.join(erros)}")
