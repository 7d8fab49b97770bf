from __future__ import annotations

import logging

import pytest
from lxml import etree

from abrasf import operations as op
from abrasf.services.exceptions import ValidationError
from abrasf.services.xsd_validator import (
    ESQUEMA_ENVIO_LOTE,
    esquema_padrao,
    validate_document,
)
from tests.conftest import ABRASF_NS


def _doc(root: str = "GerarNfseEnvio", filho: str = "Rps") -> etree._Element:
    el = etree.Element(f"{{{ABRASF_NS}}}{root}", nsmap={None: ABRASF_NS})
    etree.SubElement(el, f"{{{ABRASF_NS}}}{filho}")
    return el


class TestEsquemaPadrao:
    @pytest.mark.parametrize(
        "operacao", [op.GERAR_NFSE, op.RECEPCIONAR_LOTE_RPS, op.RECEPCIONAR_LOTE_RPS_SINCRONO]
    )
    def test_envio_operations(self, operacao):
        assert esquema_padrao(operacao) == ESQUEMA_ENVIO_LOTE

    def test_queries_have_none(self):
        assert esquema_padrao(op.CONSULTAR_LOTE_RPS) is None


class TestValidateDocument:
    def test_valid(self, schema_dir):
        assert validate_document(_doc(), schema_dir, ESQUEMA_ENVIO_LOTE) is True

    def test_invalid_lists_errors(self, strict_schema_dir):
        with pytest.raises(ValidationError, match="XML invalido") as exc_info:
            validate_document(_doc(), strict_schema_dir, ESQUEMA_ENVIO_LOTE)
        assert exc_info.value.codigo == "VALIDACAO"
        assert "Rps" in exc_info.value.message

    def test_undeclared_root(self, schema_dir):
        with pytest.raises(ValidationError, match="CancelarNfseEnvio"):
            validate_document(_doc("CancelarNfseEnvio"), schema_dir, ESQUEMA_ENVIO_LOTE)

    def test_no_schema_dir_skips(self, caplog):
        with caplog.at_level(logging.WARNING, logger="abrasf.services.xsd_validator"):
            assert validate_document(_doc(), None, ESQUEMA_ENVIO_LOTE) is False
        assert "nao configurado" in caplog.text

    def test_missing_schema_file_skips(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING, logger="abrasf.services.xsd_validator"):
            assert validate_document(_doc(), tmp_path, "nao_existe.xsd") is False
        assert "nao_existe.xsd" in caplog.text

    def test_broken_schema(self, tmp_path):
        (tmp_path / "quebrado.xsd").write_text("<xs:schema", encoding="utf-8")
        with pytest.raises(ValidationError, match="Schema XSD invalido"):
            validate_document(_doc(), tmp_path, "quebrado.xsd")

    def test_accepts_str_dir(self, schema_dir):
        assert validate_document(_doc(), str(schema_dir), ESQUEMA_ENVIO_LOTE) is True
