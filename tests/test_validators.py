from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

import pytest

from abrasf.services.exceptions import ValidationError
from abrasf.utils.validators import (
    is_cpf,
    normalize_codigo_municipio,
    normalize_cpf_cnpj,
    parse_date,
    parse_decimal,
    require,
    validate_cpf_cnpj,
    validate_digits,
)


class TestNormalize:
    def test_cnpj(self):
        assert normalize_cpf_cnpj("12.345.678/0001-00") == "12345678000100"

    def test_cpf(self):
        assert normalize_cpf_cnpj("987.654.321-00") == "98765432100"

    def test_none(self):
        assert normalize_cpf_cnpj(None) == ""

    def test_codigo_municipio(self):
        assert normalize_codigo_municipio("354.850-0") == "3548500"
        assert normalize_codigo_municipio(" 3548500 ") == "3548500"


class TestCpfCnpj:
    def test_is_cpf(self):
        assert is_cpf("987.654.321-00") is True
        assert is_cpf("12.345.678/0001-00") is False

    @pytest.mark.parametrize("value", ["98765432100", "12.345.678/0001-00"])
    def test_valid(self, value):
        assert validate_cpf_cnpj(value) == normalize_cpf_cnpj(value)

    @pytest.mark.parametrize("value", ["", "123", "1234567890123", "ABC45678000100"])
    def test_invalid(self, value):
        with pytest.raises(ValidationError, match="11 \\(CPF\\) ou 14 \\(CNPJ\\)"):
            validate_cpf_cnpj(value)

    def test_field_name_in_message(self):
        with pytest.raises(ValidationError, match="Tomador.CpfCnpj"):
            validate_cpf_cnpj("1", "Tomador.CpfCnpj")


class TestRequire:
    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing(self, value):
        with pytest.raises(ValidationError, match="Campo obrigatorio ausente: Discriminacao"):
            require(value, "Discriminacao")

    @pytest.mark.parametrize("value", ["x", 0, Decimal("0")])
    def test_present(self, value):
        require(value, "Campo")

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            require(None, "Campo")


class TestValidateDigits:
    def test_valid(self):
        assert validate_digits("000001", 6, "cIndOp") == "000001"

    @pytest.mark.parametrize("value", ["12345", "1234567", "12345a", ""])
    def test_invalid(self, value):
        with pytest.raises(ValidationError, match="cIndOp: deve ter 6 digitos"):
            validate_digits(value, 6, "cIndOp")


class TestParseDecimal:
    def test_string(self):
        assert parse_decimal("1500.00", "valor") == Decimal("1500.00")

    def test_float_via_str(self):
        assert parse_decimal(0.1, "valor") == Decimal("0.1")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", ""])
    def test_invalid(self, value):
        with pytest.raises(ValidationError, match="valor numerico invalido"):
            parse_decimal(value, "valor")


class TestParseDate:
    def test_iso_string(self):
        assert parse_date("2025-11-10", "data") == date(2025, 11, 10)

    def test_iso_datetime_string(self):
        assert parse_date("2025-11-10T10:30:00", "data") == date(2025, 11, 10)

    def test_date(self):
        assert parse_date(date(2025, 1, 2), "data") == date(2025, 1, 2)

    def test_datetime(self):
        assert parse_date(datetime(2025, 1, 2, 9, 0), "data") == date(2025, 1, 2)

    @pytest.mark.parametrize("value", ["10/11/2025", "2025-13-01", "amanha"])
    def test_invalid(self, value):
        with pytest.raises(ValidationError, match="YYYY-MM-DD"):
            parse_date(value, "data")
