from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from abrasf.services.exceptions import ValidationError

_PUNCTUATION = re.compile(r"[.\-/\s]")


def normalize_cpf_cnpj(value: str) -> str:
    """Strip '.', '/', '-' and whitespace from a CPF/CNPJ."""
    return _PUNCTUATION.sub("", value or "")


def normalize_codigo_municipio(value: str) -> str:
    """Strip '.', '-' and whitespace from an IBGE municipality code."""
    return re.sub(r"[.\-\s]", "", value or "")


def is_cpf(value: str) -> bool:
    """A normalized 11-digit identifier is a CPF (pessoa física)."""
    return len(normalize_cpf_cnpj(value)) == 11


def validate_cpf_cnpj(value: str, campo: str = "CpfCnpj") -> str:
    """Normalize and check a CPF (11 digits) or CNPJ (14 digits)."""
    digits = normalize_cpf_cnpj(value)
    if not re.fullmatch(r"\d{11}|\d{14}", digits):
        raise ValidationError(f"{campo}: deve ter 11 (CPF) ou 14 (CNPJ) digitos numericos")
    return digits


def require(value: object, campo: str) -> None:
    """Raise ValidationError when a mandatory field is missing or blank."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(f"Campo obrigatorio ausente: {campo}")


def validate_digits(value: str, width: int, campo: str) -> str:
    """Validate a fixed-width numeric code."""
    if not re.fullmatch(rf"\d{{{width}}}", value or ""):
        raise ValidationError(f"{campo}: deve ter {width} digitos numericos")
    return value


def parse_decimal(value: object, campo: str) -> Decimal:
    """Parse a YAML/JSON value into a finite Decimal."""
    try:
        d = Decimal(str(value))
        if not d.is_finite():
            raise InvalidOperation
    except InvalidOperation:
        raise ValidationError(f"{campo}: valor numerico invalido '{value}'") from None
    return d


def parse_date(value: object, campo: str) -> date:
    """Accept a date, a datetime or an ISO string (YYYY-MM-DD)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"{campo}: data invalida '{value}'. Use YYYY-MM-DD.") from None
