from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from lxml import etree

from abrasf.models.rps import (
    IdentificacaoRps,
    Rps,
    Servico,
    ValoresServico,
)
from abrasf.models.tenant import Tenant

ABRASF_NS = "http://www.abrasf.org.br/nfse.xsd"


def xml_text(el: etree._Element, xpath: str) -> str | None:
    """Extract text from an XML element by xpath."""
    found = el.find(xpath)
    return found.text if found is not None else None


def local_find(el: etree._Element, name: str) -> etree._Element | None:
    """First descendant with the given local name, any namespace."""
    for d in el.iter():
        if isinstance(d.tag, str) and etree.QName(d).localname == name:
            return d
    return None


def local_findall(el: etree._Element, name: str) -> list[etree._Element]:
    return [d for d in el.iter() if isinstance(d.tag, str) and etree.QName(d).localname == name]


# --- Tenant fixtures ---


@pytest.fixture
def tenant_dict() -> dict:
    return {
        "id": "acme",
        "cnpj": "12.345.678/0001-00",
        "inscricao_municipal": "123456",
        "codigo_municipio": "3548500",
        "tipo_ambiente": "2",
        "ativa": True,
        "razao_social": "ACME SERVICOS LTDA",
    }


@pytest.fixture
def tenant(tenant_dict: dict) -> Tenant:
    return Tenant.from_dict(tenant_dict)


# --- RPS fixtures ---


@pytest.fixture
def rps_dict() -> dict:
    return {
        "identificacao": {"numero": 1, "serie": "A1", "tipo": 1},
        "data_emissao": "2025-11-10",
        "optante_simples_nacional": 2,
        "incentivo_fiscal": 2,
        "servico": {
            "item_lista_servico": "101",
            "codigo_nbs": "115022000",
            "discriminacao": "Desenvolvimento de software",
            "codigo_municipio": "3548500",
            "valores": {"valor_servicos": "1500.00"},
        },
        "tomador": {
            "identificacao": {"cpf_cnpj": "987.654.321-00"},
            "razao_social": "Fulano de Tal",
            "endereco": {
                "logradouro": "Rua XV de Novembro",
                "numero": "10",
                "bairro": "Centro",
                "codigo_municipio": "3548500",
                "uf": "SP",
                "cep": "11010-150",
            },
            "contato": {"email": "fulano@example.com"},
        },
    }


@pytest.fixture
def rps(rps_dict: dict) -> Rps:
    return Rps.from_dict(rps_dict)


@pytest.fixture
def minimal_rps() -> Rps:
    return Rps(
        identificacao=IdentificacaoRps(numero=7, serie="B"),
        data_emissao=date(2025, 11, 10),
        servico=Servico(
            valores=ValoresServico(valor_servicos=Decimal("100")),
            item_lista_servico="101",
            discriminacao="Consultoria",
            codigo_municipio="3548500",
            codigo_nbs="115022000",
        ),
    )


# --- Certificate / PFX fixtures ---


def _make_key_and_cert(not_before: datetime, not_after: datetime):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, "ACME SERVICOS LTDA:12345678000100"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Test Org"),
        ]
    )
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return key, cert


def _pfx(key, cert, password: bytes) -> bytes:
    return pkcs12.serialize_key_and_certificates(
        name=b"test",
        key=key,
        cert=cert,
        cas=None,
        encryption_algorithm=serialization.BestAvailableEncryption(password),
    )


@pytest.fixture(scope="session")
def test_key_and_cert():
    now = datetime.now(UTC)
    return _make_key_and_cert(now - timedelta(days=1), now + timedelta(days=365))


@pytest.fixture(scope="session")
def self_signed_pem(test_key_and_cert):
    key, cert = test_key_and_cert
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    return key_pem, cert_pem


@pytest.fixture(scope="session")
def pfx_bytes(test_key_and_cert) -> tuple[bytes, str]:
    key, cert = test_key_and_cert
    return _pfx(key, cert, b"testpass"), "testpass"


@pytest.fixture(scope="session")
def expired_pfx_bytes() -> tuple[bytes, str]:
    now = datetime.now(UTC)
    key, cert = _make_key_and_cert(now - timedelta(days=400), now - timedelta(days=35))
    return _pfx(key, cert, b"oldpass"), "oldpass"


@pytest.fixture
def test_pfx(tmp_path, pfx_bytes):
    data, password = pfx_bytes
    pfx_path = tmp_path / "test.pfx"
    pfx_path.write_bytes(data)
    return str(pfx_path), password


class StaticCertificates:
    """In-memory certificate collaborator for tests."""

    def __init__(self, data: bytes, password: str) -> None:
        self.data = data
        self.password = password
        self.calls: list[str] = []

    def get_certificate(self, tenant_id: str) -> tuple[bytes, str]:
        self.calls.append(tenant_id)
        return self.data, self.password


@pytest.fixture
def certificates(pfx_bytes) -> StaticCertificates:
    return StaticCertificates(*pfx_bytes)


# --- Config dir fixture ---


@pytest.fixture
def config_dir(tmp_path, tenant_dict, rps_dict):
    import yaml

    cfg = tmp_path / "config"
    cfg.mkdir()
    tenants = cfg / "tenants"
    tenants.mkdir()
    (tenants / "acme.yaml").write_text(yaml.dump(tenant_dict))
    (cfg / "rps.yaml").write_text(yaml.dump(rps_dict))
    return cfg


# --- XSD fixtures ---

_ANY_CONTENT = (
    '<xs:sequence><xs:any namespace="##any" processContents="skip" '
    'minOccurs="0" maxOccurs="unbounded"/></xs:sequence>'
)


def abrasf_schema(roots: tuple[str, ...], conteudo: str = _ANY_CONTENT, namespace: str = ABRASF_NS) -> str:
    """Schema for *namespace* declaring *roots*, each with *conteudo* as its content model."""
    elements = "".join(
        f'<xs:element name="{root}"><xs:complexType>{conteudo}</xs:complexType></xs:element>'
        for root in roots
    )
    return (
        '<xs:schema xmlns:xs="http://www.w3.org/2001/XMLSchema" '
        f'targetNamespace="{namespace}" elementFormDefault="qualified">{elements}</xs:schema>'
    )


ENVIO_ROOTS = ("GerarNfseEnvio", "EnviarLoteRpsEnvio", "EnviarLoteRpsSincronoEnvio")
STRICT_CONTENT = '<xs:sequence><xs:element name="Inexistente" type="xs:string"/></xs:sequence>'


def write_envio_schema(directory, namespace: str = ABRASF_NS, conteudo: str = _ANY_CONTENT):
    """Write servico_enviar_lote_rps_envio.xsd for *namespace* into a new *directory*."""
    directory.mkdir()
    (directory / "servico_enviar_lote_rps_envio.xsd").write_text(
        abrasf_schema(ENVIO_ROOTS, conteudo, namespace), encoding="utf-8"
    )
    return directory


@pytest.fixture
def schema_dir(tmp_path):
    """Permissive envio schema in the ABRASF namespace."""
    return write_envio_schema(tmp_path / "schemas")


@pytest.fixture
def strict_schema_dir(tmp_path):
    """Envio roots require an <Inexistente> child that no real document has."""
    return write_envio_schema(tmp_path / "strict", conteudo=STRICT_CONTENT)
