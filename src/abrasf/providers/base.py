from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from lxml import etree

from abrasf.services.exceptions import ValidationError


def _frozen(mapping: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class MunicipioDisponivel:
    codigo: str
    nome: str
    uf: str
    provedor: str
    versao_abrasf: str

    @property
    def rotulo(self) -> str:
        return f"{self.nome}/{self.uf}"


@dataclass(frozen=True)
class ProviderDescriptor:
    """Per-municipality encoding rules. Immutable once built."""

    codigo_municipio: str
    nome_municipio: str
    uf: str
    provedor: str
    versao_abrasf: str
    url_homologacao: str
    url_producao: str
    namespace_nfse: str
    namespace_soap: str
    namespace_cabecalho: str
    namespace_tipos: str = ""
    namespace_cabecalho_direto: str = ""
    namespaces_raiz: Mapping[str, str] = field(default_factory=dict)
    soap_actions: Mapping[str, str] = field(default_factory=dict)
    aliases: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "namespaces_raiz", _frozen(self.namespaces_raiz))
        object.__setattr__(self, "soap_actions", _frozen(self.soap_actions))

    def url(self, homologacao: bool) -> str:
        return self.url_homologacao if homologacao else self.url_producao

    def soap_action(self, operacao: str) -> str:
        """SOAPAction from the fixed table, defaulting to ``{namespace}/{operacao}``."""
        return self.soap_actions.get(operacao, f"{self.namespace_soap}/{operacao}")

    def namespace_raiz(self, operacao: str) -> str:
        """Root namespace expected for a caller-built document of *operacao*."""
        try:
            return self.namespaces_raiz[operacao]
        except KeyError:
            raise ValidationError(
                f"Operacao '{operacao}' nao suportada para envio de XML direto "
                f"em {self.nome_municipio}/{self.uf}"
            ) from None

    @property
    def resumo(self) -> MunicipioDisponivel:
        return MunicipioDisponivel(
            codigo=self.codigo_municipio,
            nome=self.nome_municipio,
            uf=self.uf,
            provedor=self.provedor,
            versao_abrasf=self.versao_abrasf,
        )


class NfseProvider(ABC):
    """Capability interface: everything that differs between municipal web services.

    The orchestrator talks only to this interface; onboarding a municipality
    means registering one more implementation (or one more descriptor for an
    existing implementation).
    """

    def __init__(self, descriptor: ProviderDescriptor) -> None:
        self.descriptor = descriptor

    @property
    def codigo_municipio(self) -> str:
        return self.descriptor.codigo_municipio

    def url(self, homologacao: bool) -> str:
        return self.descriptor.url(homologacao)

    def soap_action(self, operacao: str) -> str:
        return self.descriptor.soap_action(operacao)

    @abstractmethod
    def wrap(self, xml: bytes, operacao: str, direto: bool = False) -> bytes:
        """Embed the (signed) document in the provider's SOAP envelope."""

    @abstractmethod
    def unwrap(self, resposta: str, operacao: str) -> str:
        """Extract the inner ABRASF document from a SOAP reply."""

    @abstractmethod
    def renamespace(self, doc: etree._Element, operacao: str) -> etree._Element:
        """Rewrite a caller-built document into the provider's wire namespaces."""

    def __repr__(self) -> str:
        d = self.descriptor
        return f"{type(self).__name__}({d.codigo_municipio} {d.nome_municipio}/{d.uf})"
