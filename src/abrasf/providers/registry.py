from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from abrasf.providers.base import MunicipioDisponivel, NfseProvider
from abrasf.providers.giss import SANTOS, GissProvider
from abrasf.services.exceptions import UnsupportedMunicipalityError
from abrasf.utils.validators import normalize_codigo_municipio

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Municipality code -> provider, plus a case-insensitive name -> code table.

    Both tables are read-only after construction; ``with_provider`` returns a
    new registry instead of mutating this one.
    """

    def __init__(self, providers: Iterable[NfseProvider] = ()) -> None:
        por_codigo: dict[str, NfseProvider] = {}
        por_nome: dict[str, str] = {}
        for provider in providers:
            d = provider.descriptor
            codigo = normalize_codigo_municipio(d.codigo_municipio)
            por_codigo[codigo] = provider
            for nome in (d.nome_municipio, f"{d.nome_municipio}/{d.uf}", *d.aliases):
                por_nome[nome.strip().lower()] = codigo
        self._por_codigo: Mapping[str, NfseProvider] = MappingProxyType(por_codigo)
        self._por_nome: Mapping[str, str] = MappingProxyType(por_nome)

    def with_provider(self, provider: NfseProvider) -> ProviderRegistry:
        return ProviderRegistry([*self._por_codigo.values(), provider])

    def _nao_suportado(self, referencia: str) -> UnsupportedMunicipalityError:
        rotulos = [m.rotulo for m in self.list_available()]
        return UnsupportedMunicipalityError(
            f"Município com código {referencia} não está disponível para emissão de NFSe. "
            f"Municípios disponíveis: {', '.join(rotulos) or 'nenhum'}",
            disponiveis=rotulos,
        )

    def resolve(self, codigo_municipio: str) -> NfseProvider:
        codigo = normalize_codigo_municipio(codigo_municipio)
        provider = self._por_codigo.get(codigo)
        if provider is None:
            logger.warning("Municipio nao suportado: %s", codigo_municipio)
            raise self._nao_suportado(codigo_municipio)
        return provider

    def resolve_by_name(self, nome: str) -> NfseProvider:
        codigo = self._por_nome.get((nome or "").strip().lower())
        if codigo is None:
            logger.warning("Municipio nao suportado: %s", nome)
            raise self._nao_suportado(nome)
        return self._por_codigo[codigo]

    def list_available(self) -> list[MunicipioDisponivel]:
        return sorted(
            (p.descriptor.resumo for p in self._por_codigo.values()),
            key=lambda m: (m.uf, m.nome),
        )

    def is_available(self, codigo_municipio: str) -> bool:
        return normalize_codigo_municipio(codigo_municipio) in self._por_codigo


def default_registry() -> ProviderRegistry:
    """Registry seeded with every municipality this package ships."""
    return ProviderRegistry([GissProvider(SANTOS)])
