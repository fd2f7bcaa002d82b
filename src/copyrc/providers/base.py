"""Provider capability and the explicit provider registry.

A provider knows how to talk to one kind of remote source.  The engine
never selects providers from global state: it is handed a
``ProviderRegistry`` at construction, so tests can pass in fakes.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol, runtime_checkable

from copyrc.cancel import CancelToken
from copyrc.config_schema import SourceConfig
from copyrc.errors import ProviderError

logger = logging.getLogger(__name__)


@runtime_checkable
class Provider(Protocol):
    """Remote source operations consumed by the sync engine.

    Every method may raise ``ProviderError``; the engine does not retry.
    Paths passed to and returned by ``list_files``/``get_file`` are
    relative to ``source.path``.
    """

    name: str

    def matches(self, repo: str) -> bool:
        """Return ``True`` if this provider serves *repo*."""
        ...

    def get_commit_hash(
        self, source: SourceConfig, cancel: CancelToken | None = None
    ) -> str:
        """Resolve ``source.ref`` to a stable version fingerprint."""
        ...

    def list_files(
        self,
        source: SourceConfig,
        commit_hash: str,
        recursive: bool = False,
        cancel: CancelToken | None = None,
    ) -> list[str]:
        """List candidate file paths under ``source.path``."""
        ...

    def get_file(
        self,
        source: SourceConfig,
        commit_hash: str,
        path: str,
        cancel: CancelToken | None = None,
    ) -> bytes:
        """Fetch the raw content of one file at *commit_hash*."""
        ...

    def get_permalink(
        self, source: SourceConfig, commit_hash: str, path: str
    ) -> str:
        ...

    def get_source_info(self, source: SourceConfig, commit_hash: str) -> str:
        ...

    def get_archive_url(self, source: SourceConfig) -> str:
        ...

    def get_archive(
        self,
        source: SourceConfig,
        commit_hash: str,
        cancel: CancelToken | None = None,
    ) -> bytes:
        """Download the source archive for *commit_hash*."""
        ...


class ProviderRegistry:
    """An explicit name -> provider table.

    Args:
        providers: Providers to register, in lookup order.
    """

    def __init__(self, providers: Iterable[Provider] = ()) -> None:
        self._providers: dict[str, Provider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: Provider) -> None:
        if provider.name in self._providers:
            raise ValueError(f"Provider already registered: {provider.name}")
        self._providers[provider.name] = provider

    def get(self, name: str) -> Provider:
        try:
            return self._providers[name]
        except KeyError:
            raise ProviderError(f"Unknown provider: {name}") from None

    def names(self) -> list[str]:
        return list(self._providers)

    def for_repo(self, repo: str) -> Provider:
        """Return the first registered provider that serves *repo*.

        Raises:
            ProviderError: If no provider matches.
        """
        for provider in self._providers.values():
            if provider.matches(repo):
                logger.debug("Using provider %s for %s", provider.name, repo)
                return provider
        raise ProviderError(
            f"No provider for repository '{repo}' "
            f"(registered: {', '.join(self._providers) or 'none'})"
        )
