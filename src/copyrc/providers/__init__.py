"""Remote source providers.

Exports:
    Provider: The capability protocol the engine consumes.
    ProviderRegistry: Explicit provider table passed to the engine.
    GitHubProvider: GitHub REST/raw-content provider.
    LocalProvider: Local directory provider.
    default_registry: Registry with the built-in providers.
"""

from copyrc.providers.base import Provider, ProviderRegistry
from copyrc.providers.github import GitHubProvider
from copyrc.providers.local import LocalProvider


def default_registry(
    token: str | None = None,
    api_url: str | None = None,
    timeout: float = 60.0,
) -> ProviderRegistry:
    """Build a registry holding the GitHub and local providers."""
    github = (
        GitHubProvider(token=token, api_url=api_url, timeout=timeout)
        if api_url
        else GitHubProvider(token=token, timeout=timeout)
    )
    return ProviderRegistry([github, LocalProvider()])


__all__ = [
    "GitHubProvider",
    "LocalProvider",
    "Provider",
    "ProviderRegistry",
    "default_registry",
]
