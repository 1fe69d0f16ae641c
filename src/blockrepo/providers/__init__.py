"""Registry hosting platforms behind a common resolve/fetch interface."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..concurrency import run_indexed_tasks_fail_fast
from ..errors import SpecifierUnrecognized
from ..persisted import SecretStore
from ..runtime import get_manifest_jobs
from .azure import AzureProvider
from .base import Provider, ProviderState, join_url
from .bitbucket import BitbucketProvider
from .github import GitHubProvider
from .gitlab import GitLabProvider
from .http import HttpProvider

if TYPE_CHECKING:
    from ..manifest.types import Manifest

github = GitHubProvider()
gitlab = GitLabProvider()
bitbucket = BitbucketProvider()
azure = AzureProvider()
http = HttpProvider()

# Specific hosts first; http accepts any URL and would shadow them.
PROVIDERS: tuple[Provider, ...] = (github, gitlab, bitbucket, azure, http)
AUTH_PROVIDERS: tuple[Provider, ...] = tuple(p for p in PROVIDERS if p.sends_token)


def select_provider(specifier: str) -> Provider | None:
    for provider in PROVIDERS:
        if provider.matches(specifier):
            return provider
    return None


def get_provider(name: str) -> Provider:
    for provider in PROVIDERS:
        if provider.name == name:
            return provider
    raise KeyError(name)


def get_provider_state(
    specifier: str, *, store: SecretStore | None = None
) -> ProviderState:
    provider = select_provider(specifier)
    if provider is None:
        raise SpecifierUnrecognized(
            specifier, providers=tuple(p.name for p in PROVIDERS)
        )
    return provider.resolve_state(specifier, store=store)


def for_each_get_provider_state(
    specifiers: list[str], *, store: SecretStore | None = None
) -> list[ProviderState]:
    """Resolve every distinct specifier once, in parallel, keeping input order."""
    unique = list(dict.fromkeys(specifiers))
    tasks = [
        (index, (lambda spec=spec: get_provider_state(spec, store=store)))
        for index, spec in enumerate(unique)
    ]
    results = run_indexed_tasks_fail_fast(tasks, max_workers=get_manifest_jobs())
    return [state for _, state in results]


def fetch_manifest(
    state: ProviderState, *, store: SecretStore | None = None
) -> Manifest:
    return get_provider(state.provider).fetch_manifest(state, store=store)


def fetch_raw(
    state: ProviderState, path: str, *, store: SecretStore | None = None
) -> str:
    return get_provider(state.provider).fetch_raw(state, path, store=store)


__all__ = [
    "PROVIDERS",
    "AUTH_PROVIDERS",
    "Provider",
    "ProviderState",
    "AzureProvider",
    "BitbucketProvider",
    "GitHubProvider",
    "GitLabProvider",
    "HttpProvider",
    "fetch_manifest",
    "fetch_raw",
    "for_each_get_provider_state",
    "get_provider",
    "get_provider_state",
    "join_url",
    "select_provider",
]
