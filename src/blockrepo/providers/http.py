from __future__ import annotations

from urllib.parse import urljoin, urlparse

from ..errors import SpecifierUnrecognized
from ..persisted import SecretStore
from .base import Provider, ProviderState


class HttpProvider(Provider):
    """Any registry served as static files under a base URL.

    Recognizes nearly every URL, so it must stay last in the provider order.
    """

    name = "http"
    sends_token = False

    def matches(self, specifier: str) -> bool:
        return specifier.startswith(("http://", "https://"))

    def parse(self, specifier: str) -> ProviderState:
        parsed = urlparse(specifier)
        if not parsed.hostname:
            raise SpecifierUnrecognized(specifier)
        url = f"{parsed.scheme}://{parsed.netloc}{parsed.path}".rstrip("/")
        return ProviderState(
            provider=self.name,
            url=url,
            owner=parsed.hostname,
            repo=parsed.path.strip("/"),
            ref="",
            base_url=f"{url}/",
        )

    def default_branch(self, state: ProviderState, *, store: SecretStore | None) -> str:
        return ""

    def raw_url(self, state: ProviderState, path: str) -> str:
        return urljoin(state.base_url, path)
