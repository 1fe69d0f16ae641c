from __future__ import annotations

from urllib.parse import quote

from ..errors import NetworkError
from ..persisted import SecretStore
from .base import GitHostProvider, ProviderState

_API = "https://api.github.com"


class GitHubProvider(GitHostProvider):
    name = "github"
    hosts = ("github.com", "www.github.com")
    tree_marker = ("tree",)

    def api_base(self, owner: str, repo: str) -> str:
        return f"{_API}/repos/{owner}/{repo}"

    def default_branch(self, state: ProviderState, *, store: SecretStore | None) -> str:
        data = self.request_json(state.base_url, store=store)
        branch = data.get("default_branch")
        if not isinstance(branch, str) or not branch:
            raise NetworkError("GitHub did not report a default branch", url=state.base_url)
        return branch

    def raw_url(self, state: ProviderState, path: str) -> str:
        return f"{state.base_url}/contents/{quote(path)}?ref={quote(state.ref or '', safe='')}"

    def raw_headers(self) -> dict[str, str]:
        return {"Accept": "application/vnd.github.raw+json"}
