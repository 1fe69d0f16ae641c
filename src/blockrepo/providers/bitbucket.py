from __future__ import annotations

from urllib.parse import quote

from ..errors import NetworkError
from ..persisted import SecretStore
from .base import GitHostProvider, ProviderState

_API = "https://api.bitbucket.org/2.0"


class BitbucketProvider(GitHostProvider):
    name = "bitbucket"
    hosts = ("bitbucket.org", "www.bitbucket.org")
    tree_marker = ("src",)

    def api_base(self, owner: str, repo: str) -> str:
        return f"{_API}/repositories/{owner}/{repo}"

    def default_branch(self, state: ProviderState, *, store: SecretStore | None) -> str:
        data = self.request_json(state.base_url, store=store)
        mainbranch = data.get("mainbranch")
        branch = mainbranch.get("name") if isinstance(mainbranch, dict) else None
        if not isinstance(branch, str) or not branch:
            raise NetworkError("Bitbucket did not report a main branch", url=state.base_url)
        return branch

    def raw_url(self, state: ProviderState, path: str) -> str:
        return f"{state.base_url}/src/{quote(state.ref or '', safe='')}/{quote(path)}"
