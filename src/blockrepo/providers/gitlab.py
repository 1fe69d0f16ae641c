from __future__ import annotations

from urllib.parse import quote

from ..errors import NetworkError
from ..persisted import SecretStore
from .base import GitHostProvider, ProviderState

_API = "https://gitlab.com/api/v4"


class GitLabProvider(GitHostProvider):
    name = "gitlab"
    hosts = ("gitlab.com", "www.gitlab.com")
    tree_marker = ("-", "tree")

    def api_base(self, owner: str, repo: str) -> str:
        return f"{_API}/projects/{quote(f'{owner}/{repo}', safe='')}"

    def auth_headers(self, token: str) -> dict[str, str]:
        return {"PRIVATE-TOKEN": token}

    def default_branch(self, state: ProviderState, *, store: SecretStore | None) -> str:
        data = self.request_json(state.base_url, store=store)
        branch = data.get("default_branch")
        if not isinstance(branch, str) or not branch:
            raise NetworkError("GitLab did not report a default branch", url=state.base_url)
        return branch

    def raw_url(self, state: ProviderState, path: str) -> str:
        return (
            f"{state.base_url}/repository/files/{quote(path, safe='')}/raw"
            f"?ref={quote(state.ref or '', safe='')}"
        )
