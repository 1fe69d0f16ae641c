from __future__ import annotations

import base64
from urllib.parse import parse_qs, urlencode, urlparse

from ..errors import NetworkError, SpecifierUnrecognized
from ..persisted import SecretStore
from .base import Provider, ProviderState, join_url, split_ref

_HOST = "dev.azure.com"
_API_VERSION = "7.1"


def _split_azure_ref(ref: str | None) -> tuple[str | None, str]:
    if ref is None:
        return None, "heads"
    for kind in ("heads", "tags"):
        if ref.startswith(f"{kind}/"):
            return ref[len(kind) + 1 :] or None, kind
    return ref, "heads"


class AzureProvider(Provider):
    """Azure DevOps repos: ``azure/<org>/<project>/<repo>[/<subpath>]``."""

    name = "azure"

    def matches(self, specifier: str) -> bool:
        if specifier.startswith(f"{self.name}/"):
            return True
        parsed = urlparse(specifier)
        return parsed.scheme in {"http", "https"} and (parsed.hostname or "").lower() == _HOST

    def parse(self, specifier: str) -> ProviderState:
        rest, ref = split_ref(specifier)
        subpath: str | None = None
        if rest.startswith(f"{self.name}/"):
            segments = [p for p in rest[len(self.name) + 1 :].split("/") if p]
            if len(segments) < 3:
                raise SpecifierUnrecognized(specifier)
            org, project, repo = segments[:3]
            subpath = "/".join(segments[3:]) or None
        else:
            # https://dev.azure.com/<org>/<project>/_git/<repo>?version=GB<branch>&path=/<sub>
            parsed = urlparse(rest)
            segments = [p for p in parsed.path.split("/") if p]
            if len(segments) < 4 or segments[2] != "_git":
                raise SpecifierUnrecognized(specifier)
            org, project, repo = segments[0], segments[1], segments[3]
            query = parse_qs(parsed.query)
            version = (query.get("version") or [""])[0]
            if ref is None and version[:2] == "GB":
                ref = f"heads/{version[2:]}"
            elif ref is None and version[:2] == "GT":
                ref = f"tags/{version[2:]}"
            subpath = (query.get("path") or [""])[0].strip("/") or None

        ref, ref_kind = _split_azure_ref(ref)
        return ProviderState(
            provider=self.name,
            url=join_url(f"{self.name}/{org}/{project}/{repo}", subpath or ""),
            owner=org,
            repo=repo,
            ref=ref,
            subpath=subpath,
            base_url=f"https://{_HOST}/{org}/{project}/_apis/git/repositories/{repo}",
            project=project,
            ref_kind=ref_kind,
        )

    def auth_headers(self, token: str) -> dict[str, str]:
        encoded = base64.b64encode(f":{token}".encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}"}

    def default_branch(self, state: ProviderState, *, store: SecretStore | None) -> str:
        url = f"{state.base_url}?api-version={_API_VERSION}"
        data = self.request_json(url, store=store)
        branch = data.get("defaultBranch")
        if not isinstance(branch, str) or not branch:
            raise NetworkError("Azure DevOps did not report a default branch", url=url)
        return branch.removeprefix("refs/heads/")

    def raw_url(self, state: ProviderState, path: str) -> str:
        query = urlencode(
            {
                "path": f"/{path}",
                "api-version": _API_VERSION,
                "versionDescriptor.version": state.ref or "",
                "versionDescriptor.versionType": "tag" if state.ref_kind == "tags" else "branch",
            }
        )
        return f"{state.base_url}/items?{query}"
