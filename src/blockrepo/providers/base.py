from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import requests

from ..config import MANIFEST_NAME
from ..errors import (
    AuthFailed,
    AuthRequired,
    ManifestNotFound,
    NetworkError,
    NotFound,
    RateLimited,
    SpecifierUnrecognized,
)
from ..persisted import SecretStore, get_token

if TYPE_CHECKING:
    from ..manifest.types import Manifest

_TIMEOUT_SECONDS = 30.0
_USER_AGENT = "blockrepo"


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[providers] {message}", file=sys.stderr, flush=True)


@dataclass(frozen=True)
class ProviderState:
    provider: str
    url: str
    owner: str
    repo: str
    ref: str | None = None
    subpath: str | None = None
    base_url: str = ""
    project: str | None = None
    ref_kind: str = "heads"


def join_url(base: str, *parts: str) -> str:
    segments = [base.rstrip("/")]
    segments.extend(part.strip("/") for part in parts if part and part.strip("/"))
    return "/".join(segments)


def split_ref(specifier: str) -> tuple[str, str | None]:
    if "#" not in specifier:
        return specifier, None
    rest, _, ref = specifier.rpartition("#")
    return rest, (ref.strip() or None)


def check_response(
    response: requests.Response, url: str, *, authenticated: bool
) -> None:
    status = response.status_code
    if status < 400:
        return
    remaining = response.headers.get("X-RateLimit-Remaining")
    if status == 429 or (status == 403 and remaining == "0"):
        raise RateLimited("Rate limited by host; provide a token or try again later", url=url)
    if status in (401, 403):
        if authenticated:
            raise AuthFailed("The provided token was rejected", url=url)
        raise AuthRequired("Authentication required; run `blockrepo auth`", url=url)
    if status == 404:
        hint = "Not found" if authenticated else "Not found (private repositories need a token)"
        raise NotFound(hint, url=url)
    raise NetworkError(f"Unexpected response status {status}", url=url)


class Provider(ABC):
    """One hosting platform behind the common resolve/fetch operations."""

    name = ""
    sends_token = True

    @abstractmethod
    def matches(self, specifier: str) -> bool:
        ...

    @abstractmethod
    def parse(self, specifier: str) -> ProviderState:
        ...

    @abstractmethod
    def default_branch(self, state: ProviderState, *, store: SecretStore | None) -> str:
        ...

    @abstractmethod
    def raw_url(self, state: ProviderState, path: str) -> str:
        ...

    def auth_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def raw_headers(self) -> dict[str, str]:
        return {}

    def resolve_state(
        self, specifier: str, *, store: SecretStore | None = None
    ) -> ProviderState:
        state = self.parse(specifier)
        if state.ref is None:
            ref = self.default_branch(state, store=store)
            _log(f"{state.url}: using default branch {ref}")
            state = replace(state, ref=ref)
        return state

    def fetch_raw(
        self, state: ProviderState, path: str, *, store: SecretStore | None = None
    ) -> str:
        full_path = join_url(state.subpath or "", path).lstrip("/")
        url = self.raw_url(state, full_path)
        _log(f"GET {url}")
        response = self.request(url, store=store, headers=self.raw_headers())
        return response.text

    def fetch_manifest(
        self, state: ProviderState, *, store: SecretStore | None = None
    ) -> Manifest:
        from ..manifest.types import parse_manifest

        try:
            text = self.fetch_raw(state, MANIFEST_NAME, store=store)
        except NotFound as exc:
            raise ManifestNotFound(
                f"Could not find {MANIFEST_NAME} in {state.url}", url=exc.url
            ) from exc
        manifest = parse_manifest(text, source=state.url)
        return manifest.with_source(state)

    def request(
        self,
        url: str,
        *,
        store: SecretStore | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        token = get_token(self.name, store) if self.sends_token else None
        request_headers = {"User-Agent": _USER_AGENT, **(headers or {})}
        if token:
            request_headers.update(self.auth_headers(token))
        try:
            response = requests.get(url, headers=request_headers, timeout=_TIMEOUT_SECONDS)
        except requests.exceptions.RequestException as exc:
            raise NetworkError(f"Request failed ({type(exc).__name__})", url=url) from exc
        check_response(response, url, authenticated=bool(token))
        return response

    def request_json(
        self, url: str, *, store: SecretStore | None = None
    ) -> dict:
        response = self.request(url, store=store, headers={"Accept": "application/json"})
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError("Expected a JSON response", url=url) from exc
        if not isinstance(data, dict):
            raise NetworkError("Expected a JSON object", url=url)
        return data


class GitHostProvider(Provider):
    """Providers addressed as ``<name>/<owner>/<repo>`` or by their web URL."""

    hosts: tuple[str, ...] = ()
    tree_marker: tuple[str, ...] = ("tree",)

    def matches(self, specifier: str) -> bool:
        if specifier.startswith(f"{self.name}/"):
            return True
        parsed = urlparse(specifier)
        return parsed.scheme in {"http", "https"} and (parsed.hostname or "").lower() in self.hosts

    def _segments(self, specifier: str) -> list[str]:
        if specifier.startswith(f"{self.name}/"):
            path = specifier[len(self.name) + 1 :]
        else:
            path = urlparse(specifier).path
        return [part for part in path.split("/") if part]

    def parse(self, specifier: str) -> ProviderState:
        rest, ref = split_ref(specifier)
        segments = self._segments(rest)
        if len(segments) < 2:
            raise SpecifierUnrecognized(specifier)
        owner, repo = segments[0], segments[1]
        if repo.endswith(".git"):
            repo = repo[:-4]
        extra = segments[2:]
        marker = list(self.tree_marker)
        if len(extra) > len(marker) and extra[: len(marker)] == marker:
            url_ref = extra[len(marker)]
            extra = extra[len(marker) + 1 :]
            ref = ref or url_ref
        subpath = "/".join(extra) or None
        return ProviderState(
            provider=self.name,
            url=join_url(f"{self.name}/{owner}/{repo}", subpath or ""),
            owner=owner,
            repo=repo,
            ref=ref,
            subpath=subpath,
            base_url=self.api_base(owner, repo),
        )

    @abstractmethod
    def api_base(self, owner: str, repo: str) -> str:
        ...
