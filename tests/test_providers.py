from __future__ import annotations

import base64

import pytest
import requests

from blockrepo.errors import (
    AuthFailed,
    AuthRequired,
    ManifestInvalid,
    ManifestNotFound,
    NetworkError,
    NotFound,
    RateLimited,
)
from blockrepo.persisted import MemorySecretStore
from blockrepo.providers import (
    azure,
    fetch_manifest,
    for_each_get_provider_state,
    get_provider_state,
    github,
    gitlab,
    http,
)
from blockrepo.providers.base import GitHostProvider, Provider

from conftest import DummyResponse, block_data, http_state, manifest_data


class _Recorder:
    def __init__(self, *responses: DummyResponse) -> None:
        self.responses = list(responses)
        self.calls: list[tuple[str, dict[str, str]]] = []

    def __call__(self, url, headers=None, timeout=None):  # type: ignore[no-untyped-def]
        self.calls.append((url, dict(headers or {})))
        return self.responses.pop(0)


def test_github_default_branch_lookup_with_token(monkeypatch) -> None:
    recorder = _Recorder(DummyResponse(payload={"default_branch": "main"}))
    monkeypatch.setattr(requests, "get", recorder)
    store = MemorySecretStore({"github-token": "secret"})

    state = get_provider_state("github/ieedan/std", store=store)

    assert state.ref == "main"
    url, headers = recorder.calls[0]
    assert url == "https://api.github.com/repos/ieedan/std"
    assert headers["Authorization"] == "Bearer secret"


def test_explicit_ref_skips_default_branch_lookup(monkeypatch) -> None:
    recorder = _Recorder()
    monkeypatch.setattr(requests, "get", recorder)

    state = get_provider_state("github/ieedan/std#v1", store=MemorySecretStore())

    assert state.ref == "v1"
    assert recorder.calls == []


def test_bitbucket_main_branch_lookup(monkeypatch) -> None:
    recorder = _Recorder(DummyResponse(payload={"mainbranch": {"name": "trunk"}}))
    monkeypatch.setattr(requests, "get", recorder)

    state = get_provider_state("bitbucket/ieedan/std", store=MemorySecretStore())

    assert state.ref == "trunk"
    assert recorder.calls[0][0] == "https://api.bitbucket.org/2.0/repositories/ieedan/std"


@pytest.mark.parametrize("mainbranch", ["main", None, ["main"], {"type": "branch"}])
def test_bitbucket_malformed_main_branch(monkeypatch, mainbranch) -> None:
    monkeypatch.setattr(
        requests, "get", _Recorder(DummyResponse(payload={"mainbranch": mainbranch}))
    )

    with pytest.raises(NetworkError, match="did not report a main branch"):
        get_provider_state("bitbucket/ieedan/std", store=MemorySecretStore())


@pytest.mark.parametrize("cls", [Provider, GitHostProvider])
def test_provider_bases_are_abstract(cls) -> None:
    with pytest.raises(TypeError):
        cls()


def test_github_raw_fetch_url_and_headers(monkeypatch) -> None:
    recorder = _Recorder(DummyResponse(text="export const a = 1;\n"))
    monkeypatch.setattr(requests, "get", recorder)
    state = github.parse("github/ieedan/std/src#main")

    content = github.fetch_raw(state, "utils/math.ts", store=MemorySecretStore())

    assert content == "export const a = 1;\n"
    url, headers = recorder.calls[0]
    assert url == "https://api.github.com/repos/ieedan/std/contents/src/utils/math.ts?ref=main"
    assert headers["Accept"] == "application/vnd.github.raw+json"
    assert "Authorization" not in headers


def test_env_token_is_used_when_store_is_empty(monkeypatch) -> None:
    monkeypatch.setenv("BLOCKREPO_GITLAB_TOKEN", "from-env")
    recorder = _Recorder(DummyResponse(text="x"))
    monkeypatch.setattr(requests, "get", recorder)
    state = gitlab.parse("gitlab/group/blocks#main")

    gitlab.fetch_raw(state, "utils/a.ts", store=MemorySecretStore())

    url, headers = recorder.calls[0]
    assert url == (
        "https://gitlab.com/api/v4/projects/group%2Fblocks/repository/files/utils%2Fa.ts/raw?ref=main"
    )
    assert headers["PRIVATE-TOKEN"] == "from-env"


def test_azure_basic_auth_and_tag_descriptor(monkeypatch) -> None:
    recorder = _Recorder(DummyResponse(text="x"))
    monkeypatch.setattr(requests, "get", recorder)
    state = azure.parse("azure/org/project/repo#tags/v1")

    azure.fetch_raw(state, "utils/a.ts", store=MemorySecretStore({"azure-token": "pat"}))

    url, headers = recorder.calls[0]
    assert url.startswith("https://dev.azure.com/org/project/_apis/git/repositories/repo/items?")
    assert "versionDescriptor.versionType=tag" in url
    assert "versionDescriptor.version=v1" in url
    expected = base64.b64encode(b":pat").decode("ascii")
    assert headers["Authorization"] == f"Basic {expected}"


def test_http_provider_never_sends_tokens(monkeypatch) -> None:
    monkeypatch.setenv("BLOCKREPO_HTTP_TOKEN", "nope")
    recorder = _Recorder(DummyResponse(text="x"))
    monkeypatch.setattr(requests, "get", recorder)

    http.fetch_raw(http_state(), "utils/a.ts", store=MemorySecretStore({"http-token": "nope"}))

    _, headers = recorder.calls[0]
    assert "Authorization" not in headers


@pytest.mark.parametrize(
    ("status", "headers", "token", "error"),
    [
        (401, {}, None, AuthRequired),
        (401, {}, "bad", AuthFailed),
        (403, {}, None, AuthRequired),
        (403, {"X-RateLimit-Remaining": "0"}, None, RateLimited),
        (429, {}, "good", RateLimited),
        (404, {}, None, NotFound),
        (500, {}, None, NetworkError),
    ],
)
def test_status_mapping(monkeypatch, status, headers, token, error) -> None:
    monkeypatch.setattr(
        requests, "get", _Recorder(DummyResponse(status_code=status, headers=headers))
    )
    store = MemorySecretStore({"github-token": token} if token else {})
    state = github.parse("github/o/r#main")

    with pytest.raises(error):
        github.fetch_raw(state, "a.ts", store=store)


def test_transport_failure_is_network_error(monkeypatch) -> None:
    def _boom(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "get", _boom)

    with pytest.raises(NetworkError) as excinfo:
        http.fetch_raw(http_state(), "a.ts")
    assert "https://example.com/registry/a.ts" in str(excinfo.value)


def test_fetch_manifest_sets_source(monkeypatch) -> None:
    payload = manifest_data(block_data("utils", "math"))
    recorder = _Recorder(DummyResponse(payload=payload))
    monkeypatch.setattr(requests, "get", recorder)
    state = http_state()

    manifest = fetch_manifest(state)

    assert recorder.calls[0][0] == "https://example.com/registry/blockrepo-manifest.json"
    block = manifest.find_block("utils/math")
    assert block is not None
    assert block.source == state


def test_missing_manifest(monkeypatch) -> None:
    monkeypatch.setattr(requests, "get", _Recorder(DummyResponse(status_code=404)))

    with pytest.raises(ManifestNotFound):
        fetch_manifest(http_state())


def test_invalid_manifest(monkeypatch) -> None:
    monkeypatch.setattr(requests, "get", _Recorder(DummyResponse(text="{not json")))

    with pytest.raises(ManifestInvalid) as excinfo:
        fetch_manifest(http_state())
    assert "https://example.com/registry" in str(excinfo.value)


def test_for_each_get_provider_state_dedupes_and_keeps_order(monkeypatch) -> None:
    def _fail(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise AssertionError("no network expected")

    monkeypatch.setattr(requests, "get", _fail)

    states = for_each_get_provider_state(
        ["https://b.example.com", "github/o/r#main", "https://b.example.com"],
        store=MemorySecretStore(),
    )

    assert [s.url for s in states] == ["https://b.example.com", "github/o/r"]
