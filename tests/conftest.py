from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from blockrepo.manifest.types import Manifest
from blockrepo.persisted import MemorySecretStore
from blockrepo.providers import ProviderState
from blockrepo.update.decisions import Decision, FileReview


class DummyResponse:
    def __init__(
        self,
        *,
        status_code: int = 200,
        text: str = "",
        headers: dict[str, str] | None = None,
        payload: Any = None,
    ) -> None:
        self.status_code = status_code
        self.headers = headers or {}
        self._text = text if payload is None else json.dumps(payload)
        self._payload = payload

    @property
    def text(self) -> str:
        return self._text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no json payload")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(response=self)


class ScriptedDecisions:
    """Decision provider that replays a fixed list of answers."""

    def __init__(self, *decisions: Decision, install: bool = False) -> None:
        self.decisions = list(decisions)
        self.install = install
        self.reviews: list[FileReview] = []
        self.messages: list[str] = []
        self.install_requests: list[tuple[tuple[str, ...], tuple[str, ...]]] = []

    def decide(self, review: FileReview) -> Decision:
        self.reviews.append(review)
        if not self.decisions:
            raise AssertionError(f"unexpected prompt for {review.to_label}")
        return self.decisions.pop(0)

    def confirm_install(self, dependencies, dev_dependencies) -> bool:
        self.install_requests.append((tuple(dependencies), tuple(dev_dependencies)))
        return self.install

    def notify(self, message: str) -> None:
        self.messages.append(message)


def block_data(category: str, name: str, **fields: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": name,
        "category": category,
        "files": fields.pop("files", [f"{name}.ts"]),
        "localDependencies": fields.pop("local", []),
        "dependencies": fields.pop("deps", []),
        "devDependencies": fields.pop("dev_deps", []),
    }
    data.update(fields)
    return data


def manifest_data(*blocks: dict[str, Any]) -> dict[str, Any]:
    categories: dict[str, list[dict[str, Any]]] = {}
    for block in blocks:
        categories.setdefault(block["category"], []).append(block)
    return {
        "categories": [
            {"name": name, "blocks": entries} for name, entries in categories.items()
        ]
    }


def build_manifest(*blocks: dict[str, Any]) -> Manifest:
    return Manifest.from_dict(manifest_data(*blocks))


def http_state(url: str = "https://example.com/registry") -> ProviderState:
    return ProviderState(
        provider="http",
        url=url,
        owner="example.com",
        repo=url.split("example.com", 1)[-1].strip("/"),
        ref="",
        base_url=f"{url}/",
    )


@pytest.fixture
def store() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture(autouse=True)
def _no_provider_env_tokens(monkeypatch) -> None:
    for name in ("GITHUB", "GITLAB", "BITBUCKET", "AZURE", "HTTP"):
        monkeypatch.delenv(f"BLOCKREPO_{name}_TOKEN", raising=False)
