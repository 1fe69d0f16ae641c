from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Protocol

SECRETS_PATH = Path(
    os.environ.get(
        "BLOCKREPO_SECRETS",
        os.path.expanduser("~/.local/share/blockrepo/secrets.json"),
    )
)


class SecretStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class MemorySecretStore:
    def __init__(self, values: dict[str, str] | None = None) -> None:
        self._values = dict(values or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class FileSecretStore:
    """Tokens kept in a single JSON file readable only by the owner."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path) if path is not None else SECRETS_PATH

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError):
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)


def token_key(provider_name: str) -> str:
    return f"{provider_name}-token"


@lru_cache(maxsize=1)
def _load_dotenv() -> None:
    from dotenv import find_dotenv, load_dotenv

    env_path = find_dotenv(usecwd=True)
    if env_path:
        load_dotenv(env_path, override=False)


def get_token(provider_name: str, store: SecretStore | None = None) -> str | None:
    """Look up a provider token; a missing token is not an error."""
    if store is None:
        store = FileSecretStore()
    token = store.get(token_key(provider_name))
    if token:
        return token
    _load_dotenv()
    env_name = f"BLOCKREPO_{provider_name.upper()}_TOKEN"
    return (os.environ.get(env_name) or "").strip() or None
