from __future__ import annotations

from contextvars import ContextVar, Token
import os

_VERBOSE_LOGGING: ContextVar[bool] = ContextVar(
    "blockrepo_verbose_logging", default=False
)

_DEFAULT_MANIFEST_JOBS = 4
_DEFAULT_FETCH_JOBS = 3
_MAX_JOBS = 16


def _read_positive_int_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if value <= 0:
        return default
    return min(value, _MAX_JOBS)


def get_verbose_logging() -> bool:
    return _VERBOSE_LOGGING.get()


def set_verbose_logging(enabled: bool) -> Token[bool]:
    return _VERBOSE_LOGGING.set(bool(enabled))


def reset_verbose_logging(token: Token[bool]) -> None:
    _VERBOSE_LOGGING.reset(token)


def get_manifest_jobs() -> int:
    """Worker limit for resolving independent registries in parallel."""
    return _read_positive_int_env("BLOCKREPO_MANIFEST_JOBS", _DEFAULT_MANIFEST_JOBS)


def get_fetch_jobs() -> int:
    """Worker limit for raw-file fetches against a single registry."""
    return _read_positive_int_env("BLOCKREPO_FETCH_JOBS", _DEFAULT_FETCH_JOBS)
