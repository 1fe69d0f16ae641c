from pathlib import Path

__version__ = "0.1.0"


def check(
    manifest_path: str | Path,
    *,
    rules: dict | None = None,
    frameworks: list[str] | None = None,
):
    from .config import RegistryConfig
    from .manifest import parse_manifest
    from .rules import run_rules

    path = Path(manifest_path)
    manifest = parse_manifest(path.read_text(encoding="utf-8"), source=str(path))
    return run_rules(
        manifest, RegistryConfig(rules=dict(rules or {}), frameworks=frameworks)
    )


def resolve(
    repos: list[str],
    blocks: list[str],
    *,
    store=None,
):
    """Blocks requested from ``repos`` plus their local dependencies, dependencies first."""
    from .manifest import fetch_blocks, resolve_tree
    from .providers import for_each_get_provider_state

    states = for_each_get_provider_state(repos, store=store)
    return resolve_tree(blocks, fetch_blocks(states, store=store), states)
