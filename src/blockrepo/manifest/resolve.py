from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence, Union

from ..concurrency import run_indexed_tasks_fail_fast
from ..config import get_path_for_block, resolve_paths
from ..errors import BlockNotFound, CircularDependency, MissingDependency
from ..persisted import SecretStore
from ..providers import ProviderState, fetch_manifest, join_url, select_provider
from ..runtime import get_manifest_jobs
from .graph import search_chain
from .types import Block, Category


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[resolve] {message}", file=sys.stderr, flush=True)


@dataclass(frozen=True)
class InstalledBlock:
    specifier: str
    full_specifier: str
    path: Path
    block: Block


def fetch_blocks(
    states: Sequence[ProviderState], *, store: SecretStore | None = None
) -> dict[str, Block]:
    """Fetch every registry's manifest and key its blocks by fully-qualified specifier."""
    tasks = [
        (index, (lambda state=state: fetch_manifest(state, store=store)))
        for index, state in enumerate(states)
    ]
    manifests = run_indexed_tasks_fail_fast(tasks, max_workers=get_manifest_jobs())

    blocks: dict[str, Block] = {}
    for index, manifest in manifests:
        state = states[index]
        for block in manifest.blocks():
            key = join_url(state.url, block.specifier)
            if key in blocks:
                _log(f"skipping duplicate {key}")
                continue
            blocks[key] = block
        _log(f"{state.url}: {sum(1 for _ in manifest.blocks())} blocks")
    return blocks


def _registry_url(full_specifier: str, block: Block) -> str:
    return full_specifier[: len(full_specifier) - len(block.specifier) - 1]


def _registry_categories(
    blocks_map: Mapping[str, Block], registry_url: str
) -> tuple[Category, ...]:
    grouped: dict[str, list[Block]] = {}
    for key, block in blocks_map.items():
        if _registry_url(key, block) == registry_url:
            grouped.setdefault(block.category, []).append(block)
    return tuple(Category(name=name, blocks=tuple(bs)) for name, bs in grouped.items())


def _lookup_requested(
    specifier: str,
    blocks_map: Mapping[str, Block],
    states: Sequence[ProviderState],
) -> tuple[str, Block]:
    if specifier in blocks_map:
        return specifier, blocks_map[specifier]
    if select_provider(specifier) is None:
        for state in states:
            key = join_url(state.url, specifier)
            if key in blocks_map:
                return key, blocks_map[key]
    raise BlockNotFound(specifier)


def resolve_tree(
    specifiers: Sequence[str],
    blocks_map: Mapping[str, Block],
    states: Sequence[ProviderState],
) -> list[Block]:
    """Requested blocks plus their local dependencies, dependencies first.

    Each block appears once, at the position where it first completed, so a
    dependency shared by two parents is not repeated. Any cycle reachable
    from a requested block is an error; nothing partial is returned.
    """
    ordered: list[Block] = []
    visited: set[str] = set()

    def cycle_chain(dep: str, dep_block: Block, registry_url: str, path: tuple[str, ...]) -> list[str]:
        categories = _registry_categories(blocks_map, registry_url)
        chain = search_chain(dep, dep_block, categories)
        if chain is not None:
            return chain
        start = path.index(join_url(registry_url, dep))
        return [blocks_map[key].specifier for key in path[start:]] + [dep]

    def visit(key: str, block: Block, path: tuple[str, ...]) -> None:
        path = path + (key,)
        registry_url = _registry_url(key, block)
        for dep in block.local_dependencies:
            dep_key = join_url(registry_url, dep)
            dep_block = blocks_map.get(dep_key)
            if dep_block is None:
                raise MissingDependency(key, dep)
            if dep_key in path:
                raise CircularDependency(cycle_chain(dep, dep_block, registry_url, path))
            if dep_key in visited:
                continue
            visit(dep_key, dep_block, path)
        visited.add(key)
        ordered.append(block)

    for specifier in specifiers:
        key, block = _lookup_requested(specifier, blocks_map, states)
        if key in visited:
            continue
        visit(key, block, ())

    _log(f"resolved {', '.join(b.specifier for b in ordered)}")
    return ordered


def get_installed(
    blocks_map: Mapping[str, Block],
    paths: dict[str, str],
    cwd: Union[str, Path],
) -> list[InstalledBlock]:
    resolved = resolve_paths(paths, cwd)
    installed: list[InstalledBlock] = []
    for key, block in blocks_map.items():
        directory = get_path_for_block(block.category, resolved)
        if block.subdirectory:
            block_path = directory / block.name
        else:
            block_path = directory / block.files[0]
        if block_path.exists():
            installed.append(
                InstalledBlock(
                    specifier=block.specifier,
                    full_specifier=key,
                    path=block_path,
                    block=block,
                )
            )
    return installed
