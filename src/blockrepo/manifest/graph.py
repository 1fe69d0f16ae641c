"""Reachability over local dependencies within one manifest."""

from __future__ import annotations

from typing import Sequence

from .types import Block, Category


def find_block(categories: Sequence[Category], specifier: str) -> Block | None:
    category_name, _, block_name = specifier.partition("/")
    for category in categories:
        if category.name == category_name:
            return category.find(block_name)
    return None


def search_chain(
    target: str,
    block: Block,
    categories: Sequence[Category],
    ancestors: tuple[str, ...] = (),
) -> list[str] | None:
    """Depth-first search for ``target`` through ``block``'s local dependencies.

    Returns the specifiers walked from ``block`` down to the block that
    depends on ``target``, with ``target`` appended, or ``None`` when it is
    unreachable. Revisiting a specifier already in ``ancestors`` abandons the
    current block so cycles not involving ``target`` cannot recurse forever.
    """
    chain = ancestors + (block.specifier,)

    for dep in block.local_dependencies:
        if dep == target:
            return [*chain, target]

        if dep in ancestors:
            return None

        dep_block = find_block(categories, dep)
        if dep_block is None:
            continue

        found = search_chain(target, dep_block, categories, chain)
        if found:
            return found

    return None


def is_depended_on(specifier: str, categories: Sequence[Category]) -> bool:
    """True if any listed block transitively depends on ``specifier``."""
    for category in categories:
        for block in category.blocks:
            if not block.listed:
                continue
            if search_chain(specifier, block, categories) is not None:
                return True
    return False
