from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Iterator

from ..errors import ManifestInvalid

if TYPE_CHECKING:
    from ..providers.base import ProviderState


def _unique(values: list[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return tuple(seen)


def _string_list(data: dict[str, Any], key: str, where: str) -> tuple[str, ...]:
    value = data.get(key, [])
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestInvalid(f"'{key}' of {where} must be a list of strings")
    return _unique([v.strip() for v in value if v.strip()])


def _flag(data: dict[str, Any], key: str, default: bool, where: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ManifestInvalid(f"'{key}' of {where} must be a boolean")
    return value


@dataclass(frozen=True)
class Block:
    name: str
    category: str
    files: tuple[str, ...]
    local_dependencies: tuple[str, ...] = ()
    dependencies: tuple[str, ...] = ()
    dev_dependencies: tuple[str, ...] = ()
    listed: bool = True
    tests: bool = False
    subdirectory: bool = False
    directory: str = ""
    imports: dict[str, str] = field(default_factory=dict, compare=False)
    source: ProviderState | None = field(default=None, compare=False)

    @property
    def specifier(self) -> str:
        return f"{self.category}/{self.name}"

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, category: str) -> "Block":
        if not isinstance(data, dict):
            raise ManifestInvalid(f"blocks of category '{category}' must be mappings")
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ManifestInvalid(f"block in category '{category}' is missing a name")
        name = name.strip()
        where = f"block '{category}/{name}'"

        declared = data.get("category", category)
        if declared != category:
            raise ManifestInvalid(
                f"{where} declares category '{declared}' but is listed under '{category}'"
            )

        files = _string_list(data, "files", where)
        if not files:
            raise ManifestInvalid(f"{where} has no files")

        local_dependencies = _string_list(data, "localDependencies", where)
        for dep in local_dependencies:
            parts = dep.split("/")
            if len(parts) != 2 or not all(parts):
                raise ManifestInvalid(
                    f"{where} has malformed local dependency '{dep}' (expected <category>/<name>)"
                )

        subdirectory = _flag(data, "subdirectory", False, where)
        directory = data.get("directory")
        if directory is None:
            directory = f"{category}/{name}" if subdirectory else category
        if not isinstance(directory, str):
            raise ManifestInvalid(f"'directory' of {where} must be a string")

        imports = data.get("_imports_") or {}
        if not isinstance(imports, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in imports.items()
        ):
            raise ManifestInvalid(f"'_imports_' of {where} must map strings to strings")

        return cls(
            name=name,
            category=category,
            files=files,
            local_dependencies=local_dependencies,
            dependencies=_string_list(data, "dependencies", where),
            dev_dependencies=_string_list(data, "devDependencies", where),
            listed=_flag(data, "list", True, where),
            tests=_flag(data, "tests", False, where),
            subdirectory=subdirectory,
            directory=directory.strip("/"),
            imports=dict(imports),
        )


@dataclass(frozen=True)
class Category:
    name: str
    blocks: tuple[Block, ...] = ()

    def find(self, name: str) -> Block | None:
        for block in self.blocks:
            if block.name == name:
                return block
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Category":
        if not isinstance(data, dict):
            raise ManifestInvalid("categories must be mappings")
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ManifestInvalid("category is missing a name")
        name = name.strip()
        raw_blocks = data.get("blocks", [])
        if not isinstance(raw_blocks, list):
            raise ManifestInvalid(f"'blocks' of category '{name}' must be a list")
        blocks = tuple(Block.from_dict(b, category=name) for b in raw_blocks)
        return cls(name=name, blocks=blocks)


@dataclass(frozen=True)
class Manifest:
    categories: tuple[Category, ...] = ()

    def find_category(self, name: str) -> Category | None:
        for category in self.categories:
            if category.name == name:
                return category
        return None

    def find_block(self, specifier: str) -> Block | None:
        category_name, _, block_name = specifier.partition("/")
        category = self.find_category(category_name.strip())
        if category is None:
            return None
        return category.find(block_name.strip())

    def blocks(self) -> Iterator[Block]:
        for category in self.categories:
            yield from category.blocks

    def with_source(self, state: ProviderState) -> "Manifest":
        """Copy of the manifest whose blocks point back at ``state``."""
        return Manifest(
            categories=tuple(
                Category(
                    name=category.name,
                    blocks=tuple(replace(b, source=state) for b in category.blocks),
                )
                for category in self.categories
            )
        )

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        if isinstance(data, list):
            raw_categories = data
        elif isinstance(data, dict):
            raw_categories = data.get("categories")
            if not isinstance(raw_categories, list):
                raise ManifestInvalid("'categories' must be a list")
        else:
            raise ManifestInvalid("manifest must be a mapping with 'categories'")

        categories = tuple(Category.from_dict(c) for c in raw_categories)

        seen: set[str] = set()
        for category in categories:
            for block in category.blocks:
                if block.specifier in seen:
                    raise ManifestInvalid(f"duplicate block '{block.specifier}'")
                seen.add(block.specifier)
        return cls(categories=categories)


def parse_manifest(text: str, *, source: str | None = None) -> Manifest:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestInvalid(f"not valid JSON ({exc.msg})", source=source) from exc
    try:
        return Manifest.from_dict(data)
    except ManifestInvalid as exc:
        if source and exc.source is None:
            raise ManifestInvalid(exc.reason, source=source) from None
        raise
