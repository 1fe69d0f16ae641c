from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Union


@dataclass(frozen=True)
class PackageName:
    name: str
    version: str | None

    @property
    def pinned(self) -> bool:
        return bool(self.version)


def parse_package_name(dependency: str) -> PackageName:
    """Split ``name@version``, keeping the leading ``@`` of scoped packages.

    ``@scope/pkg@1.2.0`` -> ``@scope/pkg`` / ``1.2.0``; a bare name or a
    trailing ``@`` yields no version.
    """
    value = dependency.strip()
    if not value:
        raise ValueError("Package name cannot be empty")
    search_from = 1 if value.startswith("@") else 0
    at = value.find("@", search_from)
    if at == -1:
        return PackageName(value, None)
    name, version = value[:at], value[at + 1 :].strip()
    if not name or (value.startswith("@") and "/" not in name):
        raise ValueError(f"Invalid package name: {dependency!r}")
    return PackageName(name, version or None)


def declared_dependencies(cwd: Union[str, Path]) -> set[str]:
    """Package names the project's ``package.json`` already declares."""
    path = Path(cwd) / "package.json"
    if not path.exists():
        return set()
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return set()
    declared: set[str] = set()
    for key in ("dependencies", "devDependencies", "peerDependencies"):
        section = data.get(key)
        if isinstance(section, dict):
            declared.update(section)
    return declared


def filter_installed(
    dependencies: Iterable[str], declared: set[str]
) -> tuple[str, ...]:
    missing: dict[str, None] = {}
    for dep in dependencies:
        if parse_package_name(dep).name not in declared:
            missing.setdefault(dep, None)
    return tuple(missing)
