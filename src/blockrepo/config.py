from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Union

import yaml

from .errors import ConfigError, WriteFailure

PROJECT_CONFIG_NAME = "blockrepo.json"
DEFAULT_BLOCKS_PATH = "./src/blocks"
REGISTRY_CONFIG_NAME = "blockrepo-build.json"
MANIFEST_NAME = "blockrepo-manifest.json"

FORMATTERS = ("prettier", "biome")


@dataclass
class ProjectConfig:
    paths: dict[str, str]
    repos: list[str] = field(default_factory=list)
    include_tests: bool = False
    watermark: bool = True
    formatter: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectConfig":
        paths = data.get("paths")
        if not isinstance(paths, dict) or not isinstance(paths.get("*"), str):
            raise ConfigError("'paths' must be a mapping with a '*' entry")
        for key, value in paths.items():
            if not isinstance(value, str) or not value.strip():
                raise ConfigError(f"Path for '{key}' must be a non-empty string")

        repos = data.get("repos") or []
        if not isinstance(repos, list) or not all(isinstance(r, str) for r in repos):
            raise ConfigError("'repos' must be a list of strings")

        formatter = data.get("formatter")
        if formatter is not None and formatter not in FORMATTERS:
            raise ConfigError(
                f"Unknown formatter {formatter!r} (expected one of {', '.join(FORMATTERS)})"
            )

        return cls(
            paths={str(k): str(v) for k, v in paths.items()},
            repos=list(repos),
            include_tests=bool(data.get("includeTests", False)),
            watermark=bool(data.get("watermark", True)),
            formatter=formatter,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "repos": list(self.repos),
            "includeTests": self.include_tests,
            "watermark": self.watermark,
        }
        if self.formatter is not None:
            data["formatter"] = self.formatter
        data["paths"] = dict(self.paths)
        return data


@dataclass
class RegistryConfig:
    rules: dict[str, Any] = field(default_factory=dict)
    frameworks: list[str] | None = None
    manifest: str = MANIFEST_NAME

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RegistryConfig":
        rules = data.get("rules") or {}
        if not isinstance(rules, dict):
            raise ConfigError("'rules' must be a mapping")
        frameworks = data.get("frameworks")
        if frameworks is not None and (
            not isinstance(frameworks, list)
            or not all(isinstance(f, str) for f in frameworks)
        ):
            raise ConfigError("'frameworks' must be a list of package names")
        manifest = data.get("manifest") or MANIFEST_NAME
        if not isinstance(manifest, str):
            raise ConfigError("'manifest' must be a path")
        return cls(rules=dict(rules), frameworks=frameworks, manifest=manifest)


def parse_config(source: Union[str, Path, IO]) -> dict[str, Any]:
    """Parse a JSON or YAML configuration document into a mapping."""
    try:
        if isinstance(source, Path):
            with open(source, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        else:
            data = yaml.safe_load(source)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Could not parse configuration: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Could not read configuration: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")
    return data


def get_project_config(cwd: Union[str, Path]) -> ProjectConfig:
    path = Path(cwd) / PROJECT_CONFIG_NAME
    if not path.exists():
        raise ConfigError(
            f"Could not find your configuration file ({PROJECT_CONFIG_NAME})! Please run `init`."
        )
    try:
        return ProjectConfig.from_dict(parse_config(path))
    except ConfigError as exc:
        raise ConfigError(f"There was an error reading {PROJECT_CONFIG_NAME}: {exc}") from exc


def write_project_config(config: ProjectConfig, cwd: Union[str, Path]) -> Path:
    path = Path(cwd) / PROJECT_CONFIG_NAME
    try:
        path.write_text(json.dumps(config.to_dict(), indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise WriteFailure(str(path), str(exc)) from exc
    return path


def get_registry_config(cwd: Union[str, Path]) -> RegistryConfig:
    path = Path(cwd) / REGISTRY_CONFIG_NAME
    if not path.exists():
        return RegistryConfig()
    return RegistryConfig.from_dict(parse_config(path))


def resolve_paths(paths: dict[str, str], cwd: Union[str, Path]) -> dict[str, Path]:
    root = Path(cwd)
    return {key: (root / value).resolve() for key, value in paths.items()}


def get_path_for_block(category: str, resolved_paths: dict[str, Path]) -> Path:
    """Install directory for a category: its own entry, else ``*/<category>``."""
    if category in resolved_paths:
        return resolved_paths[category]
    return resolved_paths["*"] / category
