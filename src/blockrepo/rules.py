"""Structural checks run over a registry manifest before it is published."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Union

from .config import RegistryConfig
from .errors import ConfigError
from .manifest.graph import is_depended_on, search_chain
from .manifest.packages import parse_package_name
from .manifest.types import Block, Manifest

SEVERITIES = ("off", "warn", "error")

RuleOption = Union[str, int, float]

DEFAULT_MAX_LOCAL_DEPENDENCIES = 5

# Package names, not framework names.
DEFAULT_FRAMEWORKS = frozenset(
    {
        "svelte",
        "@sveltejs/kit",
        "vue",
        "nuxt",
        "react",
        "react-dom",
        "next",
        "@remix-run/react",
        "@angular/core",
        "@angular/common",
        "@angular/forms",
        "@angular/platform-browser",
        "@angular/platform-browser-dynamic",
        "@angular/router",
        "@builder.io/qwik",
        "astro",
        "solid-js",
    }
)


@dataclass(frozen=True)
class CheckContext:
    manifest: Manifest
    options: tuple[RuleOption, ...] = ()
    config: RegistryConfig = field(default_factory=RegistryConfig)


@dataclass(frozen=True)
class Rule:
    key: str
    description: str
    check: Callable[[Block, CheckContext], list[str] | None]


@dataclass(frozen=True)
class RuleViolation:
    rule: str
    severity: str
    block: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} ({self.rule})"


@dataclass
class CheckResult:
    warnings: list[RuleViolation] = field(default_factory=list)
    errors: list[RuleViolation] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _unpinned_dependency(block: Block, ctx: CheckContext) -> list[str] | None:
    errors: list[str] = []
    for dep in (*block.dependencies, *block.dev_dependencies):
        try:
            pinned = parse_package_name(dep).pinned
        except ValueError:
            pinned = False
        if not pinned:
            errors.append(f"Couldn't find a version to use for {dep}")
    return errors or None


def _local_dependency_exists(block: Block, ctx: CheckContext) -> list[str] | None:
    errors = [
        f"{block.specifier} depends on local dependency {dep} which doesn't exist"
        for dep in block.local_dependencies
        if ctx.manifest.find_block(dep) is None
    ]
    return errors or None


def _no_category_index_dependency(block: Block, ctx: CheckContext) -> list[str] | None:
    errors: list[str] = []
    for dep in block.local_dependencies:
        category, _, name = dep.partition("/")
        if category != block.category or name != "index":
            continue
        if ctx.manifest.find_block(dep) is None:
            continue
        errors.append(f"{block.specifier} depends on {dep}")
    return errors or None


def _max_local_dependencies(block: Block, ctx: CheckContext) -> list[str] | None:
    limit = DEFAULT_MAX_LOCAL_DEPENDENCIES
    if ctx.options and isinstance(ctx.options[0], int) and not isinstance(ctx.options[0], bool):
        limit = ctx.options[0]
    count = len(block.local_dependencies)
    if count > limit:
        return [f"{block.specifier} has too many local dependencies ({count}) limit ({limit})"]
    return None


def _no_circular_dependency(block: Block, ctx: CheckContext) -> list[str] | None:
    chain = search_chain(block.specifier, block, ctx.manifest.categories)
    if chain is None:
        return None
    return [f"There is a circular dependency in {block.specifier}: {' -> '.join(chain)}"]


def _no_unused_block(block: Block, ctx: CheckContext) -> list[str] | None:
    if block.listed:
        return None
    # Only listed blocks seed the search; an unlisted chain of blocks that
    # merely reference each other is still unused.
    if is_depended_on(block.specifier, ctx.manifest.categories):
        return None
    return [f"{block.specifier} is unused and will be removed"]


def _no_framework_dependency(block: Block, ctx: CheckContext) -> list[str] | None:
    frameworks = (
        frozenset(ctx.config.frameworks)
        if ctx.config.frameworks is not None
        else DEFAULT_FRAMEWORKS
    )
    errors: list[str] = []
    for dep in (*block.dev_dependencies, *block.dependencies):
        try:
            name = parse_package_name(dep).name
        except ValueError:
            name = dep
        if name in frameworks:
            errors.append(f"{block.specifier} depends on {name} causing it to be installed when added")
    return errors or None


RULES: tuple[Rule, ...] = (
    Rule(
        "unpinned-dependency",
        "Require all dependencies to have a pinned version.",
        _unpinned_dependency,
    ),
    Rule(
        "local-dependency-exists",
        "Require all local dependencies to exist.",
        _local_dependency_exists,
    ),
    Rule(
        "no-category-index-dependency",
        "Disallow depending on the index block of a category.",
        _no_category_index_dependency,
    ),
    Rule(
        "max-local-dependencies",
        "Enforce a limit on the amount of local dependencies a block can have.",
        _max_local_dependencies,
    ),
    Rule(
        "no-circular-dependency",
        "Disallow circular dependencies.",
        _no_circular_dependency,
    ),
    Rule(
        "no-unused-block",
        "Disallow unused blocks (not listed and not a dependency of a listed block).",
        _no_unused_block,
    ),
    Rule(
        "no-framework-dependency",
        "Disallow frameworks (Svelte, Vue, React, ...) as dependencies.",
        _no_framework_dependency,
    ),
)

RULE_KEYS = tuple(rule.key for rule in RULES)

DEFAULT_RULE_CONFIG: dict[str, Any] = {
    "unpinned-dependency": "warn",
    "local-dependency-exists": "error",
    "no-category-index-dependency": "warn",
    "max-local-dependencies": ["warn", 10],
    "no-circular-dependency": "error",
    "no-unused-block": "warn",
    "no-framework-dependency": "warn",
}


def parse_rule_config(
    rule_config: Mapping[str, Any] | None = None,
) -> dict[str, tuple[str, tuple[RuleOption, ...]]]:
    """Validate user rule settings and merge them over the defaults."""
    merged = {**DEFAULT_RULE_CONFIG, **(rule_config or {})}
    parsed: dict[str, tuple[str, tuple[RuleOption, ...]]] = {}
    for key, value in merged.items():
        if key not in RULE_KEYS:
            raise ConfigError(f"Unknown rule '{key}'")
        if isinstance(value, str):
            severity, options = value, ()
        elif isinstance(value, (list, tuple)) and value:
            severity, options = value[0], tuple(value[1:])
        else:
            raise ConfigError(f"Rule '{key}' must be a severity or [severity, ...options]")
        if severity not in SEVERITIES:
            raise ConfigError(
                f"Rule '{key}' has invalid severity {severity!r} (expected {', '.join(SEVERITIES)})"
            )
        for option in options:
            if isinstance(option, bool) or not isinstance(option, (str, int, float)):
                raise ConfigError(f"Rule '{key}' options must be strings or numbers")
        parsed[key] = (severity, options)
    return parsed


def run_rules(
    manifest: Manifest,
    config: RegistryConfig | None = None,
    rule_config: Mapping[str, Any] | None = None,
) -> CheckResult:
    """Run every enabled rule over every block.

    Order is categories, then blocks, then rules as registered; violations are
    never reordered or merged across rules.
    """
    registry_config = config or RegistryConfig()
    settings = parse_rule_config(
        rule_config if rule_config is not None else registry_config.rules
    )
    result = CheckResult()

    for category in manifest.categories:
        for block in category.blocks:
            for rule in RULES:
                severity, options = settings[rule.key]
                if severity == "off":
                    continue

                messages = rule.check(
                    block,
                    CheckContext(manifest=manifest, options=options, config=registry_config),
                )
                if not messages:
                    continue

                bucket = result.errors if severity == "error" else result.warnings
                bucket.extend(
                    RuleViolation(
                        rule=rule.key,
                        severity=severity,
                        block=block.specifier,
                        message=message,
                    )
                    for message in messages
                )

    return result
