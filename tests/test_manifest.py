from __future__ import annotations

import json

import pytest

from blockrepo.errors import ManifestInvalid
from blockrepo.manifest import parse_manifest, parse_package_name
from blockrepo.manifest.packages import declared_dependencies, filter_installed

from conftest import block_data, manifest_data


def test_parse_manifest_builds_frozen_blocks() -> None:
    text = json.dumps(
        manifest_data(
            block_data("utils", "math", local=["utils/add", "utils/add"], deps=["lodash@4"]),
            block_data("utils", "add", list=False),
            block_data("ui", "button", subdirectory=True, files=["button.svelte", "index.ts"]),
        )
    )

    manifest = parse_manifest(text)

    assert [c.name for c in manifest.categories] == ["utils", "ui"]
    math = manifest.find_block("utils/math")
    assert math.local_dependencies == ("utils/add",)
    assert math.dependencies == ("lodash@4",)
    assert math.directory == "utils"
    assert manifest.find_block("utils/add").listed is False
    button = manifest.find_block("ui/button")
    assert button.subdirectory is True
    assert button.directory == "ui/button"
    assert button.files == ("button.svelte", "index.ts")
    assert [b.specifier for b in manifest.blocks()] == ["utils/math", "utils/add", "ui/button"]


def test_legacy_array_form() -> None:
    data = manifest_data(block_data("utils", "math"))["categories"]
    manifest = parse_manifest(json.dumps(data))
    assert manifest.find_block("utils/math") is not None


def test_imports_map_is_kept() -> None:
    text = json.dumps(
        manifest_data(block_data("ui", "card", _imports_={"$lib/utils/math": "{{utils/math}}"}))
    )
    block = parse_manifest(text).find_block("ui/card")
    assert block.imports == {"$lib/utils/math": "{{utils/math}}"}


@pytest.mark.parametrize(
    "data",
    [
        {"categories": "nope"},
        manifest_data(block_data("utils", "math"), block_data("utils", "math")),
        manifest_data(block_data("utils", "math", files=[])),
        manifest_data(block_data("utils", "math", local=["math"])),
        manifest_data(block_data("utils", "math", list="yes")),
        {"categories": [{"name": "utils", "blocks": [{"name": "a", "category": "ui", "files": ["a.ts"]}]}]},
    ],
)
def test_structural_defects_are_invalid(data) -> None:
    with pytest.raises(ManifestInvalid):
        parse_manifest(json.dumps(data))


def test_invalid_json_names_source() -> None:
    with pytest.raises(ManifestInvalid) as excinfo:
        parse_manifest("[", source="github/o/r")
    assert "github/o/r" in str(excinfo.value)


@pytest.mark.parametrize(
    ("dep", "name", "version"),
    [
        ("lodash", "lodash", None),
        ("lodash@4.17.21", "lodash", "4.17.21"),
        ("lodash@", "lodash", None),
        ("@scope/pkg", "@scope/pkg", None),
        ("@scope/pkg@^1.0.0", "@scope/pkg", "^1.0.0"),
    ],
)
def test_parse_package_name(dep, name, version) -> None:
    parsed = parse_package_name(dep)
    assert (parsed.name, parsed.version) == (name, version)
    assert parsed.pinned is (version is not None)


def test_parse_package_name_rejects_empty() -> None:
    with pytest.raises(ValueError):
        parse_package_name("  ")


def test_filter_installed_against_package_json(tmp_path) -> None:
    (tmp_path / "package.json").write_text(
        json.dumps(
            {
                "dependencies": {"lodash": "^4.0.0"},
                "devDependencies": {"vitest": "^2.0.0"},
                "peerDependencies": {"svelte": "^5.0.0"},
            }
        )
    )
    declared = declared_dependencies(tmp_path)

    missing = filter_installed(
        ["lodash@4.17.21", "chalk@5.3.0", "svelte@5", "chalk@5.3.0", "vitest"], declared
    )

    assert missing == ("chalk@5.3.0",)


def test_declared_dependencies_without_package_json(tmp_path) -> None:
    assert declared_dependencies(tmp_path) == set()
