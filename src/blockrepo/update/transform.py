from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Mapping

from ..config import get_path_for_block
from ..manifest.types import Block

_BLOCK_COMMENT = ("/*", " * ", " */")
_HTML_COMMENT = ("<!--", "  ", "-->")
_HASH_COMMENT = (None, "# ", None)

COMMENT_STYLES = {
    ".js": _BLOCK_COMMENT,
    ".jsx": _BLOCK_COMMENT,
    ".mjs": _BLOCK_COMMENT,
    ".cjs": _BLOCK_COMMENT,
    ".ts": _BLOCK_COMMENT,
    ".tsx": _BLOCK_COMMENT,
    ".mts": _BLOCK_COMMENT,
    ".cts": _BLOCK_COMMENT,
    ".css": _BLOCK_COMMENT,
    ".scss": _BLOCK_COMMENT,
    ".svelte": _HTML_COMMENT,
    ".vue": _HTML_COMMENT,
    ".html": _HTML_COMMENT,
    ".py": _HASH_COMMENT,
    ".sh": _HASH_COMMENT,
    ".yaml": _HASH_COMMENT,
    ".yml": _HASH_COMMENT,
    ".toml": _HASH_COMMENT,
}

_TEST_FILE = re.compile(r"(\.(test|spec)\.[^.]+$)|(^test_)")
_TEMPLATE = re.compile(r"^\{\{\s*([^/{}\s]+)/([^/{}\s]+)\s*\}\}(.*)$")


def is_test_file(file_name: str) -> bool:
    return bool(_TEST_FILE.search(os.path.basename(file_name)))


def watermark_lines(version: str, repo_url: str) -> list[str]:
    return [f"blockrepo {version}", f"Installed from {repo_url}"]


def add_watermark(content: str, dest_path: Path, lines: list[str]) -> str:
    """Prefix ``content`` with ``lines`` in the comment syntax of ``dest_path``."""
    style = COMMENT_STYLES.get(dest_path.suffix.lower())
    if style is None:
        return content

    open_, middle, close = style
    out = []
    if open_:
        out.append(open_)
    out.extend(f"{middle}{line}".rstrip() for line in lines)
    if close:
        out.append(close)
    header = "\n".join(out) + "\n\n"

    # A shebang must stay on the first line.
    if content.startswith("#!"):
        first, _, rest = content.partition("\n")
        return f"{first}\n{header}{rest}"
    return header + content


def _import_target(template: str, dest_path: Path, resolved_paths: Mapping[str, Path]) -> str:
    match = _TEMPLATE.match(template)
    if match is None:
        return template
    category, name, suffix = match.groups()
    target = get_path_for_block(category, dict(resolved_paths)) / name
    relative = os.path.relpath(target, dest_path.parent).replace(os.sep, "/")
    if not relative.startswith("."):
        relative = f"./{relative}"
    return relative + suffix


def rewrite_imports(
    content: str,
    imports: Mapping[str, str],
    dest_path: Path,
    resolved_paths: Mapping[str, Path],
) -> str:
    """Replace quoted import strings from a block's ``_imports_`` map.

    Values of the form ``{{category/name}}`` (optionally followed by a
    suffix such as ``/index``) point at the referenced block's install
    directory, relative to the file being written.
    """
    for literal, template in imports.items():
        replacement = _import_target(template, dest_path, resolved_paths)
        pattern = re.compile(r"([\"'`])" + re.escape(literal) + r"\1")
        content = pattern.sub(lambda m: f"{m.group(1)}{replacement}{m.group(1)}", content)
    return content


def transform_remote_content(
    content: str,
    *,
    block: Block,
    dest_path: Path,
    resolved_paths: Mapping[str, Path],
    watermark: list[str] | None = None,
) -> str:
    if block.imports:
        content = rewrite_imports(content, block.imports, dest_path, resolved_paths)
    if watermark:
        content = add_watermark(content, dest_path, watermark)
    return content
