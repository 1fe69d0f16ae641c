from .graph import find_block, is_depended_on, search_chain
from .packages import PackageName, parse_package_name
from .resolve import InstalledBlock, fetch_blocks, get_installed, resolve_tree
from .types import Block, Category, Manifest, parse_manifest

__all__ = [
    "Block",
    "Category",
    "InstalledBlock",
    "Manifest",
    "PackageName",
    "fetch_blocks",
    "find_block",
    "get_installed",
    "is_depended_on",
    "parse_manifest",
    "parse_package_name",
    "resolve_tree",
    "search_chain",
]
