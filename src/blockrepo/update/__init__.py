from .decisions import (
    AutoDecisionProvider,
    Decision,
    DecisionProvider,
    FileReview,
    TerminalDecisionProvider,
)
from .diff import FileDiff, diff_lines, format_diff
from .format import SubprocessFormatter, get_formatter
from .install import PackageManagerInstaller, detect_package_manager
from .pipeline import FileOutcome, UpdateResult, review_file, update_blocks
from .rewrite import AnthropicRewriter, SourceFile
from .transform import add_watermark, is_test_file, rewrite_imports

__all__ = [
    "AnthropicRewriter",
    "AutoDecisionProvider",
    "Decision",
    "DecisionProvider",
    "FileDiff",
    "FileOutcome",
    "FileReview",
    "PackageManagerInstaller",
    "SourceFile",
    "SubprocessFormatter",
    "TerminalDecisionProvider",
    "UpdateResult",
    "add_watermark",
    "detect_package_manager",
    "diff_lines",
    "format_diff",
    "get_formatter",
    "is_test_file",
    "review_file",
    "rewrite_imports",
    "update_blocks",
]
