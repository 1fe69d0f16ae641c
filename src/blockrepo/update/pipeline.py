from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence, Union

from ..config import ProjectConfig, get_path_for_block, resolve_paths
from ..concurrency import map_bounded
from ..errors import ReadFailure, RewriteFailed, WriteFailure
from ..manifest.packages import declared_dependencies, filter_installed
from ..manifest.types import Block
from ..persisted import SecretStore
from ..providers import ProviderState, fetch_raw, join_url
from ..runtime import get_fetch_jobs
from .decisions import Decision, DecisionProvider, FileReview
from .diff import diff_lines
from .format import Formatter
from .install import Installer
from .rewrite import Rewriter, SourceFile
from .transform import is_test_file, transform_remote_content, watermark_lines

WRITTEN = "written"
REJECTED = "rejected"
UNCHANGED = "unchanged"

TEST_RUNNER = "vitest"

Fetcher = Callable[[ProviderState, str], str]


def _log(message: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(f"[update] {message}", file=sys.stderr, flush=True)


@dataclass(frozen=True)
class FileOutcome:
    block: str
    path: Path
    status: str


@dataclass
class UpdateResult:
    files: list[FileOutcome] = field(default_factory=list)
    dependencies: tuple[str, ...] = ()
    dev_dependencies: tuple[str, ...] = ()
    installed: bool = False

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.files if outcome.status == status)


@dataclass(frozen=True)
class PlannedFile:
    name: str
    source_path: str
    dest_path: Path


def plan_block_files(
    block: Block, resolved_paths: dict[str, Path], *, include_tests: bool
) -> list[PlannedFile]:
    directory = get_path_for_block(block.category, resolved_paths)
    if block.subdirectory:
        directory = directory / block.name
    planned = []
    for name in block.files:
        if not include_tests and is_test_file(name):
            continue
        planned.append(
            PlannedFile(
                name=name,
                source_path=join_url(block.directory, name),
                dest_path=directory / name,
            )
        )
    return planned


def _read_local(path: Path) -> tuple[bool, str]:
    if not path.exists():
        return False, ""
    try:
        return True, path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ReadFailure(str(path), f"existing file is not valid UTF-8 ({exc.reason})") from exc
    except OSError as exc:
        raise ReadFailure(str(path), f"could not read existing file ({exc})") from exc


def _write(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise WriteFailure(str(path), str(exc)) from exc


def review_file(
    *,
    block: str,
    local: str,
    local_exists: bool,
    remote: str,
    from_label: str,
    to_label: str,
    decider: DecisionProvider,
    rewriter: Rewriter | None = None,
    formatter: Formatter | None = None,
    dest_path: Path | None = None,
) -> tuple[Decision | None, str]:
    """Run the review loop for one file.

    Returns ``(None, remote)`` when the file is already up to date, else the
    final accept/reject decision with the candidate content it applies to.
    AI rewrites replace the candidate and loop back to review.
    """
    candidate = remote
    while True:
        diff = diff_lines(local, candidate)
        if not diff.has_changes and local_exists and local != "":
            return None, candidate

        decision = decider.decide(
            FileReview(
                block=block,
                from_label=from_label,
                to_label=to_label,
                diff=diff,
                local_exists=local_exists,
                candidate=candidate,
            )
        )
        if decision is not Decision.AI_REWRITE:
            return decision, candidate

        if rewriter is None:
            decider.notify("AI rewrite is not available")
            continue
        try:
            rewritten = rewriter.rewrite(
                SourceFile(content=local, path=to_label),
                SourceFile(content=remote, path=from_label),
            )
        except RewriteFailed as exc:
            decider.notify(str(exc))
            continue
        if formatter is not None and dest_path is not None:
            rewritten = formatter.format(rewritten, dest_path)
        candidate = rewritten


def update_blocks(
    blocks: Sequence[Block],
    *,
    config: ProjectConfig,
    cwd: Union[str, Path],
    decider: DecisionProvider,
    rewriter: Rewriter | None = None,
    formatter: Formatter | None = None,
    installer: Installer | None = None,
    store: SecretStore | None = None,
    fetch: Fetcher | None = None,
    version: str | None = None,
) -> UpdateResult:
    """Diff each block's files against upstream and apply accepted changes.

    Blocks and their files are handled one at a time; a block's remote files
    are fetched up front. Nothing is written until a file is accepted, and
    files written before a failure or cancellation stay written.
    """
    if version is None:
        from .. import __version__ as version

    root = Path(cwd).resolve()
    resolved = resolve_paths(config.paths, root)
    fetcher: Fetcher = fetch or (lambda state, path: fetch_raw(state, path, store=store))
    result = UpdateResult()
    dependencies: list[str] = []
    dev_dependencies: list[str] = []

    for block in blocks:
        state = block.source
        if state is None:
            raise ValueError(f"{block.specifier} was not fetched from a registry")

        planned = plan_block_files(block, resolved, include_tests=config.include_tests)
        _log(f"{block.specifier}: fetching {len(planned)} files from {state.url}")
        remotes = map_bounded(
            lambda item: fetcher(state, item.source_path),
            planned,
            max_workers=get_fetch_jobs(),
        )
        watermark = watermark_lines(version, state.url) if config.watermark else None

        for item, remote in zip(planned, remotes):
            candidate = transform_remote_content(
                remote,
                block=block,
                dest_path=item.dest_path,
                resolved_paths=resolved,
                watermark=watermark,
            )
            if formatter is not None:
                candidate = formatter.format(candidate, item.dest_path)

            local_exists, local = _read_local(item.dest_path)
            decision, content = review_file(
                block=block.specifier,
                local=local,
                local_exists=local_exists,
                remote=candidate,
                from_label=join_url(state.url, item.source_path),
                to_label=os.path.relpath(item.dest_path, root).replace(os.sep, "/"),
                decider=decider,
                rewriter=rewriter,
                formatter=formatter,
                dest_path=item.dest_path,
            )

            if decision is None:
                status = UNCHANGED
            elif decision is Decision.ACCEPT:
                _write(item.dest_path, content)
                status = WRITTEN
            else:
                status = REJECTED
            _log(f"{item.dest_path}: {status}")
            result.files.append(FileOutcome(block.specifier, item.dest_path, status))

        dependencies.extend(block.dependencies)
        dev_dependencies.extend(block.dev_dependencies)
        if config.include_tests and block.tests:
            dev_dependencies.append(TEST_RUNNER)

    declared = declared_dependencies(root)
    result.dependencies = filter_installed(dependencies, declared)
    result.dev_dependencies = filter_installed(dev_dependencies, declared)

    if installer is not None and (result.dependencies or result.dev_dependencies):
        if decider.confirm_install(result.dependencies, result.dev_dependencies):
            installer.install(result.dependencies, result.dev_dependencies, root)
            result.installed = True

    return result
