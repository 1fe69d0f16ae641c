from __future__ import annotations

import difflib
from dataclasses import dataclass
from typing import Callable

import click

EQUAL = "equal"
ADDED = "added"
REMOVED = "removed"


@dataclass(frozen=True)
class Change:
    kind: str
    lines: tuple[str, ...]


@dataclass(frozen=True)
class FileDiff:
    changes: tuple[Change, ...]
    additions: int
    deletions: int
    changed_lines: int

    @property
    def has_changes(self) -> bool:
        return self.additions > 0 or self.deletions > 0


@dataclass(frozen=True)
class DiffLine:
    kind: str
    text: str
    number: int


@dataclass(frozen=True)
class Collapsed:
    count: int


def diff_lines(old: str, new: str) -> FileDiff:
    a = old.splitlines(keepends=True)
    b = new.splitlines(keepends=True)
    matcher = difflib.SequenceMatcher(a=a, b=b, autojunk=False)

    changes: list[Change] = []
    additions = deletions = changed = 0
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            changes.append(Change(EQUAL, tuple(a[i1:i2])))
            continue
        if tag in ("delete", "replace"):
            changes.append(Change(REMOVED, tuple(a[i1:i2])))
            deletions += i2 - i1
        if tag in ("insert", "replace"):
            changes.append(Change(ADDED, tuple(b[j1:j2])))
            additions += j2 - j1
        changed += max(i2 - i1, j2 - j1)

    return FileDiff(
        changes=tuple(changes),
        additions=additions,
        deletions=deletions,
        changed_lines=changed,
    )


def segment(
    diff: FileDiff, *, max_unchanged: int = 3, expand: bool = False
) -> list[DiffLine | Collapsed]:
    """Flatten a diff into numbered lines, collapsing long unchanged runs.

    Kept context sits next to the surrounding changes: a run between two
    changes keeps lines at both ends, a leading run keeps its tail and a
    trailing run keeps its head.
    """
    out: list[DiffLine | Collapsed] = []
    old_no = new_no = 1
    last = len(diff.changes) - 1

    for index, change in enumerate(diff.changes):
        if change.kind == REMOVED:
            for line in change.lines:
                out.append(DiffLine(REMOVED, line, old_no))
                old_no += 1
            continue
        if change.kind == ADDED:
            for line in change.lines:
                out.append(DiffLine(ADDED, line, new_no))
                new_no += 1
            continue

        count = len(change.lines)
        head = tail = count
        if not expand and count > max_unchanged:
            has_prev, has_next = index > 0, index < last
            if has_prev and has_next:
                head, tail = (max_unchanged + 1) // 2, max_unchanged // 2
            elif has_prev:
                head, tail = max_unchanged, 0
            elif has_next:
                head, tail = 0, max_unchanged
            else:
                head, tail = 0, 0

        if head + tail >= count:
            shown = list(enumerate(change.lines))
            hidden = 0
        else:
            shown = list(enumerate(change.lines[:head]))
            hidden = count - head - tail
            tail_start = count - tail
            tail_lines = list(enumerate(change.lines[tail_start:], start=tail_start))

        for offset, line in shown:
            out.append(DiffLine(EQUAL, line, new_no + offset))
        if hidden:
            out.append(Collapsed(hidden))
            for offset, line in tail_lines:
                out.append(DiffLine(EQUAL, line, new_no + offset))

        old_no += count
        new_no += count

    return out


def format_diff(
    diff: FileDiff,
    *,
    from_label: str,
    to_label: str,
    max_unchanged: int = 3,
    expand: bool = False,
    prefix: str = "",
    style: Callable[..., str] = click.style,
) -> str:
    if not diff.has_changes:
        return (
            f"{prefix}{style(from_label, fg='cyan')} → {style(to_label, fg='bright_black')} "
            f"{style('(unchanged)', fg='bright_black')}\n"
        )

    total = diff.changed_lines
    lines = [
        f"{prefix}{style(from_label, fg='cyan')} → {style(to_label, fg='bright_black')} "
        f"({total} change{'' if total == 1 else 's'})",
        prefix,
    ]
    entries = segment(diff, max_unchanged=max_unchanged, expand=expand)
    width = len(str(max((e.number for e in entries if isinstance(e, DiffLine)), default=1)))

    for entry in entries:
        if isinstance(entry, Collapsed):
            lines.append(
                f"{prefix}{style(f'+ {entry.count} more unchanged (-E to expand)', fg='bright_black')}"
            )
            continue
        text = entry.text.rstrip("\r\n")
        number = style(str(entry.number).rjust(width), fg="bright_black")
        if entry.kind == ADDED:
            lines.append(f"{prefix}{number} {style('+ ' + text, fg='green')}")
        elif entry.kind == REMOVED:
            lines.append(f"{prefix}{number} {style('- ' + text, fg='red')}")
        else:
            lines.append(f"{prefix}{number}   {text}")

    return "\n".join(lines) + "\n"
