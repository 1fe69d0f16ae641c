from __future__ import annotations

from blockrepo.update.diff import (
    ADDED,
    EQUAL,
    REMOVED,
    Collapsed,
    DiffLine,
    diff_lines,
    format_diff,
    segment,
)


def _plain(text, **kwargs):  # type: ignore[no-untyped-def]
    return text


def test_single_line_replacement_counts_once() -> None:
    diff = diff_lines("a\nb\n", "a\nc\n")

    assert diff.changed_lines == 1
    assert (diff.additions, diff.deletions) == (1, 1)
    assert [c.kind for c in diff.changes] == [EQUAL, REMOVED, ADDED]
    assert diff.has_changes


def test_identical_content_has_no_changes() -> None:
    diff = diff_lines("a\nb\n", "a\nb\n")
    assert not diff.has_changes
    assert diff.changed_lines == 0


def test_new_file_is_all_additions() -> None:
    diff = diff_lines("", "x\ny\n")
    assert diff.additions == 2
    assert diff.changed_lines == 2


def test_unchanged_run_between_changes_keeps_both_edges() -> None:
    old = "start\n" + "".join(f"line{i}\n" for i in range(10)) + "end\n"
    new = "START\n" + "".join(f"line{i}\n" for i in range(10)) + "END\n"

    entries = segment(diff_lines(old, new), max_unchanged=3)

    collapsed = [e for e in entries if isinstance(e, Collapsed)]
    assert collapsed == [Collapsed(7)]
    equal = [e.text for e in entries if isinstance(e, DiffLine) and e.kind == EQUAL]
    assert equal == ["line0\n", "line1\n", "line9\n"]


def test_leading_and_trailing_runs_hug_the_change() -> None:
    lines = [f"l{i}\n" for i in range(10)]
    old = "".join(lines)
    new = "".join(lines[:5] + ["changed\n"] + lines[6:])

    entries = segment(diff_lines(old, new), max_unchanged=2)

    kinds = [
        "..." if isinstance(e, Collapsed) else (e.kind, e.text.strip()) for e in entries
    ]
    assert kinds == [
        "...",
        (EQUAL, "l3"),
        (EQUAL, "l4"),
        (REMOVED, "l5"),
        (ADDED, "changed"),
        (EQUAL, "l6"),
        (EQUAL, "l7"),
        "...",
    ]


def test_expand_shows_everything() -> None:
    lines = [f"l{i}\n" for i in range(10)]
    diff = diff_lines("".join(lines), "".join(lines + ["extra\n"]))

    entries = segment(diff, max_unchanged=3, expand=True)

    assert not any(isinstance(e, Collapsed) for e in entries)
    assert len(entries) == 11


def test_line_numbers_follow_new_file() -> None:
    entries = segment(diff_lines("a\nb\nc\n", "a\nx\ny\nc\n"))

    numbers = [(e.kind, e.number) for e in entries if isinstance(e, DiffLine)]
    assert numbers == [(EQUAL, 1), (REMOVED, 2), (ADDED, 2), (ADDED, 3), (EQUAL, 4)]


def test_format_diff_renders_header_and_markers() -> None:
    text = format_diff(
        diff_lines("a\nb\n", "a\nc\n"),
        from_label="github/o/r/utils/math.ts",
        to_label="src/utils/math.ts",
        style=_plain,
    )

    lines = text.splitlines()
    assert lines[0] == "github/o/r/utils/math.ts → src/utils/math.ts (1 change)"
    assert "1   a" in lines
    assert "2 - b" in lines
    assert "2 + c" in lines


def test_format_diff_unchanged_and_collapsed() -> None:
    assert format_diff(
        diff_lines("a\n", "a\n"), from_label="x", to_label="y", style=_plain
    ) == "x → y (unchanged)\n"

    body = "".join(f"l{i}\n" for i in range(8))
    text = format_diff(
        diff_lines(body, body + "tail\n"), from_label="x", to_label="y", style=_plain
    )
    assert "+ 5 more unchanged (-E to expand)" in text
