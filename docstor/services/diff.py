"""Line-oriented diff between two revision bodies."""

from dataclasses import dataclass, field
from difflib import SequenceMatcher
from enum import Enum
from typing import Optional


class LineType(str, Enum):
    """Kind of a single diff line."""

    EQUAL = "equal"
    INSERT = "insert"
    DELETE = "delete"


# Hunk names used when consecutive lines are grouped for display
_HUNK_KINDS = {
    LineType.EQUAL: "context",
    LineType.INSERT: "inserted",
    LineType.DELETE: "deleted",
}


@dataclass(frozen=True)
class DiffLine:
    """One line of the edit script. Line numbers are 1-based; None when not applicable."""

    type: LineType
    content: str
    old_line_num: Optional[int] = None
    new_line_num: Optional[int] = None


@dataclass(frozen=True)
class DiffHunk:
    """A run of consecutive lines sharing one kind: context, inserted or deleted."""

    kind: str
    lines: tuple[DiffLine, ...]


@dataclass
class DiffResult:
    """Edit script turning ``old_text`` into ``new_text``."""

    old_text: str
    new_text: str
    lines: list[DiffLine] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0

    @property
    def is_identical(self) -> bool:
        return self.additions == 0 and self.deletions == 0

    def hunks(self) -> list[DiffHunk]:
        """Group consecutive lines of the same type."""
        groups: list[DiffHunk] = []
        run: list[DiffLine] = []
        for line in self.lines:
            if run and run[-1].type != line.type:
                groups.append(DiffHunk(_HUNK_KINDS[run[0].type], tuple(run)))
                run = []
            run.append(line)
        if run:
            groups.append(DiffHunk(_HUNK_KINDS[run[0].type], tuple(run)))
        return groups


def _split_lines(text: str) -> list[str]:
    # Only "\n" ends a line; a trailing newline leaves an empty last line
    if not text:
        return []
    return text.split("\n")


def compute_diff(old_text: str, new_text: str) -> DiffResult:
    """
    Compute a line-by-line diff between two texts.

    Lines are separated by "\\n" only, so a trailing newline counts as a
    change. Within a replaced block, deletions are emitted before insertions.
    The result is a pure function of the inputs: no junk heuristics, no I/O.

    Args:
        old_text: Body of the older revision
        new_text: Body of the newer revision

    Returns:
        DiffResult with per-line entries and addition/deletion counts
    """
    old_lines = _split_lines(old_text)
    new_lines = _split_lines(new_text)
    result = DiffResult(old_text=old_text, new_text=new_text)

    matcher = SequenceMatcher(None, old_lines, new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for offset in range(i2 - i1):
                result.lines.append(
                    DiffLine(
                        LineType.EQUAL,
                        old_lines[i1 + offset],
                        old_line_num=i1 + offset + 1,
                        new_line_num=j1 + offset + 1,
                    )
                )
            continue

        if tag in ("delete", "replace"):
            for index in range(i1, i2):
                result.lines.append(
                    DiffLine(LineType.DELETE, old_lines[index], old_line_num=index + 1)
                )
                result.deletions += 1
        if tag in ("insert", "replace"):
            for index in range(j1, j2):
                result.lines.append(
                    DiffLine(LineType.INSERT, new_lines[index], new_line_num=index + 1)
                )
                result.additions += 1

    return result
