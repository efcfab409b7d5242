"""
Text edits computed against an immutable source snapshot.

All edits for one file are collected first and rendered in a single pass,
so no edit ever observes the effect of another one.
"""

from dataclasses import dataclass

from tenancy.exceptions import EditConflictError


@dataclass(frozen=True)
class TextEdit:
    start: int
    end: int
    replacement: str

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid edit span {self.start}-{self.end}")


def _ordered(edits: list[TextEdit]) -> list[TextEdit]:
    # Stable ordering: insertions at the same offset keep their creation order.
    ordered = [edit for _, edit in sorted(enumerate(edits), key=lambda p: (p[1].start, p[1].end, p[0]))]
    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            raise EditConflictError((previous.start, previous.end), (current.start, current.end))
    return ordered


def apply_edits(text: str, edits: list[TextEdit]) -> str:
    """Render ``text`` with every edit applied in one forward pass."""
    if not edits:
        return text
    pieces = []
    cursor = 0
    for edit in _ordered(edits):
        pieces.append(text[cursor : edit.start])
        pieces.append(edit.replacement)
        cursor = edit.end
    pieces.append(text[cursor:])
    return "".join(pieces)


def apply_edits_descending(text: str, edits: list[TextEdit]) -> str:
    """Apply edits one at a time from the highest offset down."""
    for edit in reversed(_ordered(edits)):
        text = text[: edit.start] + edit.replacement + text[edit.end :]
    return text


def line_start(text: str, pos: int) -> int:
    return text.rfind("\n", 0, pos) + 1


def indentation_at(text: str, pos: int) -> str:
    """Leading whitespace of the line containing ``pos``."""
    start = line_start(text, pos)
    end = start
    while end < len(text) and text[end] in " \t":
        end += 1
    return text[start:end]


def first_on_line(text: str, pos: int) -> bool:
    return text[line_start(text, pos) : pos].strip() == ""


def detect_newline(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def detect_indent_unit(text: str, default: str = "  ") -> str:
    for line in text.splitlines():
        if line.startswith("\t"):
            return "\t"
    return default
