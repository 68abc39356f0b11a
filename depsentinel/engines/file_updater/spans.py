"""Located declarations and literal span replacement.

Every edit this package makes is a replacement of an exact character
span in the original text. Nothing is ever re-serialised from a parsed
model.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from depsentinel.exceptions import AmbiguousDeclaration


@dataclass(frozen=True)
class Span:
    start: int
    end: int

    def text(self, content: str) -> str:
        return content[self.start : self.end]


@dataclass(frozen=True)
class Declaration:
    """One located declaration.

    ``span`` covers the whole construct. ``requirement_span`` covers only
    the requirement value, or is None when the declaration has no
    requirement. ``insert_at`` is where a requirement would be added in
    that case.
    """

    name: str
    requirement: str | None
    span: Span
    requirement_span: Span | None = None
    insert_at: int | None = None
    kind: str = "default"


@dataclass(frozen=True)
class Edit:
    start: int
    end: int
    replacement: str


def apply_edits(content: str, edits: Sequence[Edit]) -> str:
    """Apply non-overlapping edits, right to left so offsets stay valid."""
    ordered = sorted(edits, key=lambda e: e.start, reverse=True)
    for earlier, later in zip(ordered[1:], ordered):
        if earlier.end > later.start:
            raise ValueError("overlapping edits")
    for edit in ordered:
        content = content[: edit.start] + edit.replacement + content[edit.end :]
    return content


def replace_span(content: str, span: Span, expected: str, replacement: str) -> str:
    """Replace *span* in *content*, asserting it still holds *expected*."""
    actual = span.text(content)
    if actual != expected:
        raise ValueError(f"span holds {actual!r}, expected {expected!r}")
    return content[: span.start] + replacement + content[span.end :]


def expect_single(
    matches: Sequence[Declaration], dependency_name: str, file_name: str | None
) -> Declaration:
    if len(matches) != 1:
        raise AmbiguousDeclaration(dependency_name, file_name, len(matches))
    return matches[0]


def line_bounds(content: str, index: int) -> Span:
    """The span of the line holding *index*, newline excluded."""
    start = content.rfind("\n", 0, index) + 1
    end = content.find("\n", index)
    return Span(start, len(content) if end == -1 else end)


def indentation_at(content: str, index: int) -> str:
    bounds = line_bounds(content, index)
    line = bounds.text(content)
    return line[: len(line) - len(line.lstrip())]
