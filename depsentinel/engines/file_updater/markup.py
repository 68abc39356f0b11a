"""Markup tokenizer that keeps exact character spans.

XML project files are never parsed into a tree and written back. The
tokenizer reports where every tag starts and ends, and
:func:`iter_elements` pairs tags into elements so callers can edit one
attribute value or one element's text in place.

Nesting policy: every wanted element is reported, including wanted
elements nested inside other wanted elements. Results are in document
order of their start tags, so a parent comes before its children.
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterator
from dataclasses import dataclass
from typing import Literal

from depsentinel.engines.file_updater.spans import Span

_TOKEN_RE = re.compile(
    r"<!--.*?-->"
    r"|<!\[CDATA\[.*?\]\]>"
    r"|<\?.*?\?>"
    r"|<!(?!--)[^>]*>"
    r"|<(?P<close>/)?(?P<name>[A-Za-z_][\w.\-]*(?::[A-Za-z_][\w.\-]*)?)"
    r"(?P<attrs>(?:[^<>\"']|\"[^\"]*\"|'[^']*')*?)(?P<selfclose>/)?>",
    re.S,
)

_ATTR_RE = re.compile(r"(?P<name>[\w.:\-]+)\s*=\s*(?:\"(?P<dq>[^\"]*)\"|'(?P<sq>[^']*)')")


@dataclass(frozen=True)
class Tag:
    kind: Literal["start", "end", "empty"]
    name: str
    span: Span
    attrs: Span


@dataclass(frozen=True)
class Element:
    name: str
    span: Span
    start_tag: Tag
    inner: Span | None
    depth: int


@dataclass(frozen=True)
class Attribute:
    name: str
    value: str
    value_span: Span


def _local_name(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def tokenize(content: str, start: int = 0, end: int | None = None) -> Iterator[Tag]:
    """Yield start, end and self-closing tags; comments and CDATA are skipped."""
    end = len(content) if end is None else end
    for match in _TOKEN_RE.finditer(content, start, end):
        if match.group("name") is None:
            continue
        if match.group("close"):
            kind = "end"
        elif match.group("selfclose"):
            kind = "empty"
        else:
            kind = "start"
        yield Tag(
            kind=kind,
            name=_local_name(match.group("name")),
            span=Span(match.start(), match.end()),
            attrs=Span(match.start("attrs"), match.end("attrs")),
        )


def iter_elements(
    content: str,
    names: Collection[str] | None = None,
    *,
    start: int = 0,
    end: int | None = None,
    case_insensitive: bool = False,
) -> list[Element]:
    """Pair tags into elements, keeping those named in *names* (all if None).

    ``depth`` is relative to the scanned region. An end tag closes the
    nearest open tag with the same name, and any tags left open inside
    it are dropped. End tags with no open match are ignored.
    """

    def norm(value: str) -> str:
        return value.lower() if case_insensitive else value

    wanted = None if names is None else {norm(n) for n in names}
    stack: list[Tag] = []
    found: list[Element] = []

    for tag in tokenize(content, start, end):
        is_wanted = wanted is None or norm(tag.name) in wanted
        if tag.kind == "empty":
            if is_wanted:
                found.append(Element(tag.name, tag.span, tag, None, len(stack)))
        elif tag.kind == "start":
            stack.append(tag)
        else:
            for index in range(len(stack) - 1, -1, -1):
                if stack[index].name == tag.name:
                    opener = stack[index]
                    del stack[index:]
                    if is_wanted:
                        found.append(
                            Element(
                                tag.name,
                                Span(opener.span.start, tag.span.end),
                                opener,
                                Span(opener.span.end, tag.span.start),
                                index,
                            )
                        )
                    break

    found.sort(key=lambda el: el.span.start)
    return found


def attributes(content: str, tag: Tag) -> list[Attribute]:
    result: list[Attribute] = []
    for match in _ATTR_RE.finditer(content, tag.attrs.start, tag.attrs.end):
        group = "dq" if match.group("dq") is not None else "sq"
        result.append(
            Attribute(
                name=_local_name(match.group("name")),
                value=match.group(group),
                value_span=Span(match.start(group), match.end(group)),
            )
        )
    return result


def child_elements(content: str, element: Element, names: Collection[str]) -> list[Element]:
    """Direct children of *element* named in *names*."""
    if element.inner is None:
        return []
    return [
        child
        for child in iter_elements(content, names, start=element.inner.start, end=element.inner.end)
        if child.depth == 0
    ]


def stripped_span(content: str, span: Span) -> Span:
    """Shrink *span* so it excludes leading and trailing whitespace."""
    text = span.text(content)
    leading = len(text) - len(text.lstrip())
    trailing = len(text) - len(text.rstrip())
    if leading == len(text):
        return Span(span.start, span.start)
    return Span(span.start + leading, span.end - trailing)


def attribute_insert_point(content: str, tag: Tag) -> int:
    """Offset just after the last attribute of *tag*."""
    attrs = tag.attrs.text(content)
    return tag.attrs.start + len(attrs.rstrip())
