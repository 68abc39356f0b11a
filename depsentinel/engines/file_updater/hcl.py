"""Brace-aware scanner for HCL blocks and object values.

Finds every ``header { ... }`` construct with exact spans: blocks like
``module "vpc" { }`` and object attributes like ``aws = { }`` inside
``required_providers``. Strings (including ``${...}`` interpolation),
comments and heredocs are skipped, so braces inside them do not count.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from depsentinel.engines.file_updater.spans import Span

_HEREDOC_RE = re.compile(r"<<-?([A-Za-z_]\w*)[ \t]*\n")


@dataclass(frozen=True)
class Block:
    header: str
    span: Span
    body: Span
    depth: int


def _skip_string(content: str, index: int) -> int:
    """Return the offset just past the string literal opening at *index*."""
    length = len(content)
    pos = index + 1
    interpolation = 0
    while pos < length:
        ch = content[pos]
        if ch == "\\":
            pos += 2
            continue
        if content.startswith(("${", "%{"), pos):
            interpolation += 1
            pos += 2
            continue
        if ch == "}" and interpolation:
            interpolation -= 1
        elif ch == '"' and not interpolation:
            return pos + 1
        elif ch == "\n" and not interpolation:
            # Unterminated on this line; stop here rather than swallow the file.
            return pos
        pos += 1
    return length


def _skip_heredoc(content: str, index: int) -> int | None:
    match = _HEREDOC_RE.match(content, index)
    if match is None:
        return None
    terminator = re.compile(rf"^[ \t]*{re.escape(match.group(1))}[ \t]*$", re.M)
    end = terminator.search(content, match.end())
    return len(content) if end is None else end.end()


def _header_start(content: str, brace: int) -> int:
    line_start = content.rfind("\n", 0, brace) + 1
    segment = content[line_start:brace]
    # One-line objects: `{ aws = { ... } }` puts several openers on a line.
    cut = max(segment.rfind("{"), segment.rfind(","))
    start = line_start + cut + 1
    while start < brace and content[start] in " \t":
        start += 1
    return start


def scan_blocks(content: str) -> list[Block]:
    """Every block in *content*, outer blocks before the blocks they contain."""
    blocks: list[Block] = []
    stack: list[tuple[int, int]] = []
    length = len(content)
    pos = 0
    while pos < length:
        ch = content[pos]
        if ch == '"':
            pos = _skip_string(content, pos)
            continue
        if ch == "#" or content.startswith("//", pos):
            newline = content.find("\n", pos)
            pos = length if newline == -1 else newline
            continue
        if content.startswith("/*", pos):
            close = content.find("*/", pos + 2)
            pos = length if close == -1 else close + 2
            continue
        if content.startswith("<<", pos):
            skipped = _skip_heredoc(content, pos)
            if skipped is not None:
                pos = skipped
                continue
        if ch == "{":
            stack.append((_header_start(content, pos), pos))
        elif ch == "}" and stack:
            header_start, opener = stack.pop()
            blocks.append(
                Block(
                    header=content[header_start:opener].strip(),
                    span=Span(header_start, pos + 1),
                    body=Span(opener + 1, pos),
                    depth=len(stack),
                )
            )
        pos += 1
    blocks.sort(key=lambda b: (b.span.start, b.depth))
    return blocks


def children(blocks: list[Block], parent: Block) -> list[Block]:
    return [
        b
        for b in blocks
        if b.depth == parent.depth + 1
        and parent.body.start <= b.span.start
        and b.span.end <= parent.body.end
    ]


def own_matches(
    content: str, blocks: list[Block], block: Block, pattern: re.Pattern[str]
) -> list[re.Match[str]]:
    """Matches of *pattern* in *block*'s body, excluding nested blocks."""
    nested = children(blocks, block)
    return [
        m
        for m in pattern.finditer(content, block.body.start, block.body.end)
        if not any(child.span.start <= m.start() < child.span.end for child in nested)
    ]


def attribute_pattern(key: str) -> re.Pattern[str]:
    """``key = "value"``, with the value in group ``value``."""
    return re.compile(rf'(?<![\w.\-"]){re.escape(key)}\s*=\s*"(?P<value>[^"\n]*)"')
