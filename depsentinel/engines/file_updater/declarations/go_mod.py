"""Line declarations: go.mod ``require`` directives."""

from __future__ import annotations

import re

from depsentinel.engines.file_updater.registry import register_syntax
from depsentinel.engines.file_updater.spans import Declaration, Span, expect_single, replace_span
from depsentinel.models import DependencyFile, Requirement

# Single require: require github.com/foo/bar v1.2.3
_SINGLE_RE = re.compile(r"^[ \t]*require[ \t]+(?P<module>[^\s(]\S*)[ \t]+(?P<version>\S+)")

# Inside require block: github.com/foo/bar v1.2.3
_BLOCK_RE = re.compile(r"^[ \t]*(?P<module>[^\s/)]\S*)[ \t]+(?P<version>v\S+)")

_BLOCK_OPEN_RE = re.compile(r"^[ \t]*require[ \t]*\(")


def _strip_comment(line: str) -> str:
    index = line.find("//")
    return line if index == -1 else line[:index]


class GoModSyntax:
    package_manager = "go_modules"
    file_patterns = ["go.mod"]
    lockfile_names = ["go.sum"]

    def declarations(self, content: str) -> list[Declaration]:
        result: list[Declaration] = []
        in_require_block = False
        offset = 0
        for raw_line in content.splitlines(keepends=True):
            line_start = offset
            offset += len(raw_line)
            line = _strip_comment(raw_line.rstrip("\r\n"))

            if _BLOCK_OPEN_RE.match(line):
                in_require_block = True
                continue
            if in_require_block and line.strip() == ")":
                in_require_block = False
                continue

            match = (_BLOCK_RE if in_require_block else _SINGLE_RE).match(line)
            if match is None:
                continue
            result.append(
                Declaration(
                    name=match.group("module"),
                    requirement=match.group("version"),
                    span=Span(line_start, line_start + len(line.rstrip())),
                    requirement_span=Span(
                        line_start + match.start("version"), line_start + match.end("version")
                    ),
                    kind="block" if in_require_block else "single",
                )
            )
        return result

    def find_declarations(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> list[Declaration]:
        return [
            decl
            for decl in self.declarations(file.content)
            if decl.name == dependency_name and decl.requirement == requirement.requirement
        ]

    def update_declaration(
        self,
        file: DependencyFile,
        dependency_name: str,
        old: Requirement,
        new: Requirement,
    ) -> str:
        if old.requirement == new.requirement:
            return file.content
        if new.requirement is None:
            raise ValueError(f"cannot remove the version of {dependency_name} in {file.name}")
        decl = expect_single(
            self.find_declarations(file, dependency_name, old), dependency_name, file.name
        )
        return replace_span(file.content, decl.requirement_span, decl.requirement, new.requirement)

    def remove_git_source(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> str:
        # Module versions are always resolved through the module proxy.
        return file.content


register_syntax(GoModSyntax())
