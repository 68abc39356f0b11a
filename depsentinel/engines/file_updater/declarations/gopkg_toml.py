"""Table declarations: dep's Gopkg.toml ``[[constraint]]`` and ``[[override]]`` tables."""

from __future__ import annotations

import re
import tomllib
from dataclasses import dataclass

import structlog

from depsentinel.engines.file_updater.registry import register_syntax
from depsentinel.engines.file_updater.spans import Declaration, Edit, Span, apply_edits
from depsentinel.exceptions import AmbiguousDeclaration
from depsentinel.models import DependencyFile, GitSource, Requirement

log = structlog.get_logger("depsentinel.engine")

_HEADER_RE = re.compile(r"^[ \t]*\[\[?\s*(?P<table>[\w.\-]+)\s*\]\]?[ \t]*(?:#.*)?$", re.M)
_KEY_LINE_RE = re.compile(
    r"^(?P<indent>[ \t]*)(?P<key>name|version|branch|revision|source)[ \t]*=[ \t]*"
    r"\"(?P<value>[^\"\n]*)\"[^\n]*(?:\n|$)",
    re.M,
)
_DECLARATION_TABLES = ("constraint", "override")
_GIT_KEYS = ("branch", "revision")


@dataclass(frozen=True)
class _KeyLine:
    key: str
    value: str
    line: Span
    value_span: Span
    indent: str


@dataclass(frozen=True)
class _Table:
    kind: str
    span: Span
    keys: dict[str, _KeyLine]


def _tables(content: str) -> list[_Table]:
    headers = list(_HEADER_RE.finditer(content))
    tables: list[_Table] = []
    for index, header in enumerate(headers):
        kind = header.group("table")
        if kind not in _DECLARATION_TABLES:
            continue
        end = headers[index + 1].start() if index + 1 < len(headers) else len(content)
        body = content[header.end() : end]
        # Parsed only to validate; malformed tables are skipped, not patched.
        try:
            tomllib.loads(body)
        except tomllib.TOMLDecodeError:
            log.warning("gopkg.invalid_table", table=kind, offset=header.start())
            continue
        keys: dict[str, _KeyLine] = {}
        for match in _KEY_LINE_RE.finditer(content, header.end(), end):
            keys.setdefault(
                match.group("key"),
                _KeyLine(
                    key=match.group("key"),
                    value=match.group("value"),
                    line=Span(match.start(), match.end()),
                    value_span=Span(match.start("value"), match.end("value")),
                    indent=match.group("indent"),
                ),
            )
        if "name" in keys:
            tables.append(_Table(kind=kind, span=Span(header.start(), end), keys=keys))
    return tables


def _declared_requirement(table: _Table, source: object) -> str | None:
    version = table.keys.get("version")
    if version is None:
        return None
    # A tag pin is written as `version = "<tag>"` but carries no requirement.
    if isinstance(source, GitSource) and version.value in (source.ref, source.branch):
        return None
    return version.value


class GopkgTomlSyntax:
    package_manager = "dep"
    file_patterns = ["Gopkg.toml"]
    lockfile_names = ["Gopkg.lock"]

    def _matching_tables(
        self, content: str, dependency_name: str, requirement: Requirement
    ) -> list[_Table]:
        return [
            table
            for table in _tables(content)
            if table.keys["name"].value == dependency_name
            and _declared_requirement(table, requirement.source) == requirement.requirement
        ]

    def find_declarations(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> list[Declaration]:
        result = []
        for table in self._matching_tables(file.content, dependency_name, requirement):
            version = table.keys.get("version")
            result.append(
                Declaration(
                    name=dependency_name,
                    requirement=_declared_requirement(table, requirement.source),
                    span=table.span,
                    requirement_span=version.value_span if version else None,
                    insert_at=table.keys["name"].line.end,
                    kind=table.kind,
                )
            )
        return result

    def _single_table(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> _Table:
        tables = self._matching_tables(file.content, dependency_name, requirement)
        if len(tables) != 1:
            raise AmbiguousDeclaration(dependency_name, file.name, len(tables))
        return tables[0]

    def update_declaration(
        self,
        file: DependencyFile,
        dependency_name: str,
        old: Requirement,
        new: Requirement,
    ) -> str:
        if old.requirement == new.requirement and old.source == new.source:
            return file.content
        table = self._single_table(file, dependency_name, old)
        edits: list[Edit] = []

        if isinstance(new.source, GitSource):
            if not isinstance(old.source, GitSource):
                raise ValueError(f"cannot switch {dependency_name} to a git source")
            old_ref = old.source.ref or old.source.branch
            new_ref = new.source.ref or new.source.branch
            if old_ref != new_ref:
                for key in ("version", *_GIT_KEYS):
                    line = table.keys.get(key)
                    if line is not None and line.value == old_ref:
                        edits.append(Edit(line.value_span.start, line.value_span.end, new_ref or ""))
                        break
            return apply_edits(file.content, edits)

        version = table.keys.get("version")
        if isinstance(old.source, GitSource):
            for key in _GIT_KEYS:
                line = table.keys.get(key)
                if line is not None:
                    edits.append(Edit(line.line.start, line.line.end, ""))
            # A tag pin in the version key is replaced by the new requirement below.

        if new.requirement is None:
            if version is not None:
                edits.append(Edit(version.line.start, version.line.end, ""))
        elif version is not None:
            edits.append(Edit(version.value_span.start, version.value_span.end, new.requirement))
        else:
            name_line = table.keys["name"]
            text = f'{name_line.indent}version = "{new.requirement}"\n'
            if not file.content[name_line.line.start : name_line.line.end].endswith("\n"):
                text = "\n" + text.rstrip("\n")
            edits.append(Edit(name_line.line.end, name_line.line.end, text))
        return apply_edits(file.content, edits)

    def remove_git_source(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> str:
        table = self._single_table(file, dependency_name, requirement)
        edits = [
            Edit(table.keys[key].line.start, table.keys[key].line.end, "")
            for key in _GIT_KEYS
            if key in table.keys
        ]
        return apply_edits(file.content, edits)


register_syntax(GopkgTomlSyntax())
