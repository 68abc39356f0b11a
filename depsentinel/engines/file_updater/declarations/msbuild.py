"""Markup declarations: MSBuild project files (NuGet PackageReference & co)."""

from __future__ import annotations

from depsentinel.engines.file_updater.markup import (
    Element,
    attribute_insert_point,
    attributes,
    child_elements,
    iter_elements,
    stripped_span,
)
from depsentinel.engines.file_updater.registry import register_syntax
from depsentinel.engines.file_updater.spans import Declaration, Span, expect_single, replace_span
from depsentinel.models import DependencyFile, Requirement

DECLARATION_ELEMENTS = (
    "PackageReference",
    "GlobalPackageReference",
    "PackageVersion",
    "Dependency",
    "DevelopmentDependency",
)

_NAME_KEYS = ("Include", "Update")
_VERSION_KEYS = ("Version", "version")


def _lookup(content: str, element: Element, key: str) -> tuple[str, Span] | None:
    """Value of *key* as an attribute, falling back to a direct child element."""
    for attr in attributes(content, element.start_tag):
        if attr.name == key:
            span = stripped_span(content, attr.value_span)
            return span.text(content), span
    for child in child_elements(content, element, [key]):
        if child.inner is not None:
            span = stripped_span(content, child.inner)
            return span.text(content), span
    return None


class MSBuildProjectSyntax:
    package_manager = "nuget"
    file_patterns = ["*.csproj", "*.vbproj", "*.fsproj", "*.nuproj", "*.proj", "*.props", "*.targets"]
    lockfile_names: list[str] = []

    def declarations(self, content: str) -> list[Declaration]:
        """Every package declaration in *content*, nested ones included."""
        result: list[Declaration] = []
        for element in iter_elements(content, DECLARATION_ELEMENTS):
            name = None
            for key in _NAME_KEYS:
                found = _lookup(content, element, key)
                if found is not None and found[0]:
                    name = found[0]
                    break
            if name is None:
                continue

            requirement: str | None = None
            requirement_span: Span | None = None
            for key in _VERSION_KEYS:
                found = _lookup(content, element, key)
                if found is not None:
                    requirement, requirement_span = found
                    break
            if requirement == "":
                requirement = None

            result.append(
                Declaration(
                    name=name,
                    requirement=requirement,
                    span=element.span,
                    requirement_span=requirement_span,
                    insert_at=attribute_insert_point(content, element.start_tag),
                    kind=element.name,
                )
            )
        return result

    def find_declarations(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> list[Declaration]:
        # NuGet package ids are case-insensitive; the requirement must match exactly.
        return [
            decl
            for decl in self.declarations(file.content)
            if decl.name.lower() == dependency_name.lower()
            and decl.requirement == requirement.requirement
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
        if decl.requirement_span is not None and decl.requirement is not None:
            return replace_span(file.content, decl.requirement_span, decl.requirement, new.requirement)
        # An empty Version="" keeps its quotes; fill them in place.
        if decl.requirement_span is not None:
            return replace_span(file.content, decl.requirement_span, "", new.requirement)
        at = decl.insert_at
        return file.content[:at] + f' Version="{new.requirement}"' + file.content[at:]

    def remove_git_source(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> str:
        # NuGet has no version-control sources.
        return file.content


register_syntax(MSBuildProjectSyntax())
