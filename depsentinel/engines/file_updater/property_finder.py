"""Resolve MSBuild ``$(Property)`` placeholders to their definitions."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from depsentinel.engines.file_updater.markup import iter_elements, stripped_span
from depsentinel.engines.file_updater.spans import Span
from depsentinel.models import DependencyFile

PROPERTY_RE = re.compile(r"\$\((?P<property>.*?)\)")


@dataclass(frozen=True)
class PropertyDetails:
    """Where a property's literal value is defined.

    ``root_property_name`` is the end of a ``$(A) -> $(B)`` chain: the
    property whose definition holds the literal ``value``.
    """

    value: str
    file: str
    root_property_name: str
    value_span: Span


class PropertyFinder(Protocol):
    def property_details(
        self, property_name: str, callsite_file: str
    ) -> PropertyDetails | None: ...


class PropertyValueFinder:
    """Looks a property up in the calling file first, then in every other file.

    Property names are case-insensitive. Within one file the last
    definition wins, as it does when MSBuild evaluates the project.
    """

    def __init__(self, dependency_files: list[DependencyFile]) -> None:
        self._files = dependency_files

    def property_details(
        self, property_name: str, callsite_file: str
    ) -> PropertyDetails | None:
        return self._details(property_name, callsite_file, set())

    def _details(
        self, property_name: str, callsite_file: str, seen: set[str]
    ) -> PropertyDetails | None:
        key = property_name.lower()
        if key in seen:
            return None
        seen.add(key)

        ordered = sorted(self._files, key=lambda f: f.name != callsite_file)
        for file in ordered:
            found = self._definition(file, property_name)
            if found is None:
                continue
            value, span = found
            reference = PROPERTY_RE.fullmatch(value)
            if reference is not None:
                return self._details(reference.group("property"), file.name, seen)
            return PropertyDetails(
                value=value, file=file.name, root_property_name=property_name, value_span=span
            )
        return None

    @staticmethod
    def _definition(file: DependencyFile, property_name: str) -> tuple[str, Span] | None:
        content = file.content
        last: tuple[str, Span] | None = None
        for group in iter_elements(content, ["PropertyGroup"]):
            if group.inner is None:
                continue
            for element in iter_elements(
                content,
                [property_name],
                start=group.inner.start,
                end=group.inner.end,
                case_insensitive=True,
            ):
                if element.depth != 0 or element.inner is None:
                    continue
                span = stripped_span(content, element.inner)
                last = (span.text(content), span)
        return last
