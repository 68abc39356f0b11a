"""FilePreparer: copies of the dependency files loosened for a resolver run."""

from __future__ import annotations

import dataclasses

import structlog

# Ensure declaration syntaxes are registered before any file is prepared.
import depsentinel.engines.file_updater.declarations  # noqa: F401
from depsentinel.engines.file_updater.property_finder import PropertyValueFinder
from depsentinel.engines.file_updater.registry import syntax_for
from depsentinel.engines.file_updater.spans import replace_span
from depsentinel.engines.update_checker.requirement import (
    InvalidRequirement,
    parse_requirement,
    render_range,
)
from depsentinel.engines.update_checker.version import is_version, strip_v
from depsentinel.exceptions import DependencyFileNotFound
from depsentinel.models import DefaultSource, Dependency, DependencyFile, GitSource, Requirement

log = structlog.get_logger("depsentinel.engine")

# Manifests that can hold a version range. go.mod pins exact versions and
# the Go resolver queries "@upgrade" itself.
_RANGE_MANAGERS = ("dep", "nuget", "terraform")


class FilePreparer:
    """Build the file set a resolver runs against.

    ``unlock_requirement`` widens each requirement to ``>= LOWER, <= LATEST``
    so the resolver is free to choose anything up to the latest allowable
    version. ``remove_git_source`` turns a git pin into a registry
    declaration. The given files are never mutated; files that do not
    declare the dependency are returned as the same objects.
    """

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[DependencyFile],
        *,
        unlock_requirement: bool = True,
        remove_git_source: bool = False,
        latest_allowable_version: str | None = None,
    ) -> None:
        self._dependency = dependency
        self._dependency_files = list(dependency_files)
        self._unlock_requirement = unlock_requirement
        self._remove_git_source = remove_git_source
        self._latest_allowable_version = latest_allowable_version
        self._syntax = syntax_for(dependency.package_manager)

    def prepared_dependency_files(self) -> list[DependencyFile]:
        contents = {f.name: f.content for f in self._dependency_files}
        for req in self._dependency.requirements:
            if req.file not in contents:
                raise DependencyFileNotFound(req.file)
            new_req = self._prepared_requirement(req)
            if new_req == req:
                continue
            file = self._file(req.file, contents[req.file])
            if req.property_name and not isinstance(req.source, GitSource):
                self._update_property(contents, req, new_req)
            else:
                contents[req.file] = self._syntax.update_declaration(
                    file, self._dependency.name, req, new_req
                )

        prepared = [
            f if contents[f.name] == f.content else dataclasses.replace(f, content=contents[f.name])
            for f in self._dependency_files
        ]
        log.debug(
            "preparer.files_prepared",
            dependency=self._dependency.name,
            unlocked=self._unlock_requirement,
            removed_git_source=self._remove_git_source,
            changed=sum(1 for old, new in zip(self._dependency_files, prepared) if old is not new),
        )
        return prepared

    # ── requirement rewriting ────────────────────────────────────────────

    def _prepared_requirement(self, req: Requirement) -> Requirement:
        is_git = isinstance(req.source, GitSource)
        if is_git and not self._remove_git_source:
            return req
        requirement = req.requirement
        if self._unlock_requirement and (requirement is not None or is_git):
            requirement = self._unlocked(requirement)
        source = DefaultSource(source=self._dependency.name) if is_git else req.source
        return dataclasses.replace(req, requirement=requirement, source=source)

    def _unlocked(self, requirement: str | None) -> str | None:
        pm = self._dependency.package_manager
        if pm not in _RANGE_MANAGERS:
            return requirement
        interval = pm == "nuget"
        spaced = True
        lower: str | None = None
        if requirement is not None:
            try:
                parsed = parse_requirement(requirement, pm)
            except InvalidRequirement:
                return requirement
            interval = interval or parsed.interval
            spaced = parsed.spaced
            bound = parsed.lower_bound
            if bound is not None:
                lower = bound.version.rstrip(".*") or None
        if lower is None:
            current = self._dependency.version
            lower = strip_v(current) if is_version(current) else "0"
        return render_range(
            lower,
            self._latest_allowable_version,
            inclusive_upper=True,
            spaced=spaced,
            interval=interval,
        )

    # ── file edits ───────────────────────────────────────────────────────

    def _file(self, name: str, content: str) -> DependencyFile:
        original = next(f for f in self._dependency_files if f.name == name)
        return dataclasses.replace(original, content=content)

    def _update_property(
        self, contents: dict[str, str], req: Requirement, new_req: Requirement
    ) -> None:
        files = [self._file(f.name, contents[f.name]) for f in self._dependency_files]
        details = PropertyValueFinder(files).property_details(req.property_name, req.file)
        if details is None or details.value != req.requirement:
            log.warning(
                "preparer.property_unresolved",
                dependency=self._dependency.name,
                property=req.property_name,
            )
            return
        contents[details.file] = replace_span(
            contents[details.file], details.value_span, details.value, new_req.requirement or ""
        )
