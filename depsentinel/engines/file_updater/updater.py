"""FileUpdater: rewrite declarations in place for an updated dependency."""

from __future__ import annotations

import dataclasses

import structlog

# Ensure declaration syntaxes are registered before any update runs.
import depsentinel.engines.file_updater.declarations  # noqa: F401
from depsentinel.engines.file_updater.declarations.terraform import DEFAULT_REGISTRY
from depsentinel.engines.file_updater.lockfile import (
    LockRegenerator,
    TerraformProvidersLock,
    update_lockfile,
)
from depsentinel.engines.file_updater.property_finder import PropertyFinder, PropertyValueFinder
from depsentinel.engines.file_updater.registry import (
    DeclarationSyntax,
    handles,
    is_lockfile,
    syntax_for,
)
from depsentinel.engines.file_updater.spans import replace_span
from depsentinel.exceptions import AmbiguousDeclaration, DependencyFileNotFound, NoChangeDetected
from depsentinel.models import DefaultSource, Dependency, DependencyFile, GitSource, Requirement

log = structlog.get_logger("depsentinel.engine")


class FileUpdater:
    """Apply ``previous_requirements -> requirements`` to the dependency files.

    All new contents are built in memory first; nothing is returned until
    every file has been patched, so a failure leaves the caller with the
    original files only.
    """

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[DependencyFile],
        *,
        lock_regenerator: LockRegenerator | None = None,
        property_finder: PropertyFinder | None = None,
    ) -> None:
        if dependency.previous_requirements is None:
            raise ValueError(f"{dependency.name} has no previous requirements to update from")
        self._dependency = dependency
        self._files = list(dependency_files)
        self._syntax: DeclarationSyntax = syntax_for(dependency.package_manager)
        self._lock_regenerator = lock_regenerator
        self._property_finder = property_finder
        self._contents: dict[str, str] = {f.name: f.content for f in self._files}
        self._check_required_files()

    # ── public API ───────────────────────────────────────────────────────

    def updated_dependency_files(self) -> list[DependencyFile]:
        touched: set[str] = set()
        for old, new in self._requirement_pairs():
            if old == new:
                continue
            touched.add(self._update_requirement(old, new))

        self._update_lockfiles()

        for name in sorted(touched):
            if self._contents[name] == self._original(name).content:
                raise NoChangeDetected(name)

        updated = [
            dataclasses.replace(f, content=self._contents[f.name])
            for f in self._files
            if self._contents[f.name] != f.content
        ]
        if not updated:
            raise NoChangeDetected()
        for file in updated:
            log.info(
                "updater.file_changed",
                dependency=self._dependency.name,
                file=file.name,
                delta=len(file.content) - len(self._original(file.name).content),
            )
        return updated

    # ── internals ────────────────────────────────────────────────────────

    def _check_required_files(self) -> None:
        for req in self._dependency.requirements:
            if req.file not in self._contents:
                raise DependencyFileNotFound(req.file)

    def _original(self, name: str) -> DependencyFile:
        return next(f for f in self._files if f.name == name)

    def _current(self, name: str) -> DependencyFile:
        return dataclasses.replace(self._original(name), content=self._contents[name])

    def _requirement_pairs(self) -> list[tuple[Requirement, Requirement]]:
        previous = list(self._dependency.previous_requirements or [])
        pairs: list[tuple[Requirement, Requirement]] = []
        for new in self._dependency.requirements:
            # Pair in order, consuming each previous requirement once.
            index = next((i for i, old in enumerate(previous) if old.file == new.file), None)
            if index is None:
                continue
            pairs.append((previous.pop(index), new))
        return pairs

    def _update_requirement(self, old: Requirement, new: Requirement) -> str:
        """Patch one declaration and return the name of the file that holds it."""
        name = self._dependency.name
        if new.property_name and old.requirement != new.requirement:
            return self._update_property(old, new)

        file = self._current(new.file)
        if isinstance(old.source, GitSource) and not isinstance(new.source, GitSource):
            log.info("updater.registry_switch", dependency=name, file=new.file)
        self._contents[new.file] = self._syntax.update_declaration(file, name, old, new)
        return new.file

    def _update_property(self, old: Requirement, new: Requirement) -> str:
        finder = self._property_finder or PropertyValueFinder(
            [self._current(f.name) for f in self._files if handles(self._syntax, f)]
        )
        details = finder.property_details(new.property_name, new.file)
        if details is None:
            raise AmbiguousDeclaration(new.property_name, new.file, 0)
        if details.value == new.requirement:
            # Shared property already rewritten for another requirement.
            return details.file
        content = self._contents[details.file]
        self._contents[details.file] = replace_span(
            content, details.value_span, old.requirement or "", new.requirement or ""
        )
        return details.file

    def _provider_source(self) -> str | None:
        for req in self._dependency.requirements:
            source = req.source
            if isinstance(source, DefaultSource) and source.type == "provider":
                host = source.registry_hostname or DEFAULT_REGISTRY
                return f"{host}/{source.module_identifier or self._dependency.name}"
        return None

    def _update_lockfiles(self) -> None:
        provider_source = self._provider_source()
        if provider_source is None:
            return
        for lockfile in [f for f in self._files if is_lockfile(self._syntax, f)]:
            others = [self._current(f.name) for f in self._files if f.name != lockfile.name]
            regenerator = self._lock_regenerator or TerraformProvidersLock()
            self._contents[lockfile.name] = update_lockfile(
                self._current(lockfile.name), others, provider_source, regenerator
            )
