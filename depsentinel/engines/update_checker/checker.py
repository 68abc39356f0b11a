"""UpdateChecker: latest, resolvable and rewritten requirements for one dependency."""

from __future__ import annotations

import dataclasses
from functools import cached_property
from typing import Literal

import structlog

from depsentinel.engines.update_checker.catalogs import VersionCatalog, catalog_for, git_source_for
from depsentinel.engines.update_checker.file_preparer import FilePreparer
from depsentinel.engines.update_checker.git_commit_checker import GitCommitChecker
from depsentinel.engines.update_checker.github_client import CompareClient, GitHubClient
from depsentinel.engines.update_checker.latest_version_finder import LatestVersionFinder
from depsentinel.engines.update_checker.requirement import ignore_requirements, satisfies
from depsentinel.engines.update_checker.requirements_updater import RequirementsUpdater
from depsentinel.engines.update_checker.version import is_newer, parse_version
from depsentinel.engines.update_checker.version_resolver import (
    DEFAULT_RESOLVERS,
    ExternalResolver,
    VersionResolver,
)
from depsentinel.exceptions import DependencyFileNotFound
from depsentinel.models import (
    Credential,
    DefaultSource,
    Dependency,
    DependencyFile,
    GitSource,
    Requirement,
    Source,
    UpdateStrategy,
)

log = structlog.get_logger("depsentinel.engine")

RequirementsToUnlock = Literal["own", "none"]


class UpdateChecker:
    """Wire version finding, constraint resolution and requirement rewriting.

    Collaborators (catalog, external resolver, GitHub client) are built
    from the dependency's package manager unless injected. Each instance
    serves one request; results are cached on the instance.
    """

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[DependencyFile],
        credentials: list[Credential] | None = None,
        ignored_versions: list[str] | None = None,
        *,
        raise_on_ignored: bool = False,
        requirements_update_strategy: UpdateStrategy | None = None,
        remove_git_source: bool = False,
        catalog: VersionCatalog | None = None,
        resolver: ExternalResolver | None = None,
        github: CompareClient | None = None,
    ) -> None:
        self.dependency = dependency
        self.dependency_files = list(dependency_files)
        self.credentials = list(credentials or [])
        self.ignored_versions = list(ignored_versions or [])
        self.raise_on_ignored = raise_on_ignored
        self.remove_git_source = remove_git_source
        self.requirements_update_strategy: UpdateStrategy = (
            requirements_update_strategy or self._default_strategy()
        )
        self._catalog = catalog
        self._resolver = resolver
        self._github = github
        self._owned_github: GitHubClient | None = None
        self._check_required_files()

    # ── lifecycle ────────────────────────────────────────────────────────

    def close(self) -> None:
        if self._owned_github is not None:
            self._owned_github.close()
            self._owned_github = None

    def __enter__(self) -> UpdateChecker:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ── versions ─────────────────────────────────────────────────────────

    @cached_property
    def latest_version(self) -> str | None:
        if self._uses_git_resolution:
            return self._git_commit_checker.latest_resolvable_version()
        return self._latest_version_finder.latest_version

    @cached_property
    def latest_resolvable_version(self) -> str | None:
        if self._uses_git_resolution:
            return self._git_commit_checker.latest_resolvable_version()
        return self._resolve(unlock_requirement=True)

    @cached_property
    def latest_resolvable_version_with_no_unlock(self) -> str | None:
        if self._uses_git_resolution:
            # Without unlocking, a git pin stays where it is.
            return self.dependency.version
        return self._resolve(unlock_requirement=False)

    # ── sources & requirements ───────────────────────────────────────────

    @cached_property
    def updated_source(self) -> Source | None:
        git_source = git_source_for(self.dependency)
        if git_source is None:
            return next((r.source for r in self.dependency.requirements if r.source), None)
        if self.remove_git_source:
            return DefaultSource(source=self.dependency.name)

        checker = self._git_commit_checker
        if not checker.pinned():
            resolved = self.latest_resolvable_version
            if parse_version(resolved) is not None and resolved != self.dependency.version:
                log.info("checker.registry_switch", dependency=self.dependency.name, version=resolved)
                return DefaultSource(source=self.dependency.name)
            return git_source
        if checker.pinned_ref_looks_like_version():
            tag = checker.latest_version_tag_for_pin()
            if tag is not None:
                return dataclasses.replace(git_source, ref=tag.name)
        return git_source

    @cached_property
    def updated_requirements(self) -> list[Requirement]:
        return RequirementsUpdater(
            requirements=self.dependency.requirements,
            updated_source=self.updated_source,
            update_strategy=self.requirements_update_strategy,
            latest_version=self.latest_version,
            latest_resolvable_version=self.latest_resolvable_version,
            package_manager=self.dependency.package_manager,
            current_version=self.dependency.version,
        ).updated_requirements()

    def up_to_date(self) -> bool:
        return not self._changed(self.latest_version)

    def can_update(self, requirements_to_unlock: RequirementsToUnlock = "own") -> bool:
        if requirements_to_unlock == "none":
            return self._changed(self.latest_resolvable_version_with_no_unlock)
        if self._changed(self.latest_resolvable_version):
            return True
        return self.updated_requirements != self.dependency.requirements

    def updated_dependency(
        self, requirements_to_unlock: RequirementsToUnlock = "own"
    ) -> Dependency | None:
        """The dependency after the update, or None when there is nothing to do."""
        if not self.can_update(requirements_to_unlock):
            return None
        if requirements_to_unlock == "none":
            version = self.latest_resolvable_version_with_no_unlock
            requirements = list(self.dependency.requirements)
        else:
            version = self.latest_resolvable_version
            requirements = self.updated_requirements
        log.info(
            "checker.updated_dependency",
            dependency=self.dependency.name,
            previous_version=self.dependency.version,
            version=version,
            strategy=self.requirements_update_strategy,
        )
        return dataclasses.replace(
            self.dependency,
            version=version,
            requirements=requirements,
            previous_requirements=list(self.dependency.requirements),
            previous_version=self.dependency.version,
        )

    # ── internals ────────────────────────────────────────────────────────

    def _default_strategy(self) -> UpdateStrategy:
        if any(f.type == "package_main" for f in self.dependency_files):
            return "bump_versions"
        return "widen_ranges"

    def _check_required_files(self) -> None:
        names = {f.name for f in self.dependency_files}
        for req in self.dependency.requirements:
            if req.file not in names:
                raise DependencyFileNotFound(req.file)

    def _changed(self, candidate: str | None) -> bool:
        current = self.dependency.version
        if candidate is None or candidate == current:
            return False
        if parse_version(candidate) is None:
            # A new commit sha has no order; any difference is a change.
            return True
        return is_newer(candidate, current)

    @property
    def _uses_git_resolution(self) -> bool:
        return git_source_for(self.dependency) is not None and not self.remove_git_source

    @property
    def _github_client(self) -> CompareClient:
        if self._github is None:
            self._owned_github = GitHubClient.from_credentials(self.credentials)
            self._github = self._owned_github
        return self._github

    @cached_property
    def _git_commit_checker(self) -> GitCommitChecker:
        return GitCommitChecker(self.dependency, self._github_client)

    @cached_property
    def _latest_version_finder(self) -> LatestVersionFinder:
        catalog = self._catalog
        if catalog is None:
            registry_dependency = self._registry_dependency()
            github = self._github_client if registry_dependency.package_manager == "dep" else None
            catalog = catalog_for(registry_dependency, self.credentials, github=github)
        return LatestVersionFinder(
            dependency=self._registry_dependency(),
            credentials=self.credentials,
            ignored_versions=self.ignored_versions,
            catalog=catalog,
            raise_on_ignored=self.raise_on_ignored,
        )

    def _registry_dependency(self) -> Dependency:
        """The dependency as the registry lookup sees it (git sources removed if asked)."""
        if not self.remove_git_source:
            return self.dependency
        requirements = [
            dataclasses.replace(r, source=DefaultSource(source=self.dependency.name))
            if isinstance(r.source, GitSource)
            else r
            for r in self.dependency.requirements
        ]
        return dataclasses.replace(self.dependency, requirements=requirements)

    def _external_resolver(self) -> ExternalResolver | None:
        if self._resolver is not None:
            return self._resolver
        factory = DEFAULT_RESOLVERS.get(self.dependency.package_manager)
        return factory() if factory else None

    def _resolve(self, *, unlock_requirement: bool) -> str | None:
        latest = self.latest_version
        resolver = self._external_resolver()
        if resolver is None:
            # No resolver step for this ecosystem: the latest version is
            # resolvable unless a requirement we may not unlock excludes it.
            if latest is None:
                return self.dependency.version
            admitted = unlock_requirement or all(
                satisfies(latest, r.requirement, self.dependency.package_manager)
                for r in self.dependency.requirements
            )
            return latest if admitted else self.dependency.version

        prepared = FilePreparer(
            self.dependency,
            self.dependency_files,
            unlock_requirement=unlock_requirement,
            remove_git_source=self.remove_git_source,
            latest_allowable_version=latest,
        ).prepared_dependency_files()
        selected = VersionResolver(self.dependency, prepared, resolver).latest_resolvable_version()
        return self._within_latest(selected)

    def _within_latest(self, selected: str | None) -> str | None:
        """Hold a resolver's answer to what the version finder allowed.

        Resolvers such as ``go list -m @upgrade`` know nothing about ignored
        ranges, and go.mod is never unlocked up to ``latest_version``.
        """
        latest = self.latest_version
        if selected is not None and latest is not None and is_newer(selected, latest):
            log.info("checker.resolved_above_latest", dependency=self.dependency.name,
                     selected=selected, latest=latest)
            return latest
        if selected is not None and any(
            r.satisfied_by(selected) for r in ignore_requirements(self.ignored_versions)
        ):
            log.info("checker.resolved_version_ignored", dependency=self.dependency.name,
                     selected=selected)
            return self.dependency.version
        return selected
