"""LatestVersionFinder: the best published upgrade target, ignoring manifest constraints."""

from __future__ import annotations

from functools import cached_property

import structlog

from depsentinel.core.http import call_with_retry
from depsentinel.engines.update_checker.catalogs import VersionCatalog
from depsentinel.engines.update_checker.requirement import ignore_requirements
from depsentinel.engines.update_checker.version import (
    candidate,
    is_pseudo_version,
    is_version,
    max_version,
    parse_version,
    strip_v,
)
from depsentinel.exceptions import (
    AllVersionsIgnored,
    CatalogError,
    DependencyNotResolvable,
    PrivateSourceAuthenticationFailure,
)
from depsentinel.models import Credential, Dependency, VersionCandidate

log = structlog.get_logger("depsentinel.engine")


class LatestVersionFinder:
    """Narrow a catalog's published versions down to one upgrade target.

    Pseudo-versions have no ordering, so a dependency currently on one
    keeps it. Otherwise prereleases are dropped (unless we are already on
    one), ignored ranges are dropped, and the semantic maximum wins.
    """

    def __init__(
        self,
        dependency: Dependency,
        credentials: list[Credential],
        ignored_versions: list[str],
        catalog: VersionCatalog,
        *,
        raise_on_ignored: bool = False,
    ) -> None:
        self._dependency = dependency
        self._credentials = credentials
        self._ignored_versions = ignored_versions
        self._catalog = catalog
        self._raise_on_ignored = raise_on_ignored

    @cached_property
    def latest_version(self) -> str | None:
        return self._fetch_latest_version()

    def _fetch_latest_version(self) -> str | None:
        current = self._dependency.version
        if is_pseudo_version(current):
            return current

        candidates = self._available_versions()
        candidates = self._filter_prerelease_versions(candidates)
        candidates = self._filter_ignored_versions(candidates)

        best = max_version(c.value for c in candidates)
        if best is None:
            return current
        log.debug(
            "finder.latest_version",
            dependency=self._dependency.name,
            current=current,
            latest=best,
            candidates=len(candidates),
        )
        return strip_v(best)

    def _available_versions(self) -> list[VersionCandidate]:
        try:
            versions = call_with_retry(
                self._catalog.list_versions,
                self._dependency,
                description=f"list_versions:{self._dependency.name}",
            )
        except CatalogError as exc:
            self._handle_catalog_error(exc)
            raise

        if versions is None:
            # Nothing tagged: the current version is the only candidate.
            versions = [self._dependency.version] if is_version(self._dependency.version) else []
        return [candidate(v) for v in versions if is_version(v)]

    def _handle_catalog_error(self, error: CatalogError) -> None:
        if error.kind == "unresolvable":
            raise DependencyNotResolvable(
                self._dependency.name, [c.host for c in self._credentials]
            ) from error
        if error.kind == "auth":
            raise PrivateSourceAuthenticationFailure(error.host or "unknown host") from error

    def _filter_prerelease_versions(
        self, candidates: list[VersionCandidate]
    ) -> list[VersionCandidate]:
        if self._wants_prerelease:
            return candidates
        return [c for c in candidates if not c.is_prerelease]

    def _filter_lower_versions(
        self, candidates: list[VersionCandidate]
    ) -> list[VersionCandidate]:
        current = parse_version(self._dependency.version)
        if current is None:
            return candidates
        return [c for c in candidates if parse_version(c.value) > current]

    def _filter_ignored_versions(
        self, candidates: list[VersionCandidate]
    ) -> list[VersionCandidate]:
        ignores = ignore_requirements(self._ignored_versions)
        filtered = [c for c in candidates if not any(r.satisfied_by(c.value) for r in ignores)]
        if (
            self._raise_on_ignored
            and not self._filter_lower_versions(filtered)
            and self._filter_lower_versions(candidates)
        ):
            raise AllVersionsIgnored(self._dependency.name)
        return filtered

    @cached_property
    def _wants_prerelease(self) -> bool:
        current = parse_version(self._dependency.version)
        return current is not None and current.is_prerelease
