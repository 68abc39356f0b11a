"""GitCommitChecker: newer targets for a version-control pinned dependency."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cached_property
from typing import Any

import structlog

from depsentinel.core.http import call_with_retry
from depsentinel.engines.update_checker.catalogs import git_source_for, github_repo_for
from depsentinel.engines.update_checker.github_client import CompareClient
from depsentinel.engines.update_checker.version import (
    is_commit_sha,
    looks_like_version_tag,
    parse_version,
    strip_v,
)
from depsentinel.exceptions import (
    CatalogError,
    DependencyNotResolvable,
    PrivateSourceAuthenticationFailure,
)
from depsentinel.models import Dependency, GitSource

log = structlog.get_logger("depsentinel.engine")

# compare(base, head) statuses meaning head is already contained in base.
_CONTAINED = ("behind", "identical")
# compare(base, head) statuses meaning head is at or past base.
_NEWER_OR_SAME = ("ahead", "identical")


@dataclass(frozen=True)
class GitTag:
    name: str
    commit_sha: str | None

    @property
    def version(self) -> str:
        return strip_v(self.name)


class GitCommitChecker:
    """Answer "is there a newer release?" for a git-pinned dependency.

    Git refs have no intrinsic order, so every decision goes through the
    host's compare capability.
    """

    def __init__(self, dependency: Dependency, github: CompareClient) -> None:
        self._dependency = dependency
        self._github = github

    # ── pin classification ───────────────────────────────────────────────

    @property
    def source(self) -> GitSource | None:
        return git_source_for(self._dependency)

    def git_dependency(self) -> bool:
        return self.source is not None

    def pinned(self) -> bool:
        """True for a tag or commit pin. Branch pins float with the branch."""
        source = self.source
        return source is not None and source.ref is not None

    def pinned_ref_looks_like_version(self) -> bool:
        source = self.source
        return source is not None and looks_like_version_tag(source.ref)

    # ── resolution ───────────────────────────────────────────────────────

    def latest_resolvable_version(self) -> str | None:
        current = self._dependency.version
        if not self.git_dependency():
            return current

        if not self.pinned():
            release = self.local_tag_for_latest_version()
            if release is not None and self.branch_or_ref_in_release(release):
                log.info(
                    "resolver.git_release",
                    dependency=self._dependency.name,
                    release=release.name,
                )
                return release.version
            return current

        if self.pinned_ref_looks_like_version():
            tag = self.latest_version_tag_for_pin()
            if tag is not None:
                log.info("resolver.git_tag", dependency=self._dependency.name, tag=tag.name)
                if is_commit_sha(current) and tag.commit_sha:
                    return tag.commit_sha
                return tag.name
        return current

    def local_tag_for_latest_version(self) -> GitTag | None:
        """The version-shaped tag with the highest semantic version."""
        best: GitTag | None = None
        for tag in self._tags:
            if not looks_like_version_tag(tag.name):
                continue
            parsed = parse_version(tag.name)
            if parsed is None or parsed.is_prerelease:
                continue
            if best is None or parsed > parse_version(best.name):
                best = tag
        return best

    def branch_or_ref_in_release(self, release: GitTag) -> bool:
        source = self.source
        head = (source.branch if source else None) or "HEAD"
        return self._compare(release.name, head) in _CONTAINED

    def latest_version_tag_for_pin(self) -> GitTag | None:
        """Newest tag at or past the pinned tag.

        Listing order is not release order (``v0.9.0`` sorts before
        ``v0.10.0``), so candidates are ranked against each other with
        compare as well.
        """
        current_ref = self.source.ref if self.source else None
        best: GitTag | None = None
        for tag in self._tags:
            if tag.name == current_ref or not looks_like_version_tag(tag.name):
                continue
            if self._compare(current_ref, tag.name) not in _NEWER_OR_SAME:
                continue
            if best is None or self._compare(best.name, tag.name) == "ahead":
                best = tag
        return best

    # ── host calls ───────────────────────────────────────────────────────

    @cached_property
    def _repo(self) -> str:
        repo = github_repo_for(self._dependency)
        if repo is None:
            raise DependencyNotResolvable(self._dependency.name)
        return repo

    @cached_property
    def _tags(self) -> list[GitTag]:
        raw = self._call(self._github.list_tags, self._repo, what="list_tags")
        return [_tag_from_api(item) for item in raw]

    def _compare(self, base: str, head: str) -> str | None:
        data = self._call(self._github.compare, self._repo, base, head, what="compare")
        return data.get("status")

    def _call(self, fn: Any, *args: Any, what: str) -> Any:
        try:
            return call_with_retry(fn, *args, description=f"{what}:{self._dependency.name}")
        except CatalogError as exc:
            if exc.kind == "unresolvable":
                raise DependencyNotResolvable(self._dependency.name) from exc
            if exc.kind == "auth":
                raise PrivateSourceAuthenticationFailure(exc.host or "github.com") from exc
            raise


def _tag_from_api(item: dict[str, Any]) -> GitTag:
    commit = item.get("commit") or {}
    return GitTag(name=item["name"], commit_sha=commit.get("sha"))
