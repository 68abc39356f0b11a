"""Data models shared by the update checker and the file updater.

Everything here is a plain immutable record built fresh for each update
request. Nothing holds state between requests.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Any, Literal, Union

FileType = Literal["file", "lockfile", "package_main"]
UpdateStrategy = Literal[
    "widen_ranges", "bump_versions", "bump_versions_if_necessary", "lockfile_only"
]
UPDATE_STRATEGIES: tuple[str, ...] = (
    "widen_ranges",
    "bump_versions",
    "bump_versions_if_necessary",
    "lockfile_only",
)


@dataclass(frozen=True)
class DefaultSource:
    """A registry release.

    ``type`` is ``default`` for most ecosystems; Terraform distinguishes
    ``registry`` modules from ``provider`` plugins.
    """

    source: str | None = None
    type: Literal["default", "registry", "provider"] = "default"
    registry_hostname: str | None = None
    module_identifier: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.source is not None:
            data["source"] = self.source
        if self.registry_hostname is not None:
            data["registry_hostname"] = self.registry_hostname
        if self.module_identifier is not None:
            data["module_identifier"] = self.module_identifier
        return data


@dataclass(frozen=True)
class GitSource:
    """A version-control pin: a branch, a ref, or neither (default branch)."""

    url: str
    branch: str | None = None
    ref: str | None = None

    def __post_init__(self) -> None:
        if self.branch and self.ref:
            raise ValueError("a git source pins either a branch or a ref, not both")

    @property
    def type(self) -> str:
        return "git"

    def to_dict(self) -> dict[str, Any]:
        return {"type": "git", "url": self.url, "branch": self.branch, "ref": self.ref}


Source = Union[DefaultSource, GitSource]


def source_from_dict(data: dict[str, Any] | None) -> Source | None:
    if data is None:
        return None
    if data.get("type") == "git":
        return GitSource(url=data["url"], branch=data.get("branch"), ref=data.get("ref"))
    return DefaultSource(
        source=data.get("source"),
        type=data.get("type", "default"),
        registry_hostname=data.get("registry_hostname"),
        module_identifier=data.get("module_identifier"),
    )


@dataclass(frozen=True)
class Requirement:
    """One declaration of a dependency in one file."""

    file: str
    requirement: str | None
    groups: list[str] = field(default_factory=list)
    source: Source | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def property_name(self) -> str | None:
        return self.metadata.get("property_name")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Requirement:
        return cls(
            file=data["file"],
            requirement=data.get("requirement"),
            groups=list(data.get("groups") or []),
            source=source_from_dict(data.get("source")),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "file": self.file,
            "requirement": self.requirement,
            "groups": list(self.groups),
            "source": self.source.to_dict() if self.source else None,
        }
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


@dataclass(frozen=True)
class DependencyFile:
    name: str
    content: str
    directory: str = "/"
    type: FileType = "file"

    @property
    def path(self) -> str:
        """Path relative to the repository root, without a leading slash."""
        return posixpath.normpath(posixpath.join(self.directory, self.name)).lstrip("/")


@dataclass(frozen=True)
class Dependency:
    """A single declared dependency and its requirements.

    ``previous_requirements`` is only set on the dependency returned by the
    update checker; the file updater pairs it with ``requirements`` to know
    what to rewrite.
    """

    name: str
    version: str | None
    requirements: list[Requirement]
    package_manager: str
    previous_requirements: list[Requirement] | None = None
    previous_version: str | None = None

    @property
    def top_level(self) -> bool:
        return bool(self.requirements)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dependency:
        return cls(
            name=data["name"],
            version=data.get("version"),
            requirements=[Requirement.from_dict(r) for r in data.get("requirements") or []],
            package_manager=data["package_manager"],
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "package_manager": self.package_manager,
            "requirements": [r.to_dict() for r in self.requirements],
        }
        if self.previous_requirements is not None:
            data["previous_requirements"] = [r.to_dict() for r in self.previous_requirements]
            data["previous_version"] = self.previous_version
        return data


@dataclass(frozen=True)
class VersionCandidate:
    value: str
    is_prerelease: bool
    is_pseudo_version: bool


@dataclass(frozen=True)
class Credential:
    type: str
    host: str
    username: str | None = None
    password: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        return cls(
            type=data.get("type", "git_source"),
            host=data["host"],
            username=data.get("username"),
            password=data.get("password"),
        )


def credential_for_host(credentials: list[Credential], host: str) -> Credential | None:
    for cred in credentials:
        if cred.host == host:
            return cred
    return None
