"""Version catalogs: where published candidate versions come from.

Each catalog answers one question: which versions of this dependency
exist? Failures are raised as classified
:class:`~depsentinel.exceptions.CatalogError` instances. Retry policy is
left to the caller.
"""

from __future__ import annotations

import os
from typing import Protocol, runtime_checkable

import httpx

from depsentinel.core.github import is_github_url, parse_repo_url, repo_url_from_module
from depsentinel.core.http import build_client, get_json, send
from depsentinel.engines.update_checker.github_client import CompareClient, GitHubClient
from depsentinel.exceptions import CatalogError
from depsentinel.models import Credential, DefaultSource, Dependency, GitSource, credential_for_host

_DEFAULT_GOPROXY = "https://proxy.golang.org"
_NUGET_FLAT_CONTAINER = "https://api.nuget.org/v3-flatcontainer"
_TERRAFORM_REGISTRY = "registry.terraform.io"


@runtime_checkable
class VersionCatalog(Protocol):
    """Interface that every version catalog must satisfy."""

    def list_versions(self, dependency: Dependency) -> list[str] | None: ...


def goproxy_url() -> str:
    """First usable entry of ``GOPROXY``; ``direct``/``off`` fall back to the public proxy."""
    for entry in os.environ.get("GOPROXY", _DEFAULT_GOPROXY).split(","):
        entry = entry.strip()
        if entry and entry not in ("direct", "off"):
            return entry.rstrip("/")
    return _DEFAULT_GOPROXY


def escape_module_path(path: str) -> str:
    """Go module case-encoding: each uppercase letter becomes ``!`` + lowercase."""
    return "".join(f"!{ch.lower()}" if ch.isupper() else ch for ch in path)


class GoProxyCatalog:
    """Tagged versions of a Go module, as listed by the module proxy."""

    def __init__(self, client: httpx.Client | None = None, proxy_url: str | None = None) -> None:
        self._proxy_url = proxy_url or goproxy_url()
        self._client = client or build_client()

    def list_versions(self, dependency: Dependency) -> list[str] | None:
        url = f"{self._proxy_url}/{escape_module_path(dependency.name)}/@v/list"
        response = send(self._client, url)
        versions = [line.strip() for line in response.text.splitlines() if line.strip()]
        # An empty list means the module only has pseudo-versions.
        return versions or None


class GitTagsCatalog:
    """Tag names of the dependency's GitHub repository."""

    def __init__(self, github: CompareClient) -> None:
        self._github = github

    def list_versions(self, dependency: Dependency) -> list[str] | None:
        repo = github_repo_for(dependency)
        if repo is None:
            raise CatalogError(
                "unresolvable",
                f"no GitHub repository known for {dependency.name}",
                host="github.com",
            )
        return [tag["name"] for tag in self._github.list_tags(repo)]


class NuGetCatalog:
    """Package versions from the NuGet v3 flat container."""

    def __init__(self, client: httpx.Client | None = None, base_url: str = _NUGET_FLAT_CONTAINER):
        self._client = client or build_client()
        self._base_url = base_url.rstrip("/")

    def list_versions(self, dependency: Dependency) -> list[str] | None:
        data = get_json(self._client, f"{self._base_url}/{dependency.name.lower()}/index.json")
        return list(data.get("versions", []))


class TerraformRegistryCatalog:
    """Provider and module versions from a Terraform registry."""

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client or build_client()

    def list_versions(self, dependency: Dependency) -> list[str] | None:
        source = _default_source_for(dependency)
        hostname = (source.registry_hostname if source else None) or _TERRAFORM_REGISTRY
        identifier = (source.module_identifier if source else None) or dependency.name
        if source is not None and source.type == "provider":
            data = get_json(self._client, f"https://{hostname}/v1/providers/{identifier}/versions")
            return [v["version"] for v in data.get("versions", [])]
        data = get_json(self._client, f"https://{hostname}/v1/modules/{identifier}/versions")
        modules = data.get("modules") or [{}]
        return [v["version"] for v in modules[0].get("versions", [])]


def catalog_for(
    dependency: Dependency,
    credentials: list[Credential],
    *,
    github: CompareClient | None = None,
    client: httpx.Client | None = None,
) -> VersionCatalog:
    """Pick the catalog for the dependency's package manager and source."""
    if git_source_for(dependency) is not None or dependency.package_manager == "dep":
        return GitTagsCatalog(github or GitHubClient.from_credentials(credentials))
    if dependency.package_manager == "go_modules":
        return GoProxyCatalog(client)
    if dependency.package_manager == "nuget":
        cred = credential_for_host(credentials, "api.nuget.org")
        if client is None and cred and cred.username and cred.password:
            client = build_client(auth=(cred.username, cred.password))
        return NuGetCatalog(client)
    if dependency.package_manager == "terraform":
        return TerraformRegistryCatalog(client)
    raise ValueError(f"no version catalog for package manager {dependency.package_manager!r}")


def git_source_for(dependency: Dependency) -> GitSource | None:
    for req in dependency.requirements:
        if isinstance(req.source, GitSource):
            return req.source
    return None


def _default_source_for(dependency: Dependency) -> DefaultSource | None:
    for req in dependency.requirements:
        if isinstance(req.source, DefaultSource):
            return req.source
    return None


def github_repo_for(dependency: Dependency) -> str | None:
    git_source = git_source_for(dependency)
    candidates = [git_source.url] if git_source else []
    default = _default_source_for(dependency)
    if default is not None and default.source:
        candidates.append(default.source)
    candidates.append(dependency.name)
    for candidate in candidates:
        url = candidate if is_github_url(candidate) else repo_url_from_module(candidate)
        if url and is_github_url(url):
            owner, repo = parse_repo_url(url)
            return f"{owner}/{repo}"
    return None
