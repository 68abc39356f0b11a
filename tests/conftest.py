"""Shared pytest fixtures and fakes for depsentinel tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from depsentinel.models import DefaultSource, Dependency, DependencyFile, Requirement


class FakeCatalog:
    """Deterministic version catalog."""

    def __init__(self, versions: list[str] | None):
        self.versions = versions
        self.calls = 0

    def list_versions(self, dependency: Dependency) -> list[str] | None:
        self.calls += 1
        return None if self.versions is None else list(self.versions)


class FakeResolver:
    """Records what it saw in the working copy and returns a fixed selection."""

    def __init__(self, selected: str | None):
        self.selected = selected
        self.seen: dict[str, str] = {}
        self.workdir: Path | None = None

    def resolve(self, workdir: Path, dependency: Dependency) -> str | None:
        self.workdir = workdir
        self.seen = {
            str(p.relative_to(workdir)): p.read_text()
            for p in workdir.rglob("*")
            if p.is_file()
        }
        return self.selected


class FakeGitHub:
    """Tag listing plus a compare table keyed by (base, head)."""

    def __init__(self, tags: list[dict[str, Any]], statuses: dict[tuple[str, str], str]):
        self.tags = tags
        self.statuses = statuses
        self.compare_calls: list[tuple[str, str, str]] = []

    def list_tags(self, repo: str) -> list[dict[str, Any]]:
        return list(self.tags)

    def compare(self, repo: str, base: str, head: str) -> dict[str, Any]:
        self.compare_calls.append((repo, base, head))
        return {"status": self.statuses.get((base, head), "diverged"), "commits": []}


def tag(name: str, sha: str | None = None) -> dict[str, Any]:
    return {"name": name, "commit": {"sha": sha or "0" * 40}}


@pytest.fixture
def gopkg_toml() -> DependencyFile:
    return DependencyFile(
        name="Gopkg.toml",
        content=(
            '[[constraint]]\n'
            '  name = "github.com/dgrijalva/jwt-go"\n'
            '  version = "1.0.0"\n'
            '\n'
            '[[constraint]]\n'
            '  name = "github.com/pkg/errors"\n'
            '  version = "0.8.0"\n'
            '\n'
            '[prune]\n'
            '  go-tests = true\n'
        ),
    )


@pytest.fixture
def gopkg_lock() -> DependencyFile:
    return DependencyFile(
        name="Gopkg.lock",
        content=(
            '[[projects]]\n'
            '  name = "github.com/dgrijalva/jwt-go"\n'
            '  packages = ["."]\n'
            '  revision = "dbeaa9332f19a944acb5736b4456cfcc02140e29"\n'
            '  version = "v1.0.0"\n'
        ),
        type="lockfile",
    )


@pytest.fixture
def jwt_go(gopkg_toml: DependencyFile) -> Dependency:
    return Dependency(
        name="github.com/dgrijalva/jwt-go",
        version="1.0.0",
        package_manager="dep",
        requirements=[
            Requirement(
                file="Gopkg.toml",
                requirement="1.0.0",
                source=DefaultSource(source="github.com/dgrijalva/jwt-go"),
            )
        ],
    )
