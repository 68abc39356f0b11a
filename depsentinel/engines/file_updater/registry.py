"""Declaration-syntax registry: one variant per manifest syntax family."""

from __future__ import annotations

from fnmatch import fnmatch
from typing import Protocol, runtime_checkable

from depsentinel.engines.file_updater.spans import Declaration
from depsentinel.models import DependencyFile, Requirement


@runtime_checkable
class DeclarationSyntax(Protocol):
    """Interface that every declaration syntax must satisfy.

    ``find_declarations`` returns every span declaring *dependency_name*
    with exactly the requirement given. ``update_declaration`` and
    ``remove_git_source`` return new file content that differs from the
    old only inside the single located declaration.
    """

    package_manager: str
    file_patterns: list[str]
    lockfile_names: list[str]

    def find_declarations(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> list[Declaration]: ...

    def update_declaration(
        self,
        file: DependencyFile,
        dependency_name: str,
        old: Requirement,
        new: Requirement,
    ) -> str: ...

    def remove_git_source(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> str: ...


SYNTAX_REGISTRY: dict[str, DeclarationSyntax] = {}


def register_syntax(syntax: DeclarationSyntax) -> None:
    """Register a syntax instance by its package_manager."""
    SYNTAX_REGISTRY[syntax.package_manager] = syntax


def syntax_for(package_manager: str) -> DeclarationSyntax:
    try:
        return SYNTAX_REGISTRY[package_manager]
    except KeyError:
        raise ValueError(f"no declaration syntax registered for {package_manager!r}") from None


def is_lockfile(syntax: DeclarationSyntax, file: DependencyFile) -> bool:
    return file.type == "lockfile" or file.name.rsplit("/", 1)[-1] in syntax.lockfile_names


def handles(syntax: DeclarationSyntax, file: DependencyFile) -> bool:
    """True when *file* is a manifest written in *syntax*."""
    basename = file.name.rsplit("/", 1)[-1]
    if is_lockfile(syntax, file):
        return False
    return any(fnmatch(basename, pattern) for pattern in syntax.file_patterns)
