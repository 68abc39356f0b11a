"""VersionResolver: ask the ecosystem's own resolver what it would install."""

from __future__ import annotations

import subprocess
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import structlog

from depsentinel.core.sandbox import temporary_workdir, write_dependency_files
from depsentinel.exceptions import ResolverFailure
from depsentinel.models import Dependency, DependencyFile

log = structlog.get_logger("depsentinel.engine")


class ExternalResolver(Protocol):
    def resolve(self, workdir: Path, dependency: Dependency) -> str | None:
        """Run inside *workdir* (which holds the prepared files) and return a version."""
        ...


OutputParser = Callable[[Path, Dependency, str], "str | None"]


def _last_line(workdir: Path, dependency: Dependency, stdout: str) -> str | None:
    lines = stdout.strip().splitlines()
    return lines[-1].strip() if lines else None


class CommandResolver:
    """Runs a command template in the working copy and parses what it selected.

    ``argv`` items may contain ``{name}``, which is replaced with the
    dependency name.
    """

    def __init__(
        self,
        argv: list[str],
        parse: OutputParser = _last_line,
        *,
        env: dict[str, str] | None = None,
        timeout: float = 600,
    ) -> None:
        self._argv = argv
        self._parse = parse
        self._env = env
        self._timeout = timeout

    def resolve(self, workdir: Path, dependency: Dependency) -> str | None:
        command = [part.format(name=dependency.name) for part in self._argv]
        log.debug("resolver.run", dependency=dependency.name, command=command)
        try:
            proc = subprocess.run(
                command,
                cwd=workdir,
                capture_output=True,
                text=True,
                env=self._env,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ResolverFailure(dependency.name, " ".join(command), str(exc)) from exc
        if proc.returncode != 0:
            raise ResolverFailure(dependency.name, " ".join(command), proc.stderr.strip())
        return self._parse(workdir, dependency, proc.stdout)


def go_modules_resolver() -> CommandResolver:
    return CommandResolver(["go", "list", "-m", "-f", "{{{{.Version}}}}", "{name}@upgrade"])


def _version_from_gopkg_lock(workdir: Path, dependency: Dependency, stdout: str) -> str | None:
    lock_path = workdir / "Gopkg.lock"
    if not lock_path.exists():
        return None
    with lock_path.open("rb") as fh:
        lock = tomllib.load(fh)
    for project in lock.get("projects", []):
        if project.get("name") == dependency.name:
            return project.get("version") or project.get("revision")
    return None


def dep_resolver() -> CommandResolver:
    return CommandResolver(["dep", "ensure", "-update", "{name}"], _version_from_gopkg_lock)


DEFAULT_RESOLVERS: dict[str, Callable[[], ExternalResolver]] = {
    "dep": dep_resolver,
    "go_modules": go_modules_resolver,
}


class VersionResolver:
    """Run an :class:`ExternalResolver` against prepared files in a sandbox."""

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[DependencyFile],
        resolver: ExternalResolver,
    ) -> None:
        self._dependency = dependency
        self._dependency_files = dependency_files
        self._resolver = resolver

    def latest_resolvable_version(self) -> str | None:
        current = self._dependency.version
        # Transitive dependencies are only ever moved by their parents.
        if not self._dependency.top_level:
            return current

        with temporary_workdir(prefix="depsentinel-resolve-") as workdir:
            write_dependency_files(workdir, self._dependency_files)
            selected = self._resolver.resolve(workdir, self._dependency)

        log.info(
            "resolver.selected",
            dependency=self._dependency.name,
            current=current,
            selected=selected,
        )
        return selected or current
