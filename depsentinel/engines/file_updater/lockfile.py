"""Regenerate provider blocks in ``.terraform.lock.hcl``."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol

import structlog

from depsentinel.core.sandbox import file_path_in, temporary_workdir, write_dependency_files
from depsentinel.engines.file_updater.declarations.terraform import (
    LOCKFILE_NAME,
    lock_block,
    version_lines,
)
from depsentinel.exceptions import ResolverFailure
from depsentinel.models import DependencyFile

log = structlog.get_logger("depsentinel.engine")


class LockRegenerator(Protocol):
    def regenerate(self, workdir: Path, provider_source: str) -> str:
        """Re-lock *provider_source* inside *workdir* and return the new lockfile text."""
        ...


class TerraformProvidersLock:
    """Runs ``terraform providers lock`` in the working copy."""

    def __init__(self, executable: str = "terraform", timeout: float = 300) -> None:
        self._executable = executable
        self._timeout = timeout

    def regenerate(self, workdir: Path, provider_source: str) -> str:
        command = [self._executable, "providers", "lock", provider_source]
        try:
            proc = subprocess.run(
                command,
                cwd=workdir,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise ResolverFailure(provider_source, " ".join(command), str(exc)) from exc
        if proc.returncode != 0:
            raise ResolverFailure(provider_source, " ".join(command), proc.stderr.strip())
        return (workdir / LOCKFILE_NAME).read_text(encoding="utf-8")


def update_lockfile(
    lockfile: DependencyFile,
    other_files: list[DependencyFile],
    provider_source: str,
    regenerator: LockRegenerator,
) -> str:
    """Return *lockfile*'s content with the block for *provider_source* regenerated.

    The old block is dropped and the lock tool runs in a fresh working
    copy of every other dependency file. When the regenerated block pins
    the same version as before (only hashes moved), the original content
    is returned unchanged.
    """
    content = lockfile.content
    old_block = lock_block(content, provider_source)
    if old_block is None:
        log.warning("lockfile.block_missing", provider=provider_source, file=lockfile.name)
        return content
    stripped = content[: old_block.span.start] + content[old_block.span.end :]

    with temporary_workdir(prefix="depsentinel-lock-") as workdir:
        write_dependency_files(
            workdir, other_files, skip=lambda f: ".terraform" in f.name
        )
        target = file_path_in(workdir, lockfile)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(stripped, encoding="utf-8")
        regenerated = regenerator.regenerate(target.parent, provider_source)

    new_block = lock_block(regenerated, provider_source)
    if new_block is None:
        raise ResolverFailure(provider_source, "lock regeneration", "no provider block written")
    old_text = old_block.span.text(content)
    new_text = new_block.span.text(regenerated)
    if version_lines(new_text) == version_lines(old_text):
        log.info("lockfile.version_unchanged", provider=provider_source)
        return content
    return content[: old_block.span.start] + new_text + content[old_block.span.end :]
