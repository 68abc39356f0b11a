"""Temporary working copies for external resolver and lock-tool runs."""

from __future__ import annotations

import tempfile
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

import structlog

from depsentinel.models import DependencyFile

log = structlog.get_logger("depsentinel.engine")


@contextmanager
def temporary_workdir(prefix: str = "depsentinel-") -> Iterator[Path]:
    """Yield a fresh, exclusively owned directory that is removed on exit.

    Removal happens on every exit path, including exceptions raised by
    the external process the caller runs inside it.
    """
    with tempfile.TemporaryDirectory(prefix=prefix) as tmpdir:
        yield Path(tmpdir)


def file_path_in(workdir: Path, file: DependencyFile) -> Path:
    """Resolve where *file* lives inside *workdir*, refusing to escape it."""
    target = (workdir / file.path).resolve()
    root = workdir.resolve()
    if root != target and root not in target.parents:
        raise ValueError(f"dependency file {file.path!r} escapes the working directory")
    return target


def write_dependency_files(
    workdir: Path,
    files: Iterable[DependencyFile],
    *,
    skip: Callable[[DependencyFile], bool] | None = None,
) -> list[Path]:
    """Write *files* into *workdir*, keeping their relative directories."""
    written: list[Path] = []
    for file in files:
        if skip is not None and skip(file):
            continue
        target = file_path_in(workdir, file)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(file.content, encoding="utf-8")
        written.append(target)
    log.debug("sandbox.files_written", workdir=str(workdir), count=len(written))
    return written
