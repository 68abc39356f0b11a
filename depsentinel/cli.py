"""CLI entry point for standalone usage: depsentinel.

Subcommands:
    depsentinel check request.json            # Latest / resolvable versions, new requirements
    depsentinel update request.json --write   # Patch the manifests on disk

A request file names the dependency, the manifests to read (relative to
``directory``, default: the request file's directory) and the options:

    {
      "dependency": {"name": "...", "version": "...", "package_manager": "dep",
                     "requirements": [{"file": "Gopkg.toml", "requirement": "1.0.0"}]},
      "files": [{"name": "Gopkg.toml"}, {"name": "Gopkg.lock", "type": "lockfile"}],
      "credentials": [], "ignored_versions": [], "strategy": null,
      "remove_git_source": false
    }
"""

from __future__ import annotations

import difflib
import json
import os
import sys
from pathlib import Path
from typing import Any

import click

from depsentinel.core.logging import request_context, setup_logging
from depsentinel.core.sandbox import file_path_in
from depsentinel.engines.file_updater import FileUpdater
from depsentinel.engines.update_checker import UpdateChecker
from depsentinel.exceptions import DepSentinelError
from depsentinel.models import UPDATE_STRATEGIES, Credential, Dependency, DependencyFile


def _load_request(request_file: str) -> dict[str, Any]:
    try:
        request = json.loads(Path(request_file).read_text())
    except json.JSONDecodeError as e:
        click.echo(f"Error: Invalid JSON in {request_file}: {e}", err=True)
        sys.exit(1)
    for field in ("dependency", "files"):
        if field not in request:
            click.echo(f"Error: Missing required field '{field}' in request", err=True)
            sys.exit(1)
    strategy = request.get("strategy")
    if strategy is not None and strategy not in UPDATE_STRATEGIES:
        click.echo(
            f"Error: Unknown strategy '{strategy}' (expected one of {', '.join(UPDATE_STRATEGIES)})",
            err=True,
        )
        sys.exit(1)
    return request


def _base_dir(request_file: str, request: dict[str, Any]) -> Path:
    base = Path(request_file).resolve().parent
    return (base / request["directory"]).resolve() if request.get("directory") else base


def _read_files(base: Path, request: dict[str, Any]) -> list[DependencyFile]:
    files: list[DependencyFile] = []
    for entry in request["files"]:
        stub = DependencyFile(
            name=entry["name"],
            content="",
            directory=entry.get("directory", "/"),
            type=entry.get("type", "file"),
        )
        try:
            path = file_path_in(base, stub)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        if not path.is_file():
            click.echo(f"Error: Dependency file not found: {path}", err=True)
            sys.exit(1)
        files.append(DependencyFile(
            name=stub.name,
            content=path.read_text(encoding="utf-8"),
            directory=stub.directory,
            type=stub.type,
        ))
    return files


def _log_context(request: dict[str, Any]):
    dependency = request["dependency"]
    return request_context(
        dependency=dependency.get("name"), package_manager=dependency.get("package_manager")
    )


def _build_checker(request: dict[str, Any], files: list[DependencyFile]) -> UpdateChecker:
    return UpdateChecker(
        Dependency.from_dict(request["dependency"]),
        files,
        [Credential.from_dict(c) for c in request.get("credentials") or []],
        request.get("ignored_versions") or [],
        raise_on_ignored=bool(request.get("raise_on_ignored", False)),
        requirements_update_strategy=request.get("strategy"),
        remove_git_source=bool(request.get("remove_git_source", False)),
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """depsentinel: find and apply dependency upgrades."""
    if verbose:
        os.environ["DEPSENTINEL_LOG_LEVEL"] = "DEBUG"
    setup_logging()


@main.command("check")
@click.argument("request_file", type=click.Path(exists=True))
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def check(request_file: str, as_json: bool) -> None:
    """Report latest and resolvable versions and the rewritten requirements."""
    request = _load_request(request_file)
    files = _read_files(_base_dir(request_file, request), request)
    try:
        with _log_context(request), _build_checker(request, files) as checker:
            result = {
                "dependency": checker.dependency.name,
                "current_version": checker.dependency.version,
                "latest_version": checker.latest_version,
                "latest_resolvable_version": checker.latest_resolvable_version,
                "can_update": checker.can_update(),
                "updated_requirements": [r.to_dict() for r in checker.updated_requirements],
            }
    except DepSentinelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return
    click.echo(f"Dependency: {result['dependency']}")
    click.echo(f"  Current: {result['current_version']}")
    click.echo(f"  Latest: {result['latest_version']}")
    click.echo(f"  Resolvable: {result['latest_resolvable_version']}")
    click.echo(f"  Can update: {'yes' if result['can_update'] else 'no'}")
    click.echo("\nRequirements:")
    for old, new in zip(checker.dependency.requirements, checker.updated_requirements):
        marker = "~" if old != new else "="
        click.echo(f"  [{marker}] {new.file}: {old.requirement} -> {new.requirement}")


@main.command("update")
@click.argument("request_file", type=click.Path(exists=True))
@click.option("--write", is_flag=True, help="Write patched files back to disk")
def update(request_file: str, write: bool) -> None:
    """Compute the update and patch the dependency files."""
    request = _load_request(request_file)
    base = _base_dir(request_file, request)
    files = _read_files(base, request)
    try:
        with _log_context(request), _build_checker(request, files) as checker:
            updated = checker.updated_dependency()
        if updated is None:
            click.echo(f"{request['dependency']['name']} is up to date.")
            return
        changed = FileUpdater(updated, files).updated_dependency_files()
    except DepSentinelError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Updating {updated.name} {updated.previous_version} -> {updated.version}")
    originals = {f.name: f for f in files}
    for file in changed:
        diff = difflib.unified_diff(
            originals[file.name].content.splitlines(keepends=True),
            file.content.splitlines(keepends=True),
            fromfile=f"a/{file.path}",
            tofile=f"b/{file.path}",
        )
        click.echo("".join(diff), nl=False)
        if write:
            file_path_in(base, file).write_text(file.content, encoding="utf-8")
    if write:
        click.echo(f"\nWrote {len(changed)} file(s).")


if __name__ == "__main__":
    main()
