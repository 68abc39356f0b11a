"""Block declarations: Terraform modules and providers, terragrunt sources, lockfile blocks."""

from __future__ import annotations

import re

from depsentinel.engines.file_updater.hcl import (
    Block,
    attribute_pattern,
    own_matches,
    scan_blocks,
)
from depsentinel.engines.file_updater.registry import register_syntax
from depsentinel.engines.file_updater.spans import (
    Declaration,
    Span,
    expect_single,
    indentation_at,
    line_bounds,
    replace_span,
)
from depsentinel.models import DefaultSource, DependencyFile, GitSource, Requirement

DEFAULT_REGISTRY = "registry.terraform.io"
LOCKFILE_NAME = ".terraform.lock.hcl"

_SOURCE_RE = attribute_pattern("source")
_VERSION_RE = attribute_pattern("version")
_VERSION_LINE_RE = re.compile(r"^\s*version\s*=.*$", re.M)


def registry_host_for(requirement: Requirement) -> str:
    source = requirement.source
    if isinstance(source, DefaultSource) and source.registry_hostname:
        return source.registry_hostname
    return DEFAULT_REGISTRY


def is_terragrunt_file(name: str) -> bool:
    return name.endswith(".hcl") and not name.endswith(LOCKFILE_NAME)


def lock_block(content: str, provider_source: str) -> Block | None:
    """The top-level ``provider "host/ns/name" { }`` block of a lockfile."""
    header_re = re.compile(rf"^provider\s+[\"']{re.escape(provider_source)}[\"']$", re.I)
    matches = [b for b in scan_blocks(content) if b.depth == 0 and header_re.match(b.header)]
    return matches[0] if matches else None


def version_lines(text: str) -> list[str]:
    return [m.group(0).strip() for m in _VERSION_LINE_RE.finditer(text)]


class TerraformSyntax:
    package_manager = "terraform"
    file_patterns = ["*.tf", "*.hcl"]
    lockfile_names = [LOCKFILE_NAME]

    # ── registry & provider declarations ─────────────────────────────────

    def registry_declarations(
        self, content: str, dependency_name: str, registry_host: str
    ) -> list[Declaration]:
        """Blocks whose own ``source`` names the dependency, smallest scope first."""
        source_re = re.compile(
            rf"^(?:{re.escape(registry_host)}/)?{re.escape(dependency_name)}$", re.I
        )
        blocks = scan_blocks(content)
        result: list[Declaration] = []
        for block in blocks:
            sources = [m for m in own_matches(content, blocks, block, _SOURCE_RE) if source_re.match(m["value"])]
            if not sources:
                continue
            versions = own_matches(content, blocks, block, _VERSION_RE)
            requirement = versions[0]["value"] if versions else None
            requirement_span = Span(versions[0].start("value"), versions[0].end("value")) if versions else None
            result.append(
                Declaration(
                    name=dependency_name,
                    requirement=requirement,
                    span=block.span,
                    requirement_span=requirement_span,
                    insert_at=line_bounds(content, sources[0].start()).end,
                    kind="registry",
                )
            )
        return result

    # ── git declarations ─────────────────────────────────────────────────

    def git_declarations(
        self, content: str, file_name: str, dependency_name: str, source: GitSource
    ) -> list[Declaration]:
        old_ref = source.ref or source.branch
        if old_ref is None:
            return []
        if is_terragrunt_file(file_name):
            # Terragrunt sources live in the terraform block; nothing names the dependency.
            header_re = re.compile(r"^terraform$")
        else:
            header_re = re.compile(rf"^module\s+[\"']{re.escape(dependency_name)}[\"']$")
        url = re.sub(r"^https://", "", source.url)
        url_re = re.compile(rf"{re.escape(url)}[^\"\n]*?ref={re.escape(old_ref)}(?![\w.\-])")

        result: list[Declaration] = []
        for block in scan_blocks(content):
            if not header_re.match(block.header):
                continue
            for match in url_re.finditer(content, block.span.start, block.span.end):
                result.append(
                    Declaration(
                        name=dependency_name,
                        requirement=old_ref,
                        span=block.span,
                        requirement_span=Span(match.end() - len(old_ref), match.end()),
                        kind="git",
                    )
                )
        return result

    # ── protocol ─────────────────────────────────────────────────────────

    def find_declarations(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> list[Declaration]:
        if isinstance(requirement.source, GitSource):
            return self.git_declarations(file.content, file.name, dependency_name, requirement.source)
        return [
            decl
            for decl in self.registry_declarations(
                file.content, dependency_name, registry_host_for(requirement)
            )
            if decl.requirement == requirement.requirement
        ]

    def update_declaration(
        self,
        file: DependencyFile,
        dependency_name: str,
        old: Requirement,
        new: Requirement,
    ) -> str:
        if isinstance(new.source, GitSource):
            if not isinstance(old.source, GitSource):
                raise ValueError(f"cannot switch {dependency_name} to a git source")
            old_ref = old.source.ref or old.source.branch
            new_ref = new.source.ref or new.source.branch
            if old_ref == new_ref:
                return file.content
            decl = expect_single(
                self.find_declarations(file, dependency_name, old), dependency_name, file.name
            )
            return replace_span(file.content, decl.requirement_span, old_ref, new_ref)

        if isinstance(old.source, GitSource):
            return self.remove_git_source(file, dependency_name, old)
        if old.requirement == new.requirement:
            return file.content
        if new.requirement is None:
            raise ValueError(f"cannot remove the version of {dependency_name} in {file.name}")
        decl = expect_single(
            self.find_declarations(file, dependency_name, old), dependency_name, file.name
        )
        if decl.requirement_span is not None:
            # Only the old constraint inside the version line changes.
            return replace_span(file.content, decl.requirement_span, decl.requirement, new.requirement)
        indent = indentation_at(file.content, decl.insert_at - 1)
        addition = f'\n{indent}version = "{new.requirement}"'
        return file.content[: decl.insert_at] + addition + file.content[decl.insert_at :]

    def remove_git_source(
        self, file: DependencyFile, dependency_name: str, requirement: Requirement
    ) -> str:
        # A git module source has no registry address to fall back to.
        return file.content


register_syntax(TerraformSyntax())
