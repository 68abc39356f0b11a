"""RequirementsUpdater: rewrite requirement strings for a new version."""

from __future__ import annotations

import dataclasses

import structlog

from depsentinel.engines.update_checker.requirement import (
    Constraint,
    InvalidRequirement,
    VersionRequirement,
    parse_requirement,
    render_range,
)
from depsentinel.engines.update_checker.version import (
    is_version,
    next_breaking,
    strip_v,
)
from depsentinel.models import (
    UPDATE_STRATEGIES,
    DefaultSource,
    GitSource,
    Requirement,
    Source,
    UpdateStrategy,
)

log = structlog.get_logger("depsentinel.engine")


def _with_prefix(template: str, version: str) -> str:
    """Write *version* the way *template* writes versions (with or without ``v``)."""
    bare = strip_v(version)
    return f"v{bare}" if template[:1] in ("v", "V") else bare


def _wildcard(template: str, version: str) -> str:
    fixed = len([p for p in template.rstrip("*").rstrip(".").split(".") if p])
    segments = strip_v(version).split(".")[:fixed]
    return ".".join(segments + ["*"])


class RequirementsUpdater:
    """Apply an update strategy to each requirement of one dependency."""

    def __init__(
        self,
        requirements: list[Requirement],
        updated_source: Source | None,
        update_strategy: UpdateStrategy,
        latest_version: str | None,
        latest_resolvable_version: str | None,
        package_manager: str,
        *,
        current_version: str | None = None,
    ) -> None:
        if update_strategy not in UPDATE_STRATEGIES:
            raise ValueError(f"unknown update strategy {update_strategy!r}")
        self._requirements = requirements
        self._updated_source = updated_source
        self._update_strategy = update_strategy
        self._latest_version = latest_version
        self._latest_resolvable_version = latest_resolvable_version
        self._package_manager = package_manager
        self._current_version = current_version

    def updated_requirements(self) -> list[Requirement]:
        updated = [self._updated_requirement(req) for req in self._requirements]
        log.debug(
            "requirements.updated",
            strategy=self._update_strategy,
            latest=self._latest_version,
            resolvable=self._latest_resolvable_version,
            changed=sum(old != new for old, new in zip(self._requirements, updated)),
        )
        return updated

    # ── per-requirement ──────────────────────────────────────────────────

    def _updated_requirement(self, req: Requirement) -> Requirement:
        if self._update_strategy == "lockfile_only":
            return req
        version = self._latest_resolvable_version
        if version is None:
            return req

        if isinstance(req.source, GitSource):
            return self._updated_git_requirement(req, version)

        if req.requirement is None or not is_version(version):
            return req
        if self._current_version is not None and strip_v(self._current_version) == strip_v(version):
            return req

        try:
            parsed = parse_requirement(req.requirement, self._package_manager)
        except InvalidRequirement:
            return req

        if self._update_strategy == "widen_ranges":
            text = self._widened(parsed, version)
        elif self._update_strategy == "bump_versions_if_necessary" and parsed.satisfied_by(version):
            text = req.requirement
        else:
            text = self._bumped(parsed, version)
        return req if text == req.requirement else dataclasses.replace(req, requirement=text)

    def _updated_git_requirement(self, req: Requirement, version: str) -> Requirement:
        source = self._updated_source
        if isinstance(source, DefaultSource):
            # Branch or unpinned git dependency that now has a registry release.
            return dataclasses.replace(req, requirement=f"^{strip_v(version)}", source=source)
        if isinstance(source, GitSource) and source != req.source:
            return dataclasses.replace(req, source=source)
        return req

    # ── strategies ───────────────────────────────────────────────────────

    def _widened(self, parsed: VersionRequirement, version: str) -> str:
        if parsed.satisfied_by(version):
            return parsed.text
        upper = next_breaking(version)
        uppers = parsed.upper_bounds
        others = [c for c in parsed.constraints if c not in uppers]

        if uppers and all(parsed.satisfied_by_constraint(c, version) for c in others):
            if parsed.interval:
                lower = parsed.lower_bound
                return render_range(
                    lower.version if lower else "0",
                    upper,
                    inclusive_upper=False,
                    spaced=False,
                    interval=True,
                )
            # Only the ceiling is in the way: raise it where it stands.
            replaced = [
                Constraint("<", _with_prefix(c.version, upper), c.spaced) if c in uppers else c
                for c in parsed.constraints
            ]
            return ", ".join(c.render() for c in replaced)

        lower = parsed.lower_bound
        lower_version = lower.version.rstrip(".*") if lower else None
        if not lower_version:
            lower_version = strip_v(self._current_version or "0")
        return render_range(
            lower_version,
            _with_prefix(lower_version, upper),
            inclusive_upper=False,
            spaced=parsed.spaced,
            interval=parsed.interval,
        )

    def _bumped(self, parsed: VersionRequirement, version: str) -> str:
        constraints = parsed.constraints
        if parsed.interval:
            if len(constraints) == 1 and constraints[0].op == "=":
                return f"[{strip_v(version)}]"
            return strip_v(version)
        if len(constraints) != 1:
            return _with_prefix(constraints[0].version, version)
        only = constraints[0]
        if only.version.endswith("*"):
            return dataclasses.replace(only, version=_wildcard(only.version, version)).render()
        return dataclasses.replace(only, version=_with_prefix(only.version, version)).render()
