"""Requirement strings: parsing, satisfaction, and range rendering.

Supported expressions:
- comparator lists: ">= 1.0.0, < 2.0.0" (commas or spaces between them)
- caret ranges ^x.y.z and tilde ranges ~x.y.z
- pessimistic ranges ~> x.y (Terraform)
- NuGet interval notation: [1.0,2.0), (,1.0], [1.1], and 1.0.* wildcards
- bare versions, whose meaning depends on the ecosystem (see
  :data:`BARE_OPERATORS`)
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from packaging.version import Version

from depsentinel.engines.update_checker.version import parse_version, release_segments

# What a bare "1.2.3" means per package manager.
BARE_OPERATORS: dict[str, str] = {
    "dep": "^",
    "go_modules": "=",
    "nuget": ">=",
    "terraform": "=",
}

_COMPARATORS = ("=", "==", "!=", ">", ">=", "<", "<=")
_CONSTRAINT_RE = re.compile(
    r"(?P<op>~>|>=|<=|!=|==|=|>|<|\^|~)?(?P<space>\s*)(?P<version>v?[0-9][0-9A-Za-z.\-+*]*)"
)
_INTERVAL_RE = re.compile(r"^(?P<open>[\[(])(?P<low>[^,\])]*)(?:,(?P<high>[^\])]*))?(?P<close>[\])])$")


@dataclass(frozen=True)
class Constraint:
    op: str
    version: str
    spaced: bool = True

    def render(self) -> str:
        if not self.op:
            return self.version
        return f"{self.op}{' ' if self.spaced else ''}{self.version}"


class InvalidRequirement(ValueError):
    pass


class VersionRequirement:
    """A parsed requirement. ``bare_operator`` gives bare versions their meaning."""

    def __init__(self, text: str, *, bare_operator: str = "="):
        self.text = text
        self.bare_operator = bare_operator
        self.interval = text.strip().startswith(("[", "("))
        self.constraints = _parse(text.strip())

    def __repr__(self) -> str:
        return f"VersionRequirement({self.text!r})"

    @classmethod
    def for_package_manager(cls, text: str, package_manager: str) -> VersionRequirement:
        return cls(text, bare_operator=BARE_OPERATORS.get(package_manager, "="))

    def satisfied_by(self, version: str | Version) -> bool:
        parsed = version if isinstance(version, Version) else parse_version(version)
        if parsed is None:
            return False
        return all(self._check(c, parsed) for c in self.constraints)

    def satisfied_by_constraint(self, constraint: Constraint, version: str | Version) -> bool:
        """Whether *version* meets one of this requirement's constraints on its own."""
        parsed = version if isinstance(version, Version) else parse_version(version)
        return parsed is not None and self._check(constraint, parsed)

    @property
    def lower_bound(self) -> Constraint | None:
        lowers = [c for c in self.constraints if (c.op or self.bare_operator) not in ("<", "<=", "!=")]
        if not lowers:
            return None
        return min(lowers, key=lambda c: parse_version(c.version.rstrip(".*")) or Version("0"))

    @property
    def upper_bounds(self) -> list[Constraint]:
        return [c for c in self.constraints if c.op in ("<", "<=")]

    @property
    def spaced(self) -> bool:
        """Whether comparison operators in the original text are followed by a space.

        Range operators (``^``, ``~``, ``~>``) say nothing about comparator style.
        """
        with_op = [c for c in self.constraints if c.op in _COMPARATORS]
        return all(c.spaced for c in with_op) if with_op else True

    def _check(self, constraint: Constraint, version: Version) -> bool:
        op = constraint.op or self.bare_operator
        if constraint.version.endswith("*"):
            return _wildcard_match(constraint.version, version)
        target = parse_version(constraint.version)
        if target is None:
            return False
        if op in ("=", "=="):
            return version == target
        if op == "!=":
            return version != target
        if op == ">":
            return version > target
        if op == ">=":
            return version >= target
        if op == "<":
            return version < target
        if op == "<=":
            return version <= target
        if op == "^":
            return target <= version < Version(_caret_upper(constraint.version))
        if op == "~":
            return target <= version < Version(_tilde_upper(constraint.version))
        if op == "~>":
            return target <= version < Version(_pessimistic_upper(constraint.version))
        raise InvalidRequirement(f"unknown operator {op!r}")


def _parse(text: str) -> list[Constraint]:
    if not text:
        raise InvalidRequirement("empty requirement")
    if text[0] in "[(":
        return _parse_interval(text)
    constraints: list[Constraint] = []
    position = 0
    for match in _CONSTRAINT_RE.finditer(text):
        gap = text[position:match.start()].strip(" ,")
        if gap:
            raise InvalidRequirement(f"cannot parse requirement {text!r}")
        constraints.append(
            Constraint(
                op=match["op"] or "",
                version=match["version"],
                spaced=bool(match["space"]),
            )
        )
        position = match.end()
    if text[position:].strip(" ,") or not constraints:
        raise InvalidRequirement(f"cannot parse requirement {text!r}")
    return constraints


def _parse_interval(text: str) -> list[Constraint]:
    match = _INTERVAL_RE.match(text.replace(" ", ""))
    if match is None:
        raise InvalidRequirement(f"cannot parse interval {text!r}")
    low, high = match["low"], match["high"]
    if high is None:
        # [1.1] pins exactly
        return [Constraint("=", low, spaced=False)]
    constraints: list[Constraint] = []
    if low:
        constraints.append(Constraint(">=" if match["open"] == "[" else ">", low, spaced=False))
    if high:
        constraints.append(Constraint("<=" if match["close"] == "]" else "<", high, spaced=False))
    return constraints


def _wildcard_match(pattern: str, version: Version) -> bool:
    prefix = [int(p) for p in pattern.rstrip("*").rstrip(".").split(".") if p]
    return list(version.release[: len(prefix)]) == prefix


def _caret_upper(value: str) -> str:
    segments = release_segments(value) + [0, 0]
    if segments[0] > 0:
        return f"{segments[0] + 1}.0.0"
    if segments[1] > 0:
        return f"0.{segments[1] + 1}.0"
    return f"0.0.{segments[2] + 1}"


def _tilde_upper(value: str) -> str:
    segments = release_segments(value)
    if len(segments) >= 2:
        return f"{segments[0]}.{segments[1] + 1}.0"
    return f"{segments[0] + 1}.0.0"


def _pessimistic_upper(value: str) -> str:
    segments = release_segments(value)
    if len(segments) == 1:
        return f"{segments[0] + 1}"
    head = segments[:-1]
    head[-1] += 1
    return ".".join(str(s) for s in head)


def parse_requirement(text: str, package_manager: str) -> VersionRequirement:
    return VersionRequirement.for_package_manager(text, package_manager)


def satisfies(version: str, requirement: str | None, package_manager: str) -> bool:
    """True when *requirement* admits *version*. A missing requirement admits everything."""
    if requirement is None:
        return True
    try:
        return parse_requirement(requirement, package_manager).satisfied_by(version)
    except InvalidRequirement:
        return False


def ignore_requirements(ignored_versions: list[str]) -> list[VersionRequirement]:
    """Parse ignore specs. Each may hold several ranges separated by ``||``."""
    requirements: list[VersionRequirement] = []
    for spec in ignored_versions:
        for part in spec.split("||"):
            if part.strip():
                requirements.append(VersionRequirement(part.strip(), bare_operator="="))
    return requirements


def render_range(lower: str, upper: str | None, *, inclusive_upper: bool, spaced: bool,
                 interval: bool = False) -> str:
    """Render ``lower <= v (<|<=) upper`` in comparator or interval notation."""
    if interval:
        closing = "]" if inclusive_upper else ")"
        return f"[{lower},{upper or ''}{closing}" if upper else f"[{lower},)"
    space = " " if spaced else ""
    if upper is None:
        return f">={space}{lower}"
    op = "<=" if inclusive_upper else "<"
    return f">={space}{lower}, {op}{space}{upper}"
