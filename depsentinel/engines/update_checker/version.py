"""Version identity: classification and semantic ordering.

Semantic versions are ordered with ``packaging.version.Version`` after a
small amount of normalisation (leading ``v``, semver-style prerelease
labels). Commit shas, pseudo-versions and opaque tags are recognised but
never ordered here.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from packaging.version import InvalidVersion, Version

from depsentinel.models import VersionCandidate

# Go pseudo-version suffix: yyyymmddhhmmss-abcdefabcdef
PSEUDO_VERSION_RE = re.compile(r"\b\d{14}-[0-9a-f]{12}$")

COMMIT_SHA_RE = re.compile(r"^[0-9a-f]{40}$")

# Tags shaped like a release: v1.2.3, 1.2, r2018.04.23, release-1.0
VERSION_TAG_RE = re.compile(r"^(?:[a-z]+[-_.]?)?v?\d+(?:[.\-][0-9a-z]+)*$", re.IGNORECASE)

_HEX_RE = re.compile(r"^[0-9a-f]{7,40}$")

_SEMVER_PRE_RE = re.compile(r"^(?P<release>\d+(?:\.\d+)*)-(?P<pre>[0-9A-Za-z.\-]+)(?P<build>\+.*)?$")


def strip_v(value: str) -> str:
    if value[:1] in ("v", "V") and value[1:2].isdigit():
        return value[1:]
    return value


def parse_version(value: str | None) -> Version | None:
    """Parse *value* as a semantic version, or return None if it is not one."""
    if not value:
        return None
    if is_pseudo_version(value) or is_commit_sha(value):
        return None
    text = strip_v(value.strip())
    try:
        return Version(text)
    except InvalidVersion:
        pass
    match = _SEMVER_PRE_RE.match(text)
    if match is None:
        return None
    # Prerelease labels packaging can't read sort as the earliest alpha
    # of their release.
    try:
        return Version(f"{match['release']}a0")
    except InvalidVersion:
        return None


def is_version(value: str | None) -> bool:
    return parse_version(value) is not None


def is_prerelease(value: str | None) -> bool:
    parsed = parse_version(value)
    return parsed is not None and parsed.is_prerelease


def is_pseudo_version(value: str | None) -> bool:
    return bool(value) and PSEUDO_VERSION_RE.search(value) is not None


def is_commit_sha(value: str | None) -> bool:
    return bool(value) and COMMIT_SHA_RE.match(value) is not None


def looks_like_version_tag(name: str | None) -> bool:
    """True for tag names shaped like a release, without parsing them."""
    if not name or _HEX_RE.match(name):
        return False
    return VERSION_TAG_RE.match(name) is not None


def candidate(value: str) -> VersionCandidate:
    return VersionCandidate(
        value=value,
        is_prerelease=is_prerelease(value),
        is_pseudo_version=is_pseudo_version(value),
    )


def max_version(values: Iterable[str]) -> str | None:
    """Return the value with the highest semantic version, ignoring the rest."""
    best: tuple[Version, str] | None = None
    for value in values:
        parsed = parse_version(value)
        if parsed is None:
            continue
        if best is None or parsed > best[0]:
            best = (parsed, value)
    return best[1] if best else None


def release_segments(value: str) -> list[int]:
    parsed = parse_version(value)
    if parsed is None:
        raise ValueError(f"not a version: {value!r}")
    return list(parsed.release)


def next_breaking(value: str, *, width: int | None = None) -> str:
    """Return the first version outside the compatible range of *value*.

    That is the next major, or the next minor for 0.x releases. *width*
    pads the result to that many segments (default: as many as *value*
    has, at least two).
    """
    segments = release_segments(value)
    if segments[0] > 0 or len(segments) == 1:
        bumped = [segments[0] + 1]
    else:
        bumped = [0, segments[1] + 1]
    size = width or max(len(segments), 2)
    bumped += [0] * (size - len(bumped))
    return ".".join(str(s) for s in bumped)


def is_newer(candidate: str | None, current: str | None) -> bool:
    """True when *candidate* is a version above *current* (or *current* is not one)."""
    new = parse_version(candidate)
    if new is None:
        return False
    old = parse_version(current)
    return old is None or new > old
