"""Tests for version classification and requirement parsing."""

from __future__ import annotations

import pytest
from packaging.version import Version

from depsentinel.engines.update_checker.requirement import (
    InvalidRequirement,
    VersionRequirement,
    ignore_requirements,
    parse_requirement,
    render_range,
    satisfies,
)
from depsentinel.engines.update_checker.version import (
    candidate,
    is_commit_sha,
    is_newer,
    is_prerelease,
    is_pseudo_version,
    looks_like_version_tag,
    max_version,
    next_breaking,
    parse_version,
    strip_v,
)

# ── versions ─────────────────────────────────────────────────────────────


class TestVersion:
    def test_parse_strips_leading_v(self):
        assert parse_version("v1.2.3") == Version("1.2.3")

    def test_strip_v_only_before_digit(self):
        assert strip_v("v1.0") == "1.0"
        assert strip_v("vendor") == "vendor"

    def test_pseudo_version_is_not_ordered(self):
        pseudo = "v0.0.0-20180308133311-3b5fca3c7a3f"
        assert is_pseudo_version(pseudo)
        assert parse_version(pseudo) is None

    def test_commit_sha(self):
        assert is_commit_sha("a" * 40)
        assert not is_commit_sha("a" * 39)
        assert parse_version("a" * 40) is None

    def test_semver_prerelease(self):
        assert is_prerelease("1.0.0-beta.1")
        assert not is_prerelease("1.0.0")

    def test_unknown_prerelease_label_sorts_before_release(self):
        assert is_prerelease("2.0.0-foo")
        assert parse_version("2.0.0-foo") < Version("2.0.0")

    def test_version_tag_shapes(self):
        assert looks_like_version_tag("v0.3.0")
        assert looks_like_version_tag("1.2")
        assert looks_like_version_tag("release-1.0")
        assert not looks_like_version_tag("master")
        assert not looks_like_version_tag("abc1234")
        assert not looks_like_version_tag(None)

    def test_max_version_skips_junk_and_keeps_spelling(self):
        assert max_version(["1.0.0", "v3.2.0", "2.0.0", "junk"]) == "v3.2.0"
        assert max_version(["junk"]) is None

    def test_candidate_classification(self):
        beta = candidate("v2.0.0-beta.1")
        assert (beta.value, beta.is_prerelease, beta.is_pseudo_version) == ("v2.0.0-beta.1", True, False)
        pseudo = candidate("v0.0.0-20190101120000-abcdefabcdef")
        assert pseudo.is_pseudo_version and not pseudo.is_prerelease

    def test_next_breaking(self):
        assert next_breaking("3.2.0") == "4.0.0"
        assert next_breaking("0.3.1") == "0.4.0"
        assert next_breaking("1.2") == "2.0"
        assert next_breaking("5") == "6.0"

    def test_is_newer(self):
        assert is_newer("3.2.0", "1.0.0")
        assert not is_newer("1.0.0", "1.0.0")
        assert is_newer("0.3.0", "a" * 40)
        assert not is_newer("a" * 40, "1.0.0")


# ── requirements ─────────────────────────────────────────────────────────


class TestRequirement:
    def test_caret(self):
        assert satisfies("1.5.0", "^1.0.0", "dep")
        assert not satisfies("2.0.0", "^1.0.0", "dep")

    def test_caret_zero_major(self):
        assert satisfies("0.3.5", "^0.3.0", "dep")
        assert not satisfies("0.4.0", "^0.3.0", "dep")

    def test_bare_version_meaning_depends_on_ecosystem(self):
        assert not satisfies("3.2.0", "1.0.0", "dep")
        assert satisfies("1.9.0", "1.0.0", "dep")
        assert satisfies("3.0", "1.0", "nuget")
        assert not satisfies("1.0.1", "1.0.0", "terraform")

    def test_comparator_list(self):
        assert satisfies("3.2.0", ">= 1.0.0, < 4.0.0", "dep")
        assert not satisfies("4.0.0", ">= 1.0.0, < 4.0.0", "dep")
        assert satisfies("1.5", ">=1.0 <2.0", "dep")

    def test_pessimistic(self):
        assert satisfies("1.9", "~> 1.2", "terraform")
        assert not satisfies("2.0", "~> 1.2", "terraform")
        assert satisfies("1.2.9", "~> 1.2.0", "terraform")
        assert not satisfies("1.3.0", "~> 1.2.0", "terraform")

    def test_tilde(self):
        assert satisfies("1.2.9", "~1.2.0", "dep")
        assert not satisfies("1.3.0", "~1.2.0", "dep")

    def test_nuget_intervals(self):
        assert satisfies("1.5", "[1.0,2.0)", "nuget")
        assert not satisfies("2.0", "[1.0,2.0)", "nuget")
        assert satisfies("2.0", "[1.0,2.0]", "nuget")
        assert satisfies("1.1", "[1.1]", "nuget")
        assert not satisfies("1.2", "[1.1]", "nuget")
        assert satisfies("0.5", "(,1.0]", "nuget")

    def test_wildcard(self):
        assert satisfies("1.0.5", "1.0.*", "nuget")
        assert not satisfies("1.1.0", "1.0.*", "nuget")

    def test_missing_requirement_admits_everything(self):
        assert satisfies("9.9.9", None, "dep")

    def test_unparseable_requirement(self):
        with pytest.raises(InvalidRequirement):
            VersionRequirement("foo bar")
        assert not satisfies("1.0.0", "foo bar", "dep")

    def test_lower_bound_and_upper_bounds(self):
        req = parse_requirement(">= 1.0.0, < 2.0.0", "dep")
        assert req.lower_bound.version == "1.0.0"
        assert [c.version for c in req.upper_bounds] == ["2.0.0"]
        assert req.spaced

    def test_unspaced_operators(self):
        assert not parse_requirement(">=1.0.0,<2.0.0", "dep").spaced

    def test_ignore_requirements_split_on_or(self):
        reqs = ignore_requirements([">= 2.0, < 3.0 || >= 4.0", ""])
        assert len(reqs) == 2
        assert reqs[0].satisfied_by("2.5")
        assert reqs[1].satisfied_by("4.1")

    def test_ignore_bare_version_is_exact(self):
        (req,) = ignore_requirements(["2.0.0"])
        assert req.satisfied_by("2.0.0")
        assert not req.satisfied_by("2.0.1")


class TestRenderRange:
    def test_comparator(self):
        assert (
            render_range("1.0.0", "3.2.0", inclusive_upper=True, spaced=True)
            == ">= 1.0.0, <= 3.2.0"
        )

    def test_unspaced_exclusive(self):
        assert render_range("1.0", "2.0", inclusive_upper=False, spaced=False) == ">=1.0, <2.0"

    def test_open_ended(self):
        assert render_range("1.0", None, inclusive_upper=True, spaced=True) == ">= 1.0"

    def test_interval(self):
        assert (
            render_range("1.0", "3.2", inclusive_upper=True, spaced=False, interval=True)
            == "[1.0,3.2]"
        )
        assert render_range("1.0", None, inclusive_upper=True, spaced=False, interval=True) == "[1.0,)"
