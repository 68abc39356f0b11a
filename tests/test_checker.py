"""End-to-end tests for UpdateChecker with injected catalog, resolver and git host."""

from __future__ import annotations

import dataclasses
from unittest.mock import patch

import pytest
from conftest import FakeCatalog, FakeGitHub, FakeResolver, tag

from depsentinel.engines.file_updater import FileUpdater
from depsentinel.engines.update_checker import UpdateChecker
from depsentinel.exceptions import AllVersionsIgnored, DependencyFileNotFound
from depsentinel.models import DefaultSource, Dependency, DependencyFile, GitSource, Requirement

JWT_VERSIONS = ["v1.0.0", "v2.0.0", "v3.1.0", "v3.2.0", "v4.0.0-preview1"]

IS_NUMBER = "github.com/jonschlinkert/is-number"
IS_NUMBER_URL = "https://github.com/jonschlinkert/is-number"
SHA = "d5ac0584ee9ae7bd9288220a39780f155b9ad4c8"
TAGS = [tag("v0.3.0", "3" * 40), tag("v0.2.0", "2" * 40), tag("v0.1.0", "1" * 40)]


def _jwt_checker(jwt_go, files, **kwargs):
    kwargs.setdefault("catalog", FakeCatalog(JWT_VERSIONS))
    kwargs.setdefault("resolver", FakeResolver("3.2.0"))
    return UpdateChecker(jwt_go, files, **kwargs)


class TestRegistryDependency:
    def test_versions(self, jwt_go, gopkg_toml, gopkg_lock):
        checker = _jwt_checker(jwt_go, [gopkg_toml, gopkg_lock])
        assert checker.latest_version == "3.2.0"
        assert checker.latest_resolvable_version == "3.2.0"
        assert not checker.up_to_date()
        assert checker.can_update()

    def test_resolver_sees_unlocked_manifest(self, jwt_go, gopkg_toml, gopkg_lock):
        resolver = FakeResolver("3.2.0")
        checker = _jwt_checker(jwt_go, [gopkg_toml, gopkg_lock], resolver=resolver)
        checker.latest_resolvable_version
        assert 'version = ">= 1.0.0, <= 3.2.0"' in resolver.seen["Gopkg.toml"]
        assert resolver.seen["Gopkg.lock"] == gopkg_lock.content
        assert not resolver.workdir.exists()

    def test_widen_ranges_by_default(self, jwt_go, gopkg_toml):
        checker = _jwt_checker(jwt_go, [gopkg_toml])
        assert checker.requirements_update_strategy == "widen_ranges"
        (req,) = checker.updated_requirements
        assert req.requirement == ">= 1.0.0, < 4.0.0"

    def test_package_main_bumps(self, jwt_go, gopkg_toml):
        files = [dataclasses.replace(gopkg_toml, type="package_main")]
        checker = _jwt_checker(jwt_go, files)
        assert checker.requirements_update_strategy == "bump_versions"
        (req,) = checker.updated_requirements
        assert req.requirement == "3.2.0"

    def test_updated_dependency_feeds_file_updater(self, jwt_go, gopkg_toml, gopkg_lock):
        updated = _jwt_checker(jwt_go, [gopkg_toml, gopkg_lock]).updated_dependency()
        assert updated.version == "3.2.0"
        assert updated.previous_version == "1.0.0"
        assert updated.previous_requirements == jwt_go.requirements

        (file,) = FileUpdater(updated, [gopkg_toml, gopkg_lock]).updated_dependency_files()
        assert 'version = ">= 1.0.0, < 4.0.0"' in file.content

    def test_up_to_date(self, jwt_go, gopkg_toml):
        checker = _jwt_checker(
            jwt_go, [gopkg_toml], catalog=FakeCatalog(["v1.0.0"]), resolver=FakeResolver("1.0.0")
        )
        assert checker.up_to_date()
        assert not checker.can_update()
        assert checker.updated_dependency() is None

    def test_resolver_held_back(self, jwt_go, gopkg_toml):
        checker = _jwt_checker(jwt_go, [gopkg_toml], resolver=FakeResolver("2.0.0"))
        assert checker.latest_version == "3.2.0"
        assert checker.latest_resolvable_version == "2.0.0"
        (req,) = checker.updated_requirements
        assert req.requirement == ">= 1.0.0, < 3.0.0"

    def test_resolver_without_answer_keeps_current(self, jwt_go, gopkg_toml):
        checker = _jwt_checker(jwt_go, [gopkg_toml], resolver=FakeResolver(None))
        assert checker.latest_resolvable_version == "1.0.0"

    def test_ignored_versions(self, jwt_go, gopkg_toml):
        checker = _jwt_checker(jwt_go, [gopkg_toml], ignored_versions=[">= 3.0.0"])
        assert checker.latest_version == "2.0.0"

    def test_all_ignored_raises_when_asked(self, jwt_go, gopkg_toml):
        checker = _jwt_checker(
            jwt_go, [gopkg_toml], ignored_versions=[">= 1.1.0"], raise_on_ignored=True
        )
        with pytest.raises(AllVersionsIgnored):
            checker.latest_version

    def test_missing_manifest(self, jwt_go, gopkg_lock):
        with pytest.raises(DependencyFileNotFound):
            _jwt_checker(jwt_go, [gopkg_lock])


# ── git dependencies ─────────────────────────────────────────────────────


def _git_dep(version: str, **source) -> Dependency:
    return Dependency(
        name=IS_NUMBER,
        version=version,
        package_manager="dep",
        requirements=[
            Requirement(
                file="Gopkg.toml", requirement=None, source=GitSource(url=IS_NUMBER_URL, **source)
            )
        ],
    )


def _branch_toml() -> DependencyFile:
    return DependencyFile(
        name="Gopkg.toml",
        content=f'[[constraint]]\n  name = "{IS_NUMBER}"\n  branch = "master"\n',
    )


class TestGitDependency:
    def test_branch_behind_release_switches_to_registry(self):
        github = FakeGitHub(TAGS, {("v0.3.0", "master"): "behind"})
        checker = UpdateChecker(_git_dep(SHA, branch="master"), [_branch_toml()], github=github)
        assert checker.latest_version == "0.3.0"
        assert checker.latest_resolvable_version == "0.3.0"
        assert checker.updated_source == DefaultSource(source=IS_NUMBER)
        (req,) = checker.updated_requirements
        assert req.requirement == "^0.3.0"
        assert checker.can_update()

        updated = checker.updated_dependency()
        (file,) = FileUpdater(updated, [_branch_toml()]).updated_dependency_files()
        assert file.content == f'[[constraint]]\n  name = "{IS_NUMBER}"\n  version = "^0.3.0"\n'

    def test_branch_ahead_stays_on_git(self):
        github = FakeGitHub(TAGS, {("v0.3.0", "master"): "ahead"})
        checker = UpdateChecker(_git_dep(SHA, branch="master"), [_branch_toml()], github=github)
        assert checker.updated_source == GitSource(url=IS_NUMBER_URL, branch="master")
        assert not checker.can_update()
        assert checker.updated_dependency() is None

    def test_tag_pin_moves_to_next_tag(self):
        github = FakeGitHub(TAGS, {("v0.2.0", "v0.3.0"): "ahead"})
        file = DependencyFile(
            name="Gopkg.toml", content=f'[[constraint]]\n  name = "{IS_NUMBER}"\n  version = "v0.2.0"\n'
        )
        checker = UpdateChecker(_git_dep("v0.2.0", ref="v0.2.0"), [file], github=github)
        assert checker.latest_resolvable_version == "v0.3.0"
        assert checker.updated_source == GitSource(url=IS_NUMBER_URL, ref="v0.3.0")

        updated = checker.updated_dependency()
        assert updated.version == "v0.3.0"
        (new_file,) = FileUpdater(updated, [file]).updated_dependency_files()
        assert 'version = "v0.3.0"' in new_file.content

    def test_no_unlock_keeps_git_pin(self):
        github = FakeGitHub(TAGS, {("v0.2.0", "v0.3.0"): "ahead"})
        checker = UpdateChecker(_git_dep("v0.2.0", ref="v0.2.0"), [_branch_toml()], github=github)
        assert checker.latest_resolvable_version_with_no_unlock == "v0.2.0"
        assert not checker.can_update(requirements_to_unlock="none")

    def test_commit_pin_has_nothing_to_do(self):
        github = FakeGitHub(TAGS, {})
        checker = UpdateChecker(_git_dep(SHA, ref=SHA), [_branch_toml()], github=github)
        assert checker.up_to_date()
        assert checker.updated_dependency() is None

    def test_remove_git_source_queries_registry(self):
        resolver = FakeResolver("v0.3.0")
        checker = UpdateChecker(
            _git_dep(SHA, branch="master"),
            [_branch_toml()],
            remove_git_source=True,
            catalog=FakeCatalog(["v0.1.0", "v0.3.0"]),
            resolver=resolver,
        )
        assert checker.latest_version == "0.3.0"
        assert checker.latest_resolvable_version == "v0.3.0"
        assert resolver.seen["Gopkg.toml"] == (
            f'[[constraint]]\n  name = "{IS_NUMBER}"\n  version = ">= 0, <= 0.3.0"\n'
        )
        (req,) = checker.updated_requirements
        assert (req.requirement, req.source) == ("^0.3.0", DefaultSource(source=IS_NUMBER))

    def test_owned_github_client_closed(self):
        with patch("depsentinel.engines.update_checker.checker.GitHubClient") as client_cls:
            with UpdateChecker(_git_dep(SHA, branch="master"), [_branch_toml()]) as checker:
                checker._github_client
            client_cls.from_credentials.return_value.close.assert_called_once()


# ── ecosystems without a resolver step ───────────────────────────────────


class TestWithoutResolver:
    def _nuget(self, strategy=None):
        dep = Dependency(
            name="Newtonsoft.Json",
            version="9.0.1",
            package_manager="nuget",
            requirements=[Requirement(file="app.csproj", requirement="9.0.1")],
        )
        file = DependencyFile(
            name="app.csproj",
            content='<Project><ItemGroup><PackageReference Include="Newtonsoft.Json" Version="9.0.1" /></ItemGroup></Project>',
        )
        checker = UpdateChecker(
            dep,
            [file],
            requirements_update_strategy=strategy,
            catalog=FakeCatalog(["9.0.1", "12.0.3", "13.0.1"]),
        )
        return checker, file

    def test_latest_is_resolvable(self):
        checker, _ = self._nuget()
        assert checker.latest_resolvable_version == "13.0.1"
        # A bare NuGet version is a minimum, so 13.0.1 already satisfies it.
        assert checker.latest_resolvable_version_with_no_unlock == "13.0.1"

    def test_bump_versions(self):
        checker, file = self._nuget("bump_versions")
        (req,) = checker.updated_requirements
        assert req.requirement == "13.0.1"
        (new_file,) = FileUpdater(checker.updated_dependency(), [file]).updated_dependency_files()
        assert 'Version="13.0.1"' in new_file.content

    def test_constraint_blocks_update_without_unlock(self):
        source = DefaultSource(
            type="provider", registry_hostname="registry.terraform.io", module_identifier="hashicorp/aws"
        )
        dep = Dependency(
            name="hashicorp/aws",
            version="3.1.0",
            package_manager="terraform",
            requirements=[Requirement(file="main.tf", requirement="~> 3.1", source=source)],
        )
        file = DependencyFile(name="main.tf", content="")
        checker = UpdateChecker(dep, [file], catalog=FakeCatalog(["3.1.0", "4.0.0"]))
        assert checker.latest_resolvable_version == "4.0.0"
        assert checker.latest_resolvable_version_with_no_unlock == "3.1.0"
        assert not checker.can_update(requirements_to_unlock="none")
        (req,) = checker.updated_requirements
        assert req.requirement == ">= 3.1, < 5.0.0"


# ── resolvers that ignore ignore-ranges ──────────────────────────────────


class TestResolverHeldToLatest:
    GO_MOD = "module example.com/app\n\nrequire github.com/foo/bar v1.0.0\n"

    def _checker(self, selected, ignored):
        dep = Dependency(
            name="github.com/foo/bar",
            version="1.0.0",
            package_manager="go_modules",
            requirements=[Requirement(file="go.mod", requirement="v1.0.0")],
        )
        return UpdateChecker(
            dep,
            [DependencyFile(name="go.mod", content=self.GO_MOD)],
            ignored_versions=ignored,
            catalog=FakeCatalog(["v1.0.0", "v1.5.0", "v2.0.0"]),
            resolver=FakeResolver(selected),
        )

    def test_ignored_upgrade_capped_at_latest(self):
        checker = self._checker("v2.0.0", [">= 2.0.0"])
        assert checker.latest_version == "1.5.0"
        assert checker.latest_resolvable_version == "1.5.0"
        assert checker.updated_dependency().version == "1.5.0"

    def test_ignored_selection_below_latest_keeps_current(self):
        checker = self._checker("v1.5.0", ["1.5.0"])
        assert checker.latest_version == "2.0.0"
        assert checker.latest_resolvable_version == "1.0.0"
        assert not checker.can_update()

    def test_allowed_selection_passes_through(self):
        checker = self._checker("v2.0.0", [])
        assert checker.latest_resolvable_version == "v2.0.0"
