"""Tests for the depsentinel CLI."""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest
from click.testing import CliRunner
from conftest import FakeCatalog, FakeResolver

from depsentinel.cli import main
from depsentinel.core.http import build_client
from depsentinel.engines.update_checker.catalogs import GoProxyCatalog
from depsentinel.engines.update_checker import UpdateChecker

GOPKG = (
    '[[constraint]]\n'
    '  name = "github.com/dgrijalva/jwt-go"\n'
    '  version = "1.0.0"\n'
)

DEPENDENCY = {
    "name": "github.com/dgrijalva/jwt-go",
    "version": "1.0.0",
    "package_manager": "dep",
    "requirements": [
        {
            "file": "Gopkg.toml",
            "requirement": "1.0.0",
            "source": {"type": "default", "source": "github.com/dgrijalva/jwt-go"},
        }
    ],
}


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch):
    monkeypatch.setenv("DEPSENTINEL_LOG_LEVEL", "WARNING")


@pytest.fixture
def project(tmp_path):
    (tmp_path / "Gopkg.toml").write_text(GOPKG)
    return tmp_path


def _request(project, **overrides) -> str:
    request = {"dependency": DEPENDENCY, "files": [{"name": "Gopkg.toml"}]}
    request.update(overrides)
    path = project / "request.json"
    path.write_text(json.dumps(request))
    return str(path)


def _fake_checker(versions, selected):
    def factory(*args, **kwargs):
        return UpdateChecker(
            *args, catalog=FakeCatalog(versions), resolver=FakeResolver(selected), **kwargs
        )

    return patch("depsentinel.cli.UpdateChecker", side_effect=factory)


class TestCheck:
    def test_json_output(self, project):
        with _fake_checker(["v1.0.0", "v3.2.0"], "3.2.0"):
            result = CliRunner().invoke(main, ["check", _request(project), "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["latest_version"] == "3.2.0"
        assert data["latest_resolvable_version"] == "3.2.0"
        assert data["can_update"] is True
        assert data["updated_requirements"][0]["requirement"] == ">= 1.0.0, < 4.0.0"

    def test_text_output(self, project):
        with _fake_checker(["v1.0.0", "v3.2.0"], "3.2.0"):
            result = CliRunner().invoke(main, ["check", _request(project)])
        assert result.exit_code == 0, result.output
        assert "Resolvable: 3.2.0" in result.output
        assert "[~] Gopkg.toml: 1.0.0 -> >= 1.0.0, < 4.0.0" in result.output

    def test_strategy_from_request(self, project):
        with _fake_checker(["v1.0.0", "v3.2.0"], "3.2.0"):
            result = CliRunner().invoke(
                main, ["check", _request(project, strategy="bump_versions"), "--json"]
            )
        assert json.loads(result.output)["updated_requirements"][0]["requirement"] == "3.2.0"

    def test_checker_error_exits_nonzero(self, project):
        request = _request(project, ignored_versions=[">= 1.1.0"], raise_on_ignored=True)
        with _fake_checker(["v1.0.0", "v3.2.0"], "3.2.0"):
            result = CliRunner().invoke(main, ["check", request])
        assert result.exit_code == 1
        assert "Error: All updates for github.com/dgrijalva/jwt-go were ignored" in result.output

    def test_registry_outage_reported_without_traceback(self, project):
        client = build_client(transport=httpx.MockTransport(lambda r: httpx.Response(503)))

        def factory(*args, **kwargs):
            catalog = GoProxyCatalog(client, proxy_url="https://proxy.golang.org")
            return UpdateChecker(*args, catalog=catalog, resolver=FakeResolver("3.2.0"), **kwargs)

        with patch("depsentinel.cli.UpdateChecker", side_effect=factory):
            result = CliRunner().invoke(main, ["check", _request(project)])
        assert result.exit_code == 1
        assert not isinstance(result.exception, httpx.HTTPError)
        assert "Error: list_versions:github.com/dgrijalva/jwt-go failed after 2 attempts" in result.output
        assert "proxy.golang.org" in result.output


class TestUpdate:
    def test_prints_diff_without_writing(self, project):
        with _fake_checker(["v1.0.0", "v3.2.0"], "3.2.0"):
            result = CliRunner().invoke(main, ["update", _request(project)])
        assert result.exit_code == 0, result.output
        assert "Updating github.com/dgrijalva/jwt-go 1.0.0 -> 3.2.0" in result.output
        assert '-  version = "1.0.0"' in result.output
        assert '+  version = ">= 1.0.0, < 4.0.0"' in result.output
        assert (project / "Gopkg.toml").read_text() == GOPKG

    def test_write(self, project):
        with _fake_checker(["v1.0.0", "v3.2.0"], "3.2.0"):
            result = CliRunner().invoke(main, ["update", _request(project), "--write"])
        assert result.exit_code == 0, result.output
        assert "Wrote 1 file(s)." in result.output
        assert 'version = ">= 1.0.0, < 4.0.0"' in (project / "Gopkg.toml").read_text()

    def test_up_to_date(self, project):
        with _fake_checker(["v1.0.0"], "1.0.0"):
            result = CliRunner().invoke(main, ["update", _request(project), "--write"])
        assert result.exit_code == 0, result.output
        assert "github.com/dgrijalva/jwt-go is up to date." in result.output
        assert (project / "Gopkg.toml").read_text() == GOPKG


class TestRequestValidation:
    def test_invalid_json(self, project):
        path = project / "request.json"
        path.write_text("{not json")
        result = CliRunner().invoke(main, ["check", str(path)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_missing_field(self, project):
        path = project / "request.json"
        path.write_text(json.dumps({"dependency": DEPENDENCY}))
        result = CliRunner().invoke(main, ["check", str(path)])
        assert result.exit_code == 1
        assert "Missing required field 'files'" in result.output

    def test_unknown_strategy(self, project):
        result = CliRunner().invoke(main, ["check", _request(project, strategy="yolo")])
        assert result.exit_code == 1
        assert "Unknown strategy 'yolo'" in result.output

    def test_missing_dependency_file(self, project):
        request = _request(project, files=[{"name": "Gopkg.toml"}, {"name": "Gopkg.lock"}])
        result = CliRunner().invoke(main, ["check", request])
        assert result.exit_code == 1
        assert "Dependency file not found" in result.output

    def test_file_outside_project_rejected(self, project):
        request = _request(project, files=[{"name": "passwd", "directory": "../../etc"}])
        result = CliRunner().invoke(main, ["check", request])
        assert result.exit_code == 1
        assert "escapes the working directory" in result.output
