"""Tests for specstudy.cli module."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from conftest import A_URL, B_URL, write_json
from specstudy.cli import _build_options, _parse_args, _validate_args, main
from specstudy.config import ConfigError
from specstudy.study import study_crawl


@pytest.fixture(autouse=True)
def _no_dotenv():
    with patch("specstudy.cli.load_config") as mock_load:
        yield mock_load


@pytest.fixture
def report(tmp_path, crawl):
    return str(write_json(tmp_path / "crawl.json", crawl))


class TestParseArgs:
    def test_defaults(self):
        args = _parse_args(["crawl.json"])
        assert args.report == "crawl.json"
        assert args.tr is None
        assert args.spec is None
        assert args.format == "json"
        assert not args.dep and not args.onlynew and not args.orphans

    def test_all_options(self):
        args = _parse_args(
            [
                "./crawl",
                "--tr",
                "./tr",
                "-s",
                "a",
                "b",
                "-d",
                "ref.json",
                "--onlynew",
                "-f",
                "markdown",
                "--exclude",
                "w3\\.org",
                "--orphans",
                "-o",
                "out.md",
            ]
        )
        assert args.spec == ["a", "b"]
        assert args.diff == "ref.json"
        assert args.exclude == ["w3\\.org"]
        assert args.output == "out.md"

    def test_invalid_format(self):
        with pytest.raises(SystemExit):
            _parse_args(["crawl.json", "-f", "html"])


class TestValidateArgs:
    def test_diff_and_dep(self):
        with pytest.raises(ConfigError):
            _validate_args(_parse_args(["r", "--diff", "ref.json", "--dep"]))

    def test_perissue_requires_markdown(self):
        with pytest.raises(ConfigError, match="--format markdown"):
            _validate_args(_parse_args(["r", "--perissue"]))

    def test_perissue_excludes_diff(self):
        with pytest.raises(ConfigError, match="--perissue"):
            _validate_args(_parse_args(["r", "--perissue", "-f", "markdown", "--dep"]))

    def test_onlynew_requires_diff(self):
        with pytest.raises(ConfigError, match="--onlynew"):
            _validate_args(_parse_args(["r", "--onlynew"]))


class TestBuildOptions:
    def test_env_defaults(self, monkeypatch):
        monkeypatch.setenv("SPECSTUDY_EXCLUDE_LINKS", "example\\.com")
        monkeypatch.setenv("SPECSTUDY_REPORT_ORPHANS", "1")
        options = _build_options(_parse_args(["r"]))
        assert options.exclude_patterns == ["example\\.com"]
        assert options.report_orphans is True

    def test_arguments_override_env(self, monkeypatch):
        monkeypatch.setenv("SPECSTUDY_EXCLUDE_LINKS", "example\\.com")
        options = _build_options(_parse_args(["r", "--exclude", "w3\\.org"]))
        assert options.exclude_patterns == ["w3\\.org"]


class TestMain:
    def test_study_to_stdout(self, report, capsys):
        assert main([report]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["type"] == "study"
        assert data["results"]["b"]["brokenLinks"] == [A_URL + "#bar"]

    def test_study_to_file(self, report, tmp_path):
        output = tmp_path / "out" / "study.json"
        assert main([report, "-o", str(output)]) == 0
        data = json.loads(output.read_text(encoding="utf-8"))
        assert list(data["results"]) == ["a", "b"]

    def test_markdown(self, report, capsys):
        assert main([report, "--format", "markdown"]) == 0
        out = capsys.readouterr().out
        assert "## [Spec B](" + B_URL + ")" in out
        assert "* " + A_URL + "#bar" in out

    def test_spec_filter(self, report, capsys):
        assert main([report, "--spec", "a"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert list(data["results"]) == ["a"]

    def test_diff_only_new(self, report, tmp_path, crawl, capsys):
        crawl["b"]["links"] = [A_URL + "#foo"]
        reference = write_json(tmp_path / "reference.json", crawl)
        assert main([report, "--diff", str(reference), "--onlynew"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["type"] == "diff"
        assert data["results"]["b"]["added"]["brokenLinks"] == [A_URL + "#bar"]
        assert data["results"]["a"]["status"] == "unchanged"

    def test_diff_with_spec_missing_from_reference(self, report, tmp_path, crawl, capsys):
        reference = study_crawl(str(write_json(tmp_path / "old.json", {"a": crawl["a"]})))
        reference_path = write_json(tmp_path / "reference-study.json", reference.to_dict())
        assert main([report, "--diff", str(reference_path), "--spec", "b"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert list(data["results"]) == ["b"]
        assert data["results"]["b"]["status"] == "added"
        assert data["results"]["b"]["added"]["brokenLinks"] == [A_URL + "#bar"]

    def test_diff_filter_matching_nothing_in_report(self, report):
        assert main([report, "--diff", report, "--spec", "zzz"]) == 2

    def test_markdown_per_issue(self, report, capsys):
        assert main([report, "--format", "markdown", "--perissue"]) == 0
        out = capsys.readouterr().out
        assert "## Broken links" in out
        assert "### [Spec B](" + B_URL + ")" in out

    def test_dependencies(self, report, capsys):
        assert main([report, "--dep"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["type"] == "dependencies"
        assert data["results"]["a"]["dependents"] == ["b"]

    def test_diff_and_dep_exit_code(self, report):
        assert main([report, "--diff", report, "--dep"]) == 2

    def test_missing_report_exit_code(self, tmp_path):
        assert main([str(tmp_path / "missing.json")]) == 2

    def test_filter_without_match_exit_code(self, report):
        assert main([report, "--spec", "zzz"]) == 2

    def test_unexpected_error_exit_code(self, report):
        with patch("specstudy.cli.study_crawl_async", new_callable=AsyncMock) as mock_study:
            mock_study.side_effect = RuntimeError("boom")
            assert main([report]) == 1

    def test_keyboard_interrupt(self, report):
        with patch("specstudy.cli.study_crawl_async", new_callable=AsyncMock) as mock_study:
            mock_study.side_effect = KeyboardInterrupt()
            assert main([report]) == 130

    def test_loads_config(self, report, _no_dotenv, capsys):
        main([report])
        _no_dotenv.assert_called_once()
