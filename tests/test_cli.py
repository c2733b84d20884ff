"""Tests for the dependabot-metrics CLI."""

from unittest.mock import patch

import pytest
import yaml

from dependabot_metrics.cli.init_config import init_config
from dependabot_metrics.cli.main import CONFIG_ERROR_EXIT, build_parser, main
from dependabot_metrics.repo import RepoInfo


class TestParser:
    def test_collect_arguments(self):
        args = build_parser().parse_args(
            [
                "collect",
                "--from", "2023-03-01",
                "--to", "2023-03-16",
                "--outdated-limit", "10",
                "--daily",
                "--format", "json",
                "--repo", "alphagov/a",
                "--repo", "alphagov/b",
                "--auto-merge-actor", "govuk-ci",
            ]
        )
        assert args.from_date == "2023-03-01"
        assert args.outdated_limit == 10
        assert args.daily is True
        assert args.output_format == "json"
        assert args.repos == ["alphagov/a", "alphagov/b"]
        assert args.auto_merge_actor == "govuk-ci"
        assert args.no_dashboard is False

    def test_unknown_format_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["collect", "--from", "2023-03-01", "--to", "2023-03-02", "--format", "pdf"])


class TestConfigurationErrors:
    def test_from_after_to_exits_2(self, capsys, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit) as excinfo:
            main(["collect", "--from", "2023-03-16", "--to", "2023-03-01", "--outdated-limit", "5"])

        assert excinfo.value.code == CONFIG_ERROR_EXIT
        assert "must not be after" in capsys.readouterr().err

    def test_missing_outdated_limit_exits_2(self, capsys, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit) as excinfo:
            main(["collect", "--from", "2023-03-01", "--to", "2023-03-02"])

        assert excinfo.value.code == CONFIG_ERROR_EXIT
        assert "outdated limit" in capsys.readouterr().err

    def test_config_file_not_a_mapping_exits_2(self, capsys, tmp_path):
        config_file = tmp_path / "dependabot-metrics.yaml"
        config_file.write_text("- alphagov/whitehall\n")
        with pytest.raises(SystemExit) as excinfo:
            main(["collect", "--from", "2023-03-01", "--to", "2023-03-02", "--config", str(config_file)])

        assert excinfo.value.code == CONFIG_ERROR_EXIT
        assert "mapping" in capsys.readouterr().err

    def test_missing_auth_exits_2(self, capsys, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        monkeypatch.setattr("dependabot_metrics.config.GITHUB_TOKEN", None)
        monkeypatch.setattr("dependabot_metrics.config.GITHUB_APP_ID", None)
        with pytest.raises(SystemExit) as excinfo:
            main(["collect", "--from", "2023-03-01", "--to", "2023-03-02", "--outdated-limit", "5", "--repo", "a/b"])

        assert excinfo.value.code == CONFIG_ERROR_EXIT
        assert "GitHub auth required" in capsys.readouterr().err


class TestParseCommand:
    def test_parse_titles(self, capsys):
        main(["parse", "Bump rack from 2.2.0 to 3.0.0", "Bump the npm group with 3 updates"])
        out = capsys.readouterr().out

        assert "major" in out
        assert "rack 2.2.0 -> 3.0.0" in out
        assert "no match" in out


class TestNoCommand:
    def test_prints_help(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main([])
        assert excinfo.value.code == 0
        assert "collect" in capsys.readouterr().out


class TestInitConfig:
    def test_writes_config_from_git_remote(self, tmp_path):
        output = tmp_path / "dependabot-metrics.yaml"
        with patch("dependabot_metrics.cli.init_config.detect_repo_from_git", return_value=RepoInfo("alphagov", "whitehall")):
            init_config(output)

        data = yaml.safe_load(output.read_text())
        assert data["repos"] == ["alphagov/whitehall"]
        assert data["repos_owner"] == "alphagov"
        assert data["outdated_limit"] == 20

    def test_without_git_remote(self, tmp_path):
        output = tmp_path / "dependabot-metrics.yaml"
        with patch("dependabot_metrics.cli.init_config.detect_repo_from_git", return_value=None):
            content = init_config(output)

        assert content.startswith("# dependabot-metrics.yaml")
        assert yaml.safe_load(content)["repos"] == []

    def test_refuses_to_overwrite(self, tmp_path):
        output = tmp_path / "dependabot-metrics.yaml"
        output.write_text("repos: []\n")
        with pytest.raises(FileExistsError):
            init_config(output)

    def test_init_command_existing_file_exits_1(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "dependabot-metrics.yaml").write_text("repos: []\n")
        with pytest.raises(SystemExit) as excinfo:
            main(["init"])
        assert excinfo.value.code == 1
