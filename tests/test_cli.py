"""Tests for cli.py -- argument parsing and subcommand dispatch."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from wp_github_sync.cli import build_parser, main
from wp_github_sync.config_schema import UnifiedConfig
from wp_github_sync.core.errors import ConfigError
from wp_github_sync.sync.models import EndpointReport


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("wp_github_sync.cli.setup_logging"):
        yield


def _report() -> EndpointReport:
    return EndpointReport(endpoint_name="example", started_at="t0")


class TestParser:
    def test_run_options(self):
        args = build_parser().parse_args(
            ["--debug", "run", "--endpoint", "a", "--endpoint", "b", "--json"]
        )
        assert args.debug is True
        assert args.command == "run"
        assert args.endpoint == ["a", "b"]
        assert args.json is True

    def test_watch_default_interval(self):
        assert build_parser().parse_args(["watch"]).interval == 300

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    """Tests for main()."""

    def test_run_prints_reports(self, mock_config, capsys):
        with (
            patch(
                "wp_github_sync.cli.load_settings",
                return_value=(mock_config, UnifiedConfig()),
            ),
            patch(
                "wp_github_sync.cli.process_endpoints",
                new=AsyncMock(return_value=[_report()]),
            ) as mock_process,
        ):
            assert (
                main(
                    [
                        "run",
                        "--source",
                        "WordPress/6.4; https://x",
                        "--slug",
                        "hello-world",
                        "--event",
                        "post_updated",
                    ]
                )
                == 0
            )

        assert "Sync report for 'example'" in capsys.readouterr().out
        assert mock_process.call_args[1]["source"] == "WordPress/6.4; https://x"
        assert mock_process.call_args[1]["slug"] == "hello-world"
        assert mock_process.call_args[1]["event"] == "post_updated"

    def test_run_json(self, mock_config, capsys):
        with (
            patch(
                "wp_github_sync.cli.load_settings",
                return_value=(mock_config, UnifiedConfig()),
            ),
            patch(
                "wp_github_sync.cli.process_endpoints",
                new=AsyncMock(return_value=[_report()]),
            ),
        ):
            assert main(["run", "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data[0]["endpoint_name"] == "example"

    def test_run_no_changes(self, mock_config, capsys):
        with (
            patch(
                "wp_github_sync.cli.load_settings",
                return_value=(mock_config, UnifiedConfig()),
            ),
            patch(
                "wp_github_sync.cli.process_endpoints",
                new=AsyncMock(return_value=[]),
            ),
        ):
            assert main(["run"]) == 0
        assert "No changes." in capsys.readouterr().out

    def test_sync_error_exit_code(self, capsys):
        with patch(
            "wp_github_sync.cli.load_settings",
            side_effect=ConfigError("GitHub token not found"),
        ):
            assert main(["run"]) == 1
        assert "GitHub token not found" in capsys.readouterr().err

    def test_init_writes_starter_config(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.delenv("WP_SYNC_CONFIG", raising=False)

        assert main(["init"]) == 0

        assert (tmp_path / ".wp_github_sync" / "config.yml").exists()
        assert "config.yml" in capsys.readouterr().out
