"""
Unit tests for command-line parsing.
"""

import os

import pytest

from publicsite.__main__ import build_parser, config_from_args, main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("PUBLICSITE_"):
            monkeypatch.delenv(name)


def parse(*argv):
    return config_from_args(build_parser().parse_args(list(argv)))


class TestConfigFromArgs:
    def test_no_flags_gives_defaults(self):
        config = parse()
        assert config.port == 8080
        assert config.document_root == "public/"
        assert config.harden_paths is True

    def test_base_dir_derives_paths(self, tmp_path):
        config = parse("--base-dir", str(tmp_path), "--port", "9000")

        assert config.document_root == os.path.join(str(tmp_path), "public", "")
        assert config.error_log_path.endswith(os.path.join("logs", "public_errors.log"))
        assert config.port == 9000

    def test_root_gets_trailing_separator(self):
        assert parse("--root", "/srv/www").document_root == "/srv/www" + os.sep

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("PUBLICSITE_PORT", "3000")
        monkeypatch.setenv("PUBLICSITE_HOST", "0.0.0.0")

        config = parse("--host", "127.0.0.1")

        assert config.port == 3000
        assert config.host == "127.0.0.1"

    def test_environment_survives_base_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PUBLICSITE_LOG_LEVEL", "DEBUG")
        assert parse("--base-dir", str(tmp_path)).log_level == "DEBUG"

    def test_workers_scales_max(self):
        config = parse("--workers", "3")
        assert (config.min_workers, config.max_workers) == (3, 12)

    def test_switches(self):
        config = parse("--strict-logs", "--allow-traversal", "--log-level", "WARNING")
        assert config.strict_logs is True
        assert config.harden_paths is False
        assert config.log_level == "WARNING"


class TestMain:
    def test_invalid_config_exits_with_error(self, capsys):
        assert main(["--port", "70000"]) == 1
        assert "Invalid port" in capsys.readouterr().err

    def test_strict_logs_failure_exits_with_error(self, tmp_path, capsys):
        (tmp_path / "logs").write_text("file where the logs directory should be")

        assert main(["--base-dir", str(tmp_path), "--strict-logs"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "publicsite" in capsys.readouterr().out
