"""
Unit tests for ServerConfig.
"""

import os

import pytest

from publicsite import ServerConfig


ENV_VARS = (
    "PUBLICSITE_BASE_DIR", "PUBLICSITE_ROOT", "PUBLICSITE_HOST", "PUBLICSITE_PORT",
    "PUBLICSITE_WORKERS", "PUBLICSITE_LOG_LEVEL", "PUBLICSITE_STRICT_LOGS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestForBaseDir:
    def test_derives_root_and_log_paths(self, tmp_path):
        config = ServerConfig.for_base_dir(str(tmp_path), 9090)

        assert config.document_root == os.path.join(str(tmp_path), "public", "")
        assert config.document_root.endswith(os.sep)
        assert config.error_log_path == str(tmp_path / "logs" / "public_errors.log")
        assert config.load_time_log_path == str(tmp_path / "logs" / "public_load_time.log")
        assert config.port == 9090

    def test_overrides_win(self, tmp_path):
        config = ServerConfig.for_base_dir(str(tmp_path), 9090, host="0.0.0.0", harden_paths=False)
        assert config.host == "0.0.0.0"
        assert config.harden_paths is False


class TestFromEnv:
    def test_defaults(self):
        config = ServerConfig.from_env()

        assert config.host == "localhost"
        assert config.port == 8080
        assert config.document_root == "public/"
        assert config.error_log_path is None
        assert config.strict_logs is False

    def test_reads_variables(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PUBLICSITE_BASE_DIR", str(tmp_path))
        monkeypatch.setenv("PUBLICSITE_PORT", "3000")
        monkeypatch.setenv("PUBLICSITE_HOST", "127.0.0.1")
        monkeypatch.setenv("PUBLICSITE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("PUBLICSITE_STRICT_LOGS", "yes")

        config = ServerConfig.from_env()

        assert config.port == 3000
        assert config.host == "127.0.0.1"
        assert config.log_level == "DEBUG"
        assert config.strict_logs is True
        assert config.document_root == os.path.join(str(tmp_path), "public", "")
        assert config.error_log_path.endswith("public_errors.log")

    def test_root_overrides_base_dir(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PUBLICSITE_BASE_DIR", str(tmp_path))
        monkeypatch.setenv("PUBLICSITE_ROOT", "/var/www/")

        assert ServerConfig.from_env().document_root == "/var/www/"

    def test_small_worker_count_stays_valid(self, monkeypatch):
        monkeypatch.setenv("PUBLICSITE_WORKERS", "2")

        config = ServerConfig.from_env()
        config.validate()

        assert config.max_workers == 2
        assert config.min_workers == 2


class TestValidate:
    def test_defaults_are_valid(self):
        ServerConfig().validate()

    def test_port_zero_is_allowed(self):
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("overrides, message", [
        (dict(port=70000), "Invalid port"),
        (dict(port=-1), "Invalid port"),
        (dict(document_root=""), "document_root"),
        (dict(min_workers=0), "min_workers"),
        (dict(min_workers=8, max_workers=4), "max_workers"),
        (dict(queue_size=0), "queue_size"),
        (dict(read_timeout=0), "read_timeout"),
        (dict(shutdown_timeout=-1.0), "shutdown_timeout"),
    ])
    def test_rejects_bad_values(self, overrides, message):
        with pytest.raises(ValueError, match=message):
            ServerConfig(**overrides).validate()
