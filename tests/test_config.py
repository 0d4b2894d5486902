"""
Unit tests for configuration management.
"""

from pathlib import Path

from workchat.config import Config, get_server_url


def test_server_url_defaults(monkeypatch):
    monkeypatch.delenv("WORKCHAT_SERVER_URL", raising=False)
    monkeypatch.delenv("WORKCHAT_HOST", raising=False)
    monkeypatch.delenv("WORKCHAT_PORT", raising=False)
    assert get_server_url() == "http://localhost:3000"


def test_server_url_from_host_and_port(monkeypatch):
    monkeypatch.delenv("WORKCHAT_SERVER_URL", raising=False)
    monkeypatch.setenv("WORKCHAT_HOST", "example.test")
    monkeypatch.setenv("WORKCHAT_PORT", "8080")
    assert get_server_url() == "http://example.test:8080"


def test_explicit_server_url_wins(monkeypatch):
    monkeypatch.setenv("WORKCHAT_SERVER_URL", "https://chat.example.test/")
    monkeypatch.setenv("WORKCHAT_PORT", "8080")
    assert get_server_url() == "https://chat.example.test"


def test_from_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("WORKCHAT_API_PATH", "/api/flights")
    monkeypatch.setenv("WORKCHAT_STATE_FILE", str(tmp_path / "state.json"))
    monkeypatch.setenv("WORKCHAT_MAX_CONSECUTIVE_ERRORS", "2")
    monkeypatch.setenv("WORKCHAT_TIMEOUT", "5")

    config = Config.from_env()

    assert config.api_path == "/api/flights"
    assert config.state_file == tmp_path / "state.json"
    assert config.max_consecutive_errors == 2
    assert config.timeout == 5.0


def test_state_file_under_data_dir(monkeypatch, tmp_path):
    monkeypatch.delenv("WORKCHAT_STATE_FILE", raising=False)
    monkeypatch.setenv("WORKCHAT_DATA_DIR", str(tmp_path))
    assert Config.from_env().state_file == Path(tmp_path) / "session.json"


def test_reload(monkeypatch):
    config = Config.from_env()
    monkeypatch.setenv("WORKCHAT_API_PATH", "/api/other")
    config.reload()
    assert config.api_path == "/api/other"
