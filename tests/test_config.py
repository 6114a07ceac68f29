"""Tests for server configuration loading."""

import pytest

from passserver.config import (
    ServerConfig,
    _parse_server_config,
    clear_config_cache,
    get_config,
    load_config,
)

ENV_VARS = [
    "PASS_SERVER_CONFIG",
    "PASSWORD_STORE",
    "PASS_SERVER_ENV",
    "PASS_SERVER_GPG_BINARY",
    "PASS_SERVER_GPG_HOMEDIR",
    "PASS_SERVER_GPG_TIMEOUT_SECONDS",
    "PASS_SERVER_ENCRYPTOR",
    "PASS_SERVER_SORT_INDEX",
    "PASS_SERVER_ENABLE_METRICS",
    "PASS_SERVER_HOST",
    "PASS_SERVER_PORT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Run each test without pass server environment variables."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


def test_defaults():
    config = load_config()

    assert config == ServerConfig()
    assert config.store == "."
    assert config.env == "development"
    assert config.gpg_binary == "gpg"
    assert config.gpg_timeout_seconds == 30.0
    assert config.sort_index is True
    assert config.enable_metrics is False
    assert config.port == 8080


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PASSWORD_STORE", "/srv/pass")
    monkeypatch.setenv("PASS_SERVER_ENV", "Production")
    monkeypatch.setenv("PASS_SERVER_GPG_TIMEOUT_SECONDS", "5")
    monkeypatch.setenv("PASS_SERVER_SORT_INDEX", "false")
    monkeypatch.setenv("PASS_SERVER_ENABLE_METRICS", "1")
    monkeypatch.setenv("PASS_SERVER_PORT", "9000")

    config = load_config()

    assert config.store == "/srv/pass"
    assert config.is_production
    assert config.gpg_timeout_seconds == 5.0
    assert config.sort_index is False
    assert config.enable_metrics is True
    assert config.port == 9000


def test_invalid_environment_value_ignored(monkeypatch):
    monkeypatch.setenv("PASS_SERVER_PORT", "not-a-port")
    monkeypatch.setenv("PASS_SERVER_ENV", "staging")

    config = load_config()

    assert config.port == 8080
    assert config.env == "development"


def test_yaml_file(tmp_path):
    config_file = tmp_path / "server.yaml"
    config_file.write_text(
        "store: /var/lib/pass\n"
        "gpg_homedir: /var/lib/gnupg\n"
        "gpg_timeout_seconds: 12\n"
        "sort_index: false\n"
    )

    config = load_config(str(config_file))

    assert config.store == "/var/lib/pass"
    assert config.gpg_homedir == "/var/lib/gnupg"
    assert config.gpg_timeout_seconds == 12.0
    assert config.sort_index is False


def test_yaml_file_from_environment(tmp_path, monkeypatch):
    config_file = tmp_path / "server.yaml"
    config_file.write_text("store: /from/file\n")
    monkeypatch.setenv("PASS_SERVER_CONFIG", str(config_file))

    assert load_config().store == "/from/file"


def test_environment_wins_over_file(tmp_path, monkeypatch):
    config_file = tmp_path / "server.yaml"
    config_file.write_text("store: /from/file\nport: 7000\n")
    monkeypatch.setenv("PASSWORD_STORE", "/from/env")

    config = load_config(str(config_file))

    assert config.store == "/from/env"
    assert config.port == 7000


def test_invalid_file_falls_back_to_defaults(tmp_path):
    config_file = tmp_path / "server.yaml"
    config_file.write_text("store: [unterminated\n")

    assert load_config(str(config_file)) == ServerConfig()


def test_non_mapping_file_falls_back_to_defaults(tmp_path):
    config_file = tmp_path / "server.yaml"
    config_file.write_text("- just\n- a list\n")

    assert load_config(str(config_file)) == ServerConfig()


def test_missing_file_uses_defaults(tmp_path):
    assert load_config(str(tmp_path / "missing.yaml")) == ServerConfig()


def test_parse_rejects_unknown_field():
    with pytest.raises(ValueError, match="Unknown config field"):
        _parse_server_config({"stor": "/typo"})


def test_parse_rejects_non_positive_timeout():
    with pytest.raises(ValueError, match="gpg_timeout_seconds"):
        _parse_server_config({"gpg_timeout_seconds": 0})


def test_get_config_is_cached(monkeypatch):
    monkeypatch.setenv("PASSWORD_STORE", "/first")
    first = get_config()
    monkeypatch.setenv("PASSWORD_STORE", "/second")

    assert get_config() is first

    clear_config_cache()
    assert get_config().store == "/second"
