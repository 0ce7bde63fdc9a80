"""Tests for configuration management."""

import logging
import os
import stat

import pytest

from watchlog.config import Config, ConfigError, configure_logging, normalize_region


def test_config_default_paths(tmp_path):
    """Config uses data directory for storage."""
    config = Config(data_dir=tmp_path)
    assert config.config_path == tmp_path / "config.yaml"
    assert config.library_path == tmp_path / "library.yaml"
    assert config.log_path == tmp_path / "watchlog.log"
    assert config.region == "US"


def test_config_save_and_load(tmp_path):
    """Config saves and loads settings."""
    config = Config(data_dir=tmp_path)
    config.set_api_key("  key123  ")
    config.set_region("gb")
    config.save()

    config2 = Config(data_dir=tmp_path)
    config2.load()
    assert config2.api_key == "key123"
    assert config2.region == "GB"


def test_config_file_permissions(tmp_path):
    """Config file is only readable by its owner."""
    if os.name == "nt":
        pytest.skip("POSIX permissions only")
    config = Config(data_dir=tmp_path)
    config.set_api_key("key123")
    config.save()

    mode = stat.S_IMODE(os.stat(config.config_path).st_mode)
    assert mode == stat.S_IRUSR | stat.S_IWUSR


def test_config_load_missing_file(tmp_path):
    config = Config(data_dir=tmp_path)
    with pytest.raises(ConfigError, match="Config file not found"):
        config.load()


def test_load_or_default_without_file(tmp_path):
    config = Config(data_dir=tmp_path)
    config.load_or_default()
    assert config.region == "US"
    assert config.api_key is None


def test_empty_api_key_rejected(tmp_path):
    config = Config(data_dir=tmp_path)
    with pytest.raises(ConfigError):
        config.set_api_key("   ")


def test_env_api_key_takes_priority(tmp_path, monkeypatch):
    config = Config(data_dir=tmp_path)
    config.set_api_key("stored")
    assert config.tmdb_api_key == "stored"

    monkeypatch.setenv("TMDB_API_KEY", "from-env")
    assert config.tmdb_api_key == "from-env"


@pytest.mark.parametrize("code", ["", "U", "USA", "1A", None])
def test_invalid_region(tmp_path, code):
    config = Config(data_dir=tmp_path)
    with pytest.raises(ConfigError):
        config.set_region(code)
    assert config.region == "US"


def test_normalize_region():
    assert normalize_region(" tr ") == "TR"


def test_invalid_stored_region(tmp_path):
    (tmp_path / "config.yaml").write_text("providers:\n  region: Narnia\n")
    config = Config(data_dir=tmp_path)
    with pytest.raises(ConfigError):
        config.load()


def test_configure_logging_writes_to_log_file(tmp_path):
    log_path = tmp_path / "watchlog.log"
    configure_logging(log_path)
    configure_logging(log_path)

    logger = logging.getLogger("watchlog.test")
    logger.info("hello from test")
    for handler in logging.getLogger("watchlog").handlers:
        handler.flush()

    content = log_path.read_text()
    assert content.count("hello from test") == 1
    assert "INFO" in content
