"""Tests for configuration models and the INI config manager."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from imgcache.exceptions import ConfigurationError
from imgcache.models.config import CacheConfig
from imgcache.storage.config_manager import ConfigManager


class TestCacheConfig:
    """Test validation of the configuration model."""

    def test_defaults(self):
        config = CacheConfig()
        assert config.max_attempts == 3
        assert config.default_extension == ".jpg"
        assert config.temp_suffix == "temp"
        assert config.cache_dir.name == "imgcache"

    def test_default_cache_dir_follows_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))
        assert CacheConfig().cache_dir == tmp_path / "imgcache"

    def test_cache_dir_from_string(self, tmp_path):
        config = CacheConfig(cache_dir=str(tmp_path / "images"))
        assert config.cache_dir == tmp_path / "images"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("max_attempts", 0),
            ("max_workers", 100),
            ("default_extension", "jpg"),
            ("default_extension", "./x"),
            ("temp_suffix", ""),
            ("temp_suffix", "a.b"),
            ("read_timeout", 0),
            ("chunk_size", 10),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            CacheConfig(**{field: value})

    def test_assignment_is_validated(self):
        config = CacheConfig()
        with pytest.raises(ValidationError):
            config.max_attempts = -1


class TestConfigManager:
    """Test loading and saving INI configuration files."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = ConfigManager(tmp_path / "missing.ini").load_config()
        assert config.max_attempts == 3

    def test_overrides_apply(self, tmp_path):
        config = ConfigManager(tmp_path / "missing.ini").load_config(
            {"max_attempts": 5, "temp_suffix": None}
        )
        assert config.max_attempts == 5
        assert config.temp_suffix == "temp"

    def test_reads_ini_values(self, tmp_path):
        config_file = tmp_path / "config.ini"
        config_file.write_text(
            "[DEFAULT]\n"
            f"cache_dir = {tmp_path / 'images'}\n"
            "max_attempts = 2\n"
            "default_extension = .png\n"
            "unknown_key = whatever\n",
            encoding="utf-8",
        )
        config = ConfigManager(config_file).load_config()
        assert config.cache_dir == tmp_path / "images"
        assert config.max_attempts == 2
        assert config.default_extension == ".png"

    def test_overrides_beat_file(self, tmp_path):
        config_file = tmp_path / "config.ini"
        config_file.write_text("[DEFAULT]\nmax_attempts = 2\n", encoding="utf-8")
        config = ConfigManager(config_file).load_config({"max_attempts": 4})
        assert config.max_attempts == 4

    def test_invalid_value_raises_configuration_error(self, tmp_path):
        config_file = tmp_path / "config.ini"
        config_file.write_text("[DEFAULT]\nmax_attempts = lots\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config()

    def test_unparsable_file_raises_configuration_error(self, tmp_path):
        config_file = tmp_path / "config.ini"
        config_file.write_text("max_attempts = 2\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            ConfigManager(config_file).load_config()

    def test_save_then_load(self, tmp_path):
        config_file = tmp_path / "nested" / "config.ini"
        manager = ConfigManager(config_file)
        saved = manager.save_new_config(
            {"cache_dir": tmp_path / "images", "max_attempts": 7}
        )
        loaded = ConfigManager(config_file).load_config()
        assert config_file.is_file()
        assert loaded == saved
        assert loaded.cache_dir == Path(tmp_path / "images")

    def test_save_rejects_invalid_settings(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(tmp_path / "config.ini").save_new_config(
                {"max_attempts": 0}
            )
