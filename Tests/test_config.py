"""
Tests for the TOML configuration layer.
"""

from pathlib import Path

import pytest

from librenote import config


class TestConfig:

    def test_first_load_creates_default_file(self, config_file):
        loaded = config.load_cli_config_and_ensure_existence(force_reload=True)

        assert config_file.exists()
        assert loaded["_first_run"] is True
        assert loaded["gdrive"]["folder_name"] == "NoteFlow"
        assert loaded["gdrive"]["redirect_port"] == 8234

    def test_user_values_merge_over_defaults(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text('[gdrive]\nfolder_name = "Work"\n', encoding="utf-8")

        loaded = config.load_cli_config_and_ensure_existence(force_reload=True)

        assert loaded["gdrive"]["folder_name"] == "Work"
        assert loaded["gdrive"]["request_timeout"] == 30.0
        assert "_first_run" not in loaded

    def test_corrupt_file_falls_back_to_defaults(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text("[gdrive\nbroken", encoding="utf-8")

        loaded = config.load_cli_config_and_ensure_existence(force_reload=True)

        assert loaded["gdrive"]["folder_name"] == "NoteFlow"

    def test_save_setting_round_trips(self, config_file):
        config.load_cli_config_and_ensure_existence(force_reload=True)

        assert config.save_setting_to_cli_config("general", "log_level", "DEBUG") is True

        assert config.get_cli_setting("general", "log_level") == "DEBUG"
        assert 'log_level = "DEBUG"' in config_file.read_text(encoding="utf-8")

    def test_save_nested_section(self, config_file):
        assert config.save_setting_to_cli_config("gdrive.advanced", "page_size", 100) is True

        assert config.load_cli_config_and_ensure_existence()["gdrive"]["advanced"]["page_size"] == 100

    def test_get_cli_setting_default(self, config_file):
        assert config.get_cli_setting("missing", "key", "fallback") == "fallback"
        assert config.get_cli_setting("gdrive", "missing", 7) == 7

    def test_path_helpers_expand_user(self, config_file, monkeypatch):
        config.save_setting_to_cli_config("gdrive", "token_path", "~/tokens/t.json")

        assert config.get_token_path() == Path.home() / "tokens" / "t.json"

    def test_env_var_overrides_config_path(self, config_file):
        assert config.get_config_path() == config_file


@pytest.mark.parametrize("base,update,expected", [
    ({"a": 1}, {"b": 2}, {"a": 1, "b": 2}),
    ({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}}, {"a": {"x": 1, "y": 3}}),
    ({"a": {"x": 1}}, {"a": 5}, {"a": 5}),
])
def test_deep_merge_dicts(base, update, expected):
    assert config.deep_merge_dicts(base, update) == expected
