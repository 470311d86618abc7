"""Tests for layered TOML configuration."""

from __future__ import annotations

import tomllib

from aiblame.core.config import DEFAULT_CONFIG, get_config_value, load_config, save_config


class TestLoadConfig:
    def test_defaults(self, git_repo):
        config = load_config(str(git_repo))
        assert config == DEFAULT_CONFIG
        assert config is not DEFAULT_CONFIG

    def test_mutating_result_does_not_touch_defaults(self):
        config = load_config()
        config["capture"]["tools"].append("Bash")
        assert "Bash" not in DEFAULT_CONFIG["capture"]["tools"]

    def test_repo_overrides_global(self, git_repo, isolated_global_config):
        isolated_global_config.parent.mkdir(parents=True, exist_ok=True)
        isolated_global_config.write_text('[notes]\nref = "refs/notes/global"\nwrite_retries = 7\n', encoding="utf-8")
        local = git_repo / ".ai-blame" / "config.toml"
        local.parent.mkdir()
        local.write_text('[notes]\nref = "refs/notes/local"\n', encoding="utf-8")

        config = load_config(str(git_repo))
        assert config["notes"]["ref"] == "refs/notes/local"
        assert config["notes"]["write_retries"] == 7
        assert config["staging"]["lock_timeout_seconds"] == 5.0


class TestSaveConfig:
    def test_writes_repo_file(self, git_repo):
        path = save_config(str(git_repo), "notes.write_retries", "5")
        assert path == git_repo / ".ai-blame" / "config.toml"
        with open(path, "rb") as f:
            assert tomllib.load(f) == {"notes": {"write_retries": 5}}

    def test_global_when_no_repo(self, isolated_global_config):
        path = save_config(None, "display.max_prompt_chars", "80")
        assert path == isolated_global_config
        assert load_config()["display"]["max_prompt_chars"] == 80

    def test_value_parsing(self, git_repo):
        save_config(str(git_repo), "capture.enabled", "false")
        save_config(str(git_repo), "staging.lock_timeout_seconds", "0.5")
        save_config(str(git_repo), "capture.tools", "[Write, Edit]")
        save_config(str(git_repo), "capture.agent", 'my "agent"')

        config = load_config(str(git_repo))
        assert config["capture"]["enabled"] is False
        assert config["staging"]["lock_timeout_seconds"] == 0.5
        assert config["capture"]["tools"] == ["Write", "Edit"]
        assert config["capture"]["agent"] == 'my "agent"'

    def test_preserves_other_keys(self, git_repo):
        save_config(str(git_repo), "notes.ref", "refs/notes/x")
        save_config(str(git_repo), "notes.write_retries", "9")
        config = load_config(str(git_repo))
        assert config["notes"] == {"ref": "refs/notes/x", "write_retries": 9}


class TestGetConfigValue:
    def test_dotted_lookup(self):
        assert get_config_value(DEFAULT_CONFIG, "notes.ref") == "refs/notes/ai-blame"

    def test_missing(self):
        assert get_config_value(DEFAULT_CONFIG, "notes.nope") is None
        assert get_config_value(DEFAULT_CONFIG, "notes.ref.deeper") is None
