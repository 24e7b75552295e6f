"""Tests for configuration resolution."""

from __future__ import annotations

import pytest

from sql_agent import config


class TestRequireEnv:
    def test_returns_env_value(self, monkeypatch):
        monkeypatch.setenv("SOME_SETTING", "value")
        assert config._require_env("SOME_SETTING") == "value"

    def test_missing_value_is_fatal(self, monkeypatch):
        monkeypatch.delenv("SOME_SETTING", raising=False)
        with pytest.raises(OSError, match="SOME_SETTING"):
            config._require_env("SOME_SETTING")

    def test_placeholder_value_counts_as_missing(self, monkeypatch):
        monkeypatch.setenv("SOME_SETTING", "your_api_key_here")
        with pytest.raises(OSError):
            config._require_env("SOME_SETTING")


class TestSystemPrompt:
    def test_inline_prompt_wins(self, monkeypatch, tmp_path):
        prompt_file = tmp_path / "prompt.txt"
        prompt_file.write_text("from file", encoding="utf-8")
        monkeypatch.setenv("SYSTEM_PROMPT", "inline prompt")
        monkeypatch.setenv("SYSTEM_PROMPT_FILE", str(prompt_file))
        assert config._load_system_prompt() == "inline prompt"

    def test_prompt_read_from_file(self, monkeypatch, tmp_path):
        prompt_file = tmp_path / "prompt.txt"
        prompt_file.write_text("  from file\n", encoding="utf-8")
        monkeypatch.delenv("SYSTEM_PROMPT", raising=False)
        monkeypatch.setenv("SYSTEM_PROMPT_FILE", str(prompt_file))
        assert config._load_system_prompt() == "from file"

    @pytest.mark.parametrize("contents", [None, "", "   \n"])
    def test_missing_or_empty_prompt_is_fatal(self, monkeypatch, tmp_path, contents):
        prompt_file = tmp_path / "prompt.txt"
        if contents is not None:
            prompt_file.write_text(contents, encoding="utf-8")
        monkeypatch.delenv("SYSTEM_PROMPT", raising=False)
        monkeypatch.setenv("SYSTEM_PROMPT_FILE", str(prompt_file))
        with pytest.raises(OSError, match="SYSTEM_PROMPT"):
            config._load_system_prompt()

    def test_bundled_prompt_file_is_usable(self):
        assert config._DEFAULT_PROMPT_FILE.read_text(encoding="utf-8").strip()
