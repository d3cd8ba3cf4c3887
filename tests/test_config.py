"""
Config tests: env overrides and command splitting.
Run with: python -m pytest tests/test_config.py -v
"""

import pytest

from playbox.config.config import PlayboxConfig, split_command


class TestPlayboxConfig:
    def test_defaults(self):
        settings = PlayboxConfig()
        assert settings.toolchain_dir == "/go"
        assert settings.toolchain_bin() == "/go/bin"
        assert settings.step_deadline_s is None

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("PLAYBOX_TOOLCHAIN_DIR", "/opt/go")
        monkeypatch.setenv("PLAYBOX_STEP_DEADLINE_S", "2.5")
        settings = PlayboxConfig()
        assert settings.toolchain_bin() == "/opt/go/bin"
        assert settings.step_deadline_s == 2.5


class TestSplitCommand:
    def test_quoted_args(self):
        assert split_command("go build -o 'my bin' .") == ["go", "build", "-o", "my bin", "."]

    @pytest.mark.parametrize("command", ["", "   "])
    def test_empty_rejected(self, command):
        with pytest.raises(ValueError):
            split_command(command)
