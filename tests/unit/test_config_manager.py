"""
Unit tests for ConfigManager and Config.

Tests YAML loading, dot-notation lookup, runtime overrides and environment
parsing.
"""

import pytest

from levelup.core.config.config import Config, Environment
from levelup.core.config.manager import ConfigManager


@pytest.mark.unit
class TestConfigManager:
    """Test YAML-backed configuration access."""

    def test_reads_project_tunables(self, config_manager):
        assert config_manager.get("progression.attempts.default_xp_reward") == 50
        assert config_manager.get("progression.leaderboard.max_limit") == 100
        assert config_manager.get("progression.badges.milestones")["XP Hunter"] == 1000

    def test_missing_key_returns_default(self, config_manager):
        assert config_manager.get("progression.nope.missing", 7) == 7
        assert config_manager.get("progression.attempts.default_xp_reward.deeper", "x") == "x"

    def test_override_wins_over_yaml(self, config_manager):
        config_manager.set("progression.achievements.max_sweep_passes", 2)

        assert config_manager.get("progression.achievements.max_sweep_passes") == 2

    def test_reset_drops_overrides(self, config_manager, tmp_path):
        config_manager.set("progression.attempts.default_xp_reward", 1)

        ConfigManager.reset()
        ConfigManager.initialize(tmp_path)

        assert ConfigManager.get("progression.attempts.default_xp_reward", 50) == 50

    def test_yaml_files_are_deep_merged(self, tmp_path):
        # Arrange
        (tmp_path / "a.yaml").write_text("progression:\n  attempts:\n    default_xp_reward: 10\n")
        (tmp_path / "b.yaml").write_text("progression:\n  leaderboard:\n    max_limit: 20\n")
        ConfigManager.reset()

        # Act
        ConfigManager.initialize(tmp_path)

        # Assert
        try:
            assert ConfigManager.get("progression.attempts.default_xp_reward") == 10
            assert ConfigManager.get("progression.leaderboard.max_limit") == 20
            assert ConfigManager.get_all_keys() == ["progression"]
        finally:
            ConfigManager.reset()

    def test_malformed_yaml_is_skipped(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("progression: [unclosed\n")
        (tmp_path / "good.yaml").write_text("core:\n  event:\n    listener_timeout: 3\n")
        ConfigManager.reset()

        ConfigManager.initialize(tmp_path)

        try:
            assert ConfigManager.get("core.event.listener_timeout") == 3
            assert ConfigManager.get("progression.attempts.default_xp_reward") is None
        finally:
            ConfigManager.reset()


@pytest.mark.unit
class TestEnvironmentConfig:
    """Test environment-driven settings."""

    def test_testing_environment_detected(self):
        assert Config.is_testing() is True
        assert Config.is_production() is False

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("production", Environment.PRODUCTION),
            ("PRODUCTION", Environment.PRODUCTION),
            ("testing", Environment.TESTING),
            ("nonsense", Environment.DEVELOPMENT),
        ],
    )
    def test_environment_parsing(self, raw, expected):
        assert Environment.from_string(raw) is expected
