"""
ConfigManager: dot-notation access to YAML tunables for LevelUp.

Purpose
-------
- Serve progression tunables (badge name tables, sweep limits, default
  attempt rewards, leaderboard limits) from YAML files under `config/`.
- Let operators change balance without touching engine code.

Responsibilities
----------------
- Discover and deep-merge every `*.yaml` / `*.yml` file in the config directory.
- Resolve dot-notation keys (`"progression.attempts.default_xp_reward"`).
- Hold in-memory runtime overrides (`ConfigManager.set`) on top of YAML.

Key Design Decisions
--------------------
- YAML is the single source of defaults; overrides live only in memory.
- Lazy bootstrap: the first `get()` before `initialize()` loads YAML.
- Malformed files are logged and skipped; they never abort startup.

Dependencies
------------
- PyYAML for parsing.
- `levelup.core.config.config.Config.CONFIG_DIR` for the default location.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, MutableMapping, Optional, Union

import yaml

from levelup.core.config.config import Config
from levelup.core.logging.logger import get_logger

logger = get_logger(__name__)

_MISSING = object()


class ConfigManager:
    """
    Hierarchical configuration access with YAML defaults.

    Examples
    --------
    >>> ConfigManager.initialize()
    >>> passes = ConfigManager.get("progression.achievements.max_sweep_passes", 5)
    """

    _defaults: Dict[str, Any] = {}
    _overrides: Dict[str, Any] = {}
    _initialized: bool = False
    _config_dir: Optional[Path] = None

    # =========================================================================
    # YAML LOADING
    # =========================================================================

    @staticmethod
    def _deep_merge_dict(
        target: MutableMapping[str, Any],
        source: MutableMapping[str, Any],
    ) -> None:
        """Recursively merge `source` into `target` (in-place)."""
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                ConfigManager._deep_merge_dict(target[key], value)
            else:
                target[key] = value

    @classmethod
    def _load_yaml_configs(cls, config_dir: Path) -> None:
        if not config_dir.exists():
            logger.warning(
                "Config directory not found; using built-in defaults only",
                extra={"config_dir": str(config_dir)},
            )
            return

        yaml_files = sorted(config_dir.rglob("*.yaml")) + sorted(
            config_dir.rglob("*.yml")
        )
        loaded_count = 0

        for yaml_file in yaml_files:
            try:
                with yaml_file.open("r", encoding="utf-8") as handle:
                    data = yaml.safe_load(handle)
            except (OSError, yaml.YAMLError) as exc:
                logger.warning(
                    "Failed to load YAML config",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
                continue

            if isinstance(data, dict):
                cls._deep_merge_dict(cls._defaults, data)
                loaded_count += 1
            elif data is not None:
                logger.warning(
                    "Ignoring non-dict YAML root object",
                    extra={
                        "file": str(yaml_file.relative_to(config_dir)),
                        "root_type": type(data).__name__,
                    },
                )

        logger.info(
            "YAML configs loaded",
            extra={
                "config_dir": str(config_dir),
                "yaml_file_count": loaded_count,
                "top_level_keys": sorted(cls._defaults),
            },
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @classmethod
    def initialize(cls, config_dir: Optional[Union[str, Path]] = None) -> None:
        """
        Load YAML defaults (idempotent unless `reset()` was called).

        Args:
            config_dir: Directory to scan; defaults to `Config.CONFIG_DIR`.
        """
        if cls._initialized:
            return

        cls._config_dir = Path(config_dir) if config_dir else Path(Config.CONFIG_DIR)
        cls._defaults = {}
        cls._load_yaml_configs(cls._config_dir)
        cls._initialized = True

    @classmethod
    def reset(cls) -> None:
        """Drop all loaded defaults and overrides (used by tests)."""
        cls._defaults = {}
        cls._overrides = {}
        cls._initialized = False
        cls._config_dir = None

    # =========================================================================
    # ACCESS
    # =========================================================================

    @staticmethod
    def _resolve(tree: Dict[str, Any], key: str) -> Any:
        value: Any = tree
        for part in key.split("."):
            if not isinstance(value, dict) or part not in value:
                return _MISSING
            value = value[part]
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Retrieve a configuration value by dot-notation path.

        Runtime overrides win over YAML defaults. Returns `default` when the
        key is absent or resolves to None.
        """
        if not cls._initialized:
            cls.initialize()

        if key in cls._overrides:
            return cls._overrides[key]

        value = cls._resolve(cls._defaults, key)
        if value is _MISSING or value is None:
            return default
        return value

    @classmethod
    def set(cls, key: str, value: Any) -> None:
        """Override a key in memory for the rest of the process lifetime."""
        old_value = cls.get(key)
        cls._overrides[key] = value
        logger.info(
            "Config override applied",
            extra={"config_key": key, "old_value": old_value, "new_value": value},
        )

    @classmethod
    def get_all_keys(cls) -> List[str]:
        """Return the top-level keys currently loaded."""
        if not cls._initialized:
            cls.initialize()
        return sorted(cls._defaults)
