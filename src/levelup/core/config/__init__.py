"""
Configuration subsystem for LevelUp.

- **config.py**: static settings from environment variables (.env support)
- **manager.py**: progression tunables from YAML with dot-notation access

`ConfigManager` is imported from its own module because it depends on the
logging subsystem, which itself reads `Config`.

Usage
-----
```python
from levelup.core.config import Config
from levelup.core.config.manager import ConfigManager

url = Config.DATABASE_URL
reward = ConfigManager.get("progression.attempts.default_xp_reward", 50)
```
"""

from levelup.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
