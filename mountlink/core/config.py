"""Process-wide configuration backed by the settings registry.

Values resolve as: environment variable > config file > field default.
Settings are loaded lazily on first access and cached until ``refresh()``.
"""

from threading import RLock
from typing import Any, Dict, Optional

from mountlink.core.logger import setup_logger

logger = setup_logger(__name__)


class Config:
    """Read-only view of every registered setting."""

    def __init__(self) -> None:
        self._values: Optional[Dict[str, Any]] = None
        self._lock = RLock()

    def _load(self) -> Dict[str, Any]:
        # Registering the tabs is a side effect of importing the settings module
        import mountlink.config.settings  # noqa: F401
        from mountlink.core.settings_registry import get_setting_value, iter_value_fields

        values = {setting.key: get_setting_value(setting, tab.name) for tab, setting in iter_value_fields()}
        logger.debug(f"Loaded {len(values)} settings")
        return values

    def refresh(self) -> None:
        """Reload all settings from env and config files."""
        with self._lock:
            self._values = self._load()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if self._values is None:
                self._values = self._load()
            value = self._values.get(key)
        return default if value is None else value

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        value = self.get(name)
        if value is None:
            raise AttributeError(f"Unknown setting: {name}")
        return value


config = Config()
