"""Declarative settings with per-tab JSON persistence.

Each settings tab is a function returning a list of fields, registered with
``@register_settings``. Values live in ``CONFIG_DIR/plugins/<tab>.json`` and
resolve as environment variable > config file > field default.
"""

import inspect
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Optional, Tuple, Union

from mountlink.core.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class FieldBase:
    """A setting that holds a value."""
    key: str                              # Env var name and config file key
    label: str
    description: str = ""
    default: Any = None
    required: bool = False
    env_var: Optional[str] = None         # Read this env var instead of ``key``
    env_supported: bool = True
    requires_restart: bool = False

    stores_value: ClassVar[bool] = True

    def get_env_var_name(self) -> str:
        return self.env_var or self.key

    def get_field_type(self) -> str:
        return self.__class__.__name__

    def parse_env(self, raw: str) -> Any:
        return raw

    def coerce(self, value: Any) -> Any:
        """Convert text (CLI input, hand-edited config) to this field's type."""
        return self.parse_env(value) if isinstance(value, str) else value

    def display_extras(self) -> Dict[str, Any]:
        return {}


@dataclass
class TextField(FieldBase):
    placeholder: str = ""
    max_length: Optional[int] = None

    def coerce(self, value: Any) -> Any:
        # KEY=123 on the command line arrives as a number
        return value if value is None else str(value)

    def display_extras(self) -> Dict[str, Any]:
        extras: Dict[str, Any] = {"placeholder": self.placeholder}
        if self.max_length:
            extras["maxLength"] = self.max_length
        return extras


@dataclass
class NumberField(FieldBase):
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    step: float = 1
    default: float = 0

    def parse_env(self, raw: str) -> Any:
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            logger.warning(f"Invalid number for {self.key}: {raw!r}, using default")
            return self.default

    def display_extras(self) -> Dict[str, Any]:
        return {"min": self.min_value, "max": self.max_value, "step": self.step}


@dataclass
class CheckboxField(FieldBase):
    default: bool = False

    def parse_env(self, raw: str) -> Any:
        from mountlink.config.env import string_to_bool
        return string_to_bool(raw)


@dataclass
class SelectField(FieldBase):
    # A list of {value, label} dicts, or a callable returning one
    options: Any = field(default_factory=list)

    def display_extras(self) -> Dict[str, Any]:
        return {"options": self.options() if callable(self.options) else self.options}


@dataclass
class MultiSelectField(SelectField):
    default: List[str] = field(default_factory=list)

    def parse_env(self, raw: str) -> Any:
        # Comma separated: "zip,rar"
        return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class ActionButton:
    """Runs ``callback`` on demand; the callback returns ``{"success", "message"}``."""
    key: str
    label: str
    description: str = ""
    style: str = "default"
    callback: Optional[Callable[..., Dict[str, Any]]] = None

    stores_value: ClassVar[bool] = False

    def get_field_type(self) -> str:
        return "ActionButton"


@dataclass
class HeadingField:
    key: str
    title: str
    description: str = ""

    stores_value: ClassVar[bool] = False

    def get_field_type(self) -> str:
        return "HeadingField"


SettingsField = Union[FieldBase, ActionButton, HeadingField]


@dataclass
class SettingsTab:
    name: str                             # Also the config file name
    display_name: str
    fields: List[SettingsField] = field(default_factory=list)
    order: int = 100                      # Lower sorts first

    def value_fields(self) -> List[FieldBase]:
        return [f for f in self.fields if f.stores_value]

    def find_action(self, key: str) -> Optional[ActionButton]:
        for f in self.fields:
            if isinstance(f, ActionButton) and f.key == key:
                return f
        return None


_TABS: Dict[str, SettingsTab] = {}
_TABS_LOCK = Lock()


def register_settings(name: str, display_name: str, order: int = 100):
    """Register the fields returned by the decorated function as a settings tab."""
    def decorator(func: Callable[[], List[SettingsField]]):
        tab = SettingsTab(name=name, display_name=display_name, fields=func(), order=order)
        with _TABS_LOCK:
            _TABS[name] = tab
        logger.debug(f"Registered settings tab: {name} ({len(tab.fields)} fields)")
        return func
    return decorator


def get_settings_tab(name: str) -> Optional[SettingsTab]:
    return _TABS.get(name)


def get_all_settings_tabs() -> List[SettingsTab]:
    return sorted(_TABS.values(), key=lambda t: (t.order, t.name))


def iter_value_fields() -> Iterator[Tuple[SettingsTab, FieldBase]]:
    for tab in get_all_settings_tabs():
        for value_field in tab.value_fields():
            yield tab, value_field


# --- Config files ---

def _config_path(tab_name: str) -> Path:
    from mountlink.config import env
    return Path(env.CONFIG_DIR) / "plugins" / f"{tab_name}.json"


def load_config_file(tab_name: str) -> Dict[str, Any]:
    """Saved values for a tab; an unreadable or corrupt file counts as empty."""
    path = _config_path(tab_name)
    if not path.exists():
        return {}
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in config file {path}: {e}")
    except OSError as e:
        logger.error(f"Cannot read config file {path}: {e}")
    return {}


def save_config_file(tab_name: str, values: Dict[str, Any]) -> bool:
    """Merge ``values`` into the tab's config file."""
    path = _config_path(tab_name)
    merged = {**load_config_file(tab_name), **values}
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(merged, indent=2))
    except OSError as e:
        logger.error_trace(f"Error saving config file {path}: {e}")
        return False
    logger.info(f"Saved settings to {path}")
    return True


# --- Value resolution ---

def is_value_from_env(setting: SettingsField) -> bool:
    if not setting.stores_value or not setting.env_supported:
        return False
    return setting.get_env_var_name() in os.environ


def get_setting_value(setting: SettingsField, tab_name: str) -> Any:
    if not setting.stores_value:
        return None
    if is_value_from_env(setting):
        return setting.parse_env(os.environ[setting.get_env_var_name()])
    saved = load_config_file(tab_name)
    if setting.key in saved:
        return setting.coerce(saved[setting.key])
    return setting.default


# --- Display ---

def serialize_field(setting: SettingsField, tab_name: str, include_value: bool = True) -> Dict[str, Any]:
    data: Dict[str, Any] = {"key": setting.key, "type": setting.get_field_type(), "description": setting.description}

    if isinstance(setting, HeadingField):
        data["title"] = setting.title
        return data

    data["label"] = setting.label
    if isinstance(setting, ActionButton):
        data["style"] = setting.style
        return data

    data["required"] = setting.required
    data["requiresRestart"] = setting.requires_restart
    data.update(setting.display_extras())
    if include_value:
        value = get_setting_value(setting, tab_name)
        data["value"] = "" if value is None else value
        data["fromEnv"] = is_value_from_env(setting)
    return data


def serialize_tab(tab: SettingsTab, include_values: bool = True) -> Dict[str, Any]:
    return {
        "name": tab.name,
        "displayName": tab.display_name,
        "order": tab.order,
        "fields": [serialize_field(f, tab.name, include_values) for f in tab.fields],
    }


def serialize_all_settings(include_values: bool = True) -> Dict[str, Any]:
    return {"tabs": [serialize_tab(t, include_values) for t in get_all_settings_tabs()]}


# --- Mutations ---

def execute_action(tab_name: str, action_key: str, current_values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Run an action button's callback.

    Callbacks that accept ``current_values`` receive unsaved values so they
    can be tested before saving. Errors are reported, not raised.
    """
    tab = get_settings_tab(tab_name)
    if tab is None:
        return {"success": False, "message": f"Unknown settings tab: {tab_name}"}

    action = tab.find_action(action_key)
    if action is None:
        return {"success": False, "message": f"Unknown action: {action_key}"}
    if action.callback is None:
        return {"success": False, "message": "Action has no callback defined"}

    try:
        if "current_values" in inspect.signature(action.callback).parameters:
            return action.callback(current_values=current_values or {})
        return action.callback()
    except Exception as e:
        logger.error_trace(f"Action {tab_name}.{action_key} failed: {e}")
        return {"success": False, "message": str(e)}


def update_settings(tab_name: str, values: Dict[str, Any]) -> Dict[str, Any]:
    """Persist ``values`` for a tab and reload the live config.

    Keys set through the environment or unknown to the tab are skipped.
    """
    tab = get_settings_tab(tab_name)
    if tab is None:
        return {"success": False, "message": f"Unknown settings tab: {tab_name}", "updated": []}

    known = {f.key: f for f in tab.value_fields()}
    unknown = [k for k in values if k not in known]
    from_env = [k for k in values if k in known and is_value_from_env(known[k])]
    to_save = {k: known[k].coerce(v) for k, v in values.items() if k in known and k not in from_env}

    if unknown:
        logger.warning(f"Ignoring unknown settings for {tab_name}: {', '.join(unknown)}")
    env_note = f". Skipped (set via env): {', '.join(from_env)}" if from_env else ""

    if not to_save:
        return {"success": True, "message": f"No settings to update{env_note}", "updated": []}
    if not save_config_file(tab_name, to_save):
        return {"success": False, "message": "Failed to save settings", "updated": []}

    from mountlink.core.config import config
    config.refresh()

    return {"success": True, "message": f"Updated {len(to_save)} setting(s){env_note}", "updated": list(to_save)}
