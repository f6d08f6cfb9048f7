"""Bootstrap configuration read from the environment.

These values are needed before the settings registry can be consulted (where
config files live, where logs go), so they are resolved once at import time.
"""

import os
from pathlib import Path


def string_to_bool(value: str) -> bool:
    """Parse common truthy strings ("true", "1", "yes", "on")."""
    return str(value).strip().lower() in ("true", "1", "yes", "on", "y")


CONFIG_DIR = Path(os.getenv("CONFIG_DIR", "/config"))
LOG_DIR = Path(os.getenv("LOG_DIR", "/var/log/mountlink"))
LOG_FILE_NAME = "mountlink.log"

ENABLE_LOGGING = string_to_bool(os.getenv("ENABLE_LOGGING", "true"))
DEBUG = string_to_bool(os.getenv("DEBUG", "false"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
