"""Settings registration for the symlink downloader and logging."""

import os
from pathlib import Path
from typing import Any, Dict

from mountlink.config import env
from mountlink.core.logger import setup_logger
from mountlink.core.settings_registry import (
    ActionButton,
    CheckboxField,
    HeadingField,
    MultiSelectField,
    NumberField,
    SelectField,
    TextField,
    register_settings,
)

logger = setup_logger(__name__)

# Log bootstrap configuration values at DEBUG level
logger.debug("Bootstrap configuration:")
for key in ['CONFIG_DIR', 'LOG_DIR', 'ENABLE_LOGGING', 'DEBUG', 'LOG_LEVEL']:
    logger.debug(f"  {key}: {getattr(env, key)}")


_ARCHIVE_EXTENSION_OPTIONS = [
    {"value": "zip", "label": "ZIP"},
    {"value": "rar", "label": "RAR"},
    {"value": "tar", "label": "TAR"},
    {"value": "7z", "label": "7Z"},
]

_LOG_LEVEL_OPTIONS = [
    {"value": "DEBUG", "label": "Debug"},
    {"value": "INFO", "label": "Info"},
    {"value": "WARNING", "label": "Warning"},
    {"value": "ERROR", "label": "Error"},
]


def _test_mount_path(current_values: Dict[str, Any] = None) -> Dict[str, Any]:
    """Check that the mount path is configured and readable."""
    from mountlink.core.config import config

    current_values = current_values or {}
    mount_path = current_values.get("RCLONE_MOUNT_PATH") or config.get("RCLONE_MOUNT_PATH", "")

    if not mount_path:
        return {"success": False, "message": "Mount path is required"}

    path = Path(mount_path)
    if not path.exists():
        return {"success": False, "message": f"Mount path does not exist: {mount_path}"}
    if not path.is_dir():
        return {"success": False, "message": f"Mount path is not a directory: {mount_path}"}

    try:
        with os.scandir(path) as entries:
            count = sum(1 for _ in entries)
    except OSError as e:
        return {"success": False, "message": f"Cannot read mount path: {e}"}

    return {"success": True, "message": f"Mount path is readable ({count} top-level entries)"}


@register_settings("symlink", "Symlink Downloader", order=5)
def symlink_settings():
    """Where the remote mount lives and how long to wait for files to appear."""
    return [
        HeadingField(
            key="symlink_heading",
            title="Remote Mount",
            description=(
                "Completed downloads are linked from the remote mount instead of copied. "
                "The mount can lag behind the remote service, so files are polled for "
                "before the link is created."
            ),
        ),
        TextField(
            key="RCLONE_MOUNT_PATH",
            label="Mount Path",
            description="Local path where the remote storage is mounted (e.g. by rclone)",
            placeholder="/mnt/remote",
            required=True,
        ),
        ActionButton(
            key="test_mount_path",
            label="Test Mount Path",
            description="Check that the mount path exists and can be listed",
            style="primary",
            callback=_test_mount_path,
        ),
        NumberField(
            key="SYMLINK_MAX_RETRIES",
            label="Search Attempts",
            description="How many times to look for the file before giving up.",
            default=10,
            min_value=1,
            max_value=50,
        ),
        NumberField(
            key="SYMLINK_RETRY_DELAY",
            label="Retry Delay (seconds)",
            description="Attempt N waits N times this delay before searching again.",
            default=1,
            min_value=0,
            max_value=60,
            step=0.5,
        ),
        MultiSelectField(
            key="SYMLINK_ARCHIVE_EXTENSIONS",
            label="Archive Extensions",
            description="Downloads with these extensions are expected to appear unpacked as a folder.",
            options=_ARCHIVE_EXTENSION_OPTIONS,
            default=["zip", "rar", "tar"],
        ),
    ]


@register_settings("advanced", "Advanced", order=15)
def advanced_settings():
    """Logging settings."""
    return [
        CheckboxField(
            key="DEBUG",
            label="Debug Mode",
            description="Enable verbose logging to console and file. Not recommended for normal use.",
            default=False,
            requires_restart=True,
        ),
        SelectField(
            key="LOG_LEVEL",
            label="Log Level",
            description="Minimum level written to the log when debug mode is off.",
            options=_LOG_LEVEL_OPTIONS,
            default="INFO",
            requires_restart=True,
        ),
    ]
