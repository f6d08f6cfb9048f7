import os
import tempfile

# Bootstrap env is read at import time; keep test runs away from /config and /var/log
_TEST_ROOT = tempfile.mkdtemp(prefix="mountlink-tests-")
os.environ.setdefault("CONFIG_DIR", os.path.join(_TEST_ROOT, "config"))
os.environ.setdefault("LOG_DIR", os.path.join(_TEST_ROOT, "logs"))
os.environ.setdefault("ENABLE_LOGGING", "false")

import pytest  # noqa: E402


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point the settings registry at an empty config dir and reload settings."""
    from mountlink.core.config import config

    for key in ("RCLONE_MOUNT_PATH", "SYMLINK_MAX_RETRIES", "SYMLINK_RETRY_DELAY", "SYMLINK_ARCHIVE_EXTENSIONS"):
        monkeypatch.delenv(key, raising=False)

    config_dir = tmp_path / "config"
    monkeypatch.setattr("mountlink.config.env.CONFIG_DIR", config_dir)
    config.refresh()
    yield config_dir
    monkeypatch.undo()
    config.refresh()
