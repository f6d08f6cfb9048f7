"""Filesystem helpers for publishing mount contents as symlinks."""

import errno
import os
from pathlib import Path
from typing import List

from mountlink.core.logger import setup_logger
from mountlink.download.permissions_debug import log_link_permission_context

logger = setup_logger(__name__)

# Cap the diagnostic listing so a huge mount does not flood the log
_MAX_LISTED_ENTRIES = 500


def _is_permission_error(e: Exception) -> bool:
    """Check if exception is a permission error (including NFS/SMB/FUSE issues)."""
    return isinstance(e, PermissionError) or (isinstance(e, OSError) and e.errno == errno.EPERM)


def create_symlink(source_path: Path, link_path: Path) -> Path:
    """Create a symbolic link at ``link_path`` pointing to ``source_path``.

    Missing parent directories of ``link_path`` are created. An existing entry
    at ``link_path`` is never replaced.

    Args:
        source_path: Existing file or directory the link should point to
        link_path: Where the link is created

    Returns:
        The link path

    Raises:
        FileExistsError: If something already exists at ``link_path``
        OSError: If the filesystem refuses the link (permissions, no symlink support)
    """
    try:
        link_path.parent.mkdir(parents=True, exist_ok=True)
        os.symlink(str(source_path), str(link_path), target_is_directory=source_path.is_dir())
    except FileExistsError:
        logger.error("Cannot create symbolic link, path already exists: %s", link_path)
        raise
    except OSError as e:
        if _is_permission_error(e):
            log_link_permission_context("create_symlink", source=source_path, link=link_path, error=e)
        elif e.errno in (errno.ENOTSUP, errno.EOPNOTSUPP):
            logger.error("Filesystem does not support symbolic links at %s", link_path.parent)
        raise

    logger.debug("Linked %s -> %s", link_path, source_path)
    return link_path


def describe_directory_contents(path: Path) -> str:
    """Describe the entries of ``path`` for troubleshooting output.

    Directories are listed first with a trailing slash. Raises OSError if the
    directory cannot be read; callers decide whether that matters.
    """
    directories: List[str] = []
    files: List[str] = []

    with os.scandir(path) as entries:
        for entry in entries:
            try:
                is_dir = entry.is_dir()
            except OSError:
                is_dir = False
            (directories if is_dir else files).append(entry.name)

    names = [f"{name}/" for name in sorted(directories)] + sorted(files)
    if not names:
        return f"{path}: (empty)"

    shown = names[:_MAX_LISTED_ENTRIES]
    lines = [f"{path}:"] + [f"  {name}" for name in shown]
    if len(names) > len(shown):
        lines.append(f"  ... {len(names) - len(shown)} more")
    return "\n".join(lines)
