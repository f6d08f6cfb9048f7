"""Ownership diagnostics logged when a link cannot be created on the library side."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Iterable

from mountlink.core.logger import setup_logger

logger = setup_logger(__name__)


def _owner(uid: int, gid: int) -> str:
    """``user:group (uid:gid)``, falling back to numbers for unknown ids."""
    try:
        import grp
        import pwd
    except ImportError:
        return f"{uid}:{gid}"

    try:
        user = pwd.getpwuid(uid).pw_name
    except KeyError:
        user = str(uid)
    try:
        group = grp.getgrgid(gid).gr_name
    except KeyError:
        group = str(gid)
    return f"{user}:{group} ({uid}:{gid})"


def _describe(path: Path) -> str:
    try:
        st = path.lstat()
    except OSError as e:
        return f"{path}: {e.strerror or e}"

    if stat.S_ISLNK(st.st_mode):
        kind = f"symlink -> {os.readlink(path)}"
    elif stat.S_ISDIR(st.st_mode):
        kind = "dir"
    else:
        kind = "file"
    return f"{path}: {kind} mode={stat.filemode(st.st_mode)} owner={_owner(st.st_uid, st.st_gid)}"


def _process_identity() -> str:
    if not hasattr(os, "geteuid"):
        return "unknown"
    groups = ",".join(str(g) for g in os.getgroups())
    return f"{_owner(os.geteuid(), os.getegid())} groups=[{groups}]"


def log_link_permission_context(label: str, source: Path, link: Path, error: Exception) -> None:
    """Log who we run as and the ownership of the source, the link and its parent.

    Only call this from failure paths. Never raises.
    """
    try:
        paths: Iterable[Path] = (source, link, link.parent)
        logger.debug("Link permission context (%s): running as %s, error: %s", label, _process_identity(), error)
        for path in paths:
            logger.debug("Link permission context (%s): %s", label, _describe(path))
    except Exception as context_error:
        logger.debug("Link permission context (%s) unavailable: %s", label, context_error)
