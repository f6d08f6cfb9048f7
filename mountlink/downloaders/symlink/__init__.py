"""Symlink downloader: wait for a download to surface on a remote mount, then link it.

The remote service reports a download as finished before the mount shows it,
so the file is searched for under several known layouts with a bounded
linear backoff, then published as symbolic links without copying data.
"""

from .handler import SymlinkDownloader  # noqa: F401
