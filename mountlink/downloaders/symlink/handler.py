"""Symlink download handler - links a finished remote download from the mount."""

from pathlib import Path
from typing import Iterable, List, Optional

from mountlink.core.config import config
from mountlink.core.logger import setup_logger
from mountlink.core.models import TargetDescriptor
from mountlink.download.fs import describe_directory_contents
from mountlink.downloaders import (
    DownloadCancelled,
    Downloader,
    DownloaderState,
    DownloadProgress,
    register_downloader,
)

from .candidates import (
    DEFAULT_ARCHIVE_EXTENSIONS,
    generate_candidates,
    generate_unarchived_candidates,
    is_archive_name,
    normalize_mount_root,
    normalize_relative_path,
    split_name,
)
from .errors import NotFoundAfterRetries
from .materializer import SymlinkMaterializer
from .poller import MAX_RETRIES, RETRY_DELAY, FileSystemPoller
from .types import PathCandidate

logger = setup_logger(__name__)


@register_downloader("symlink")
class SymlinkDownloader(Downloader):
    """Wait for a download to appear on the remote mount and link it into place.

    Mount root, retry ceiling and delay default to the ``symlink`` settings
    when not passed explicitly.
    """

    def __init__(
        self,
        target: TargetDescriptor,
        mount_root: Optional[str] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        archive_extensions: Optional[Iterable[str]] = None,
    ):
        super().__init__(target)
        if mount_root is None:
            mount_root = config.get("RCLONE_MOUNT_PATH", "")
        if max_retries is None:
            max_retries = int(config.get("SYMLINK_MAX_RETRIES", MAX_RETRIES))
        if retry_delay is None:
            retry_delay = float(config.get("SYMLINK_RETRY_DELAY", RETRY_DELAY))
        if archive_extensions is None:
            archive_extensions = config.get("SYMLINK_ARCHIVE_EXTENSIONS", list(DEFAULT_ARCHIVE_EXTENSIONS))

        if not mount_root:
            raise ValueError("Mount root is not configured (RCLONE_MOUNT_PATH)")
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        self.mount_root = normalize_mount_root(mount_root)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        if isinstance(archive_extensions, str):
            archive_extensions = archive_extensions.split(",")
        self.archive_extensions = [ext.strip() for ext in archive_extensions if ext.strip()]
        self._state = DownloaderState.IDLE

    @property
    def state(self) -> DownloaderState:
        return self._state

    def _set_state(self, state: DownloaderState) -> None:
        logger.debug(f"{self.target.source_uri}: {self._state.value} -> {state.value}")
        self._state = state

    def _build_candidates(self) -> List[PathCandidate]:
        relative_path = normalize_relative_path(self.target.expected_relative_path)
        name, stem, extension = split_name(relative_path)

        logger.debug(f"Extension: {extension}")
        logger.debug(f"Filename: {name}")
        logger.debug(f"Filename without extension: {stem}")
        logger.debug(f"Rclone mount path: {self.mount_root}")

        if is_archive_name(name, self.archive_extensions):
            candidates = generate_unarchived_candidates(self.target.expected_relative_path, str(self.mount_root))
            logger.debug(f"Archive download, searching for unpacked folder: {candidates[0].path}")
        else:
            candidates = generate_candidates(self.target.expected_relative_path, str(self.mount_root))

        logger.debug(f"Potential file paths: {', '.join(str(c.path) for c in candidates)}")
        return candidates

    def _log_mount_contents(self) -> None:
        """Best-effort listing of the mount root for troubleshooting."""
        logger.debug(f"Unable to find file in rclone mount. Folders available in {self.mount_root}: ")
        try:
            logger.debug(describe_directory_contents(self.mount_root))
        except Exception as e:
            logger.error(f"Could not list {self.mount_root}: {e}")

    def download(self) -> str:
        """Find the item on the mount, link it to the destination and return the found path.

        Raises:
            DownloadCancelled: If ``cancel()`` was called before linking started
            SymlinkError: If the item never appeared or could not be linked
            RuntimeError: If a download is already running on this instance
        """
        self._start_run()
        target = self.target
        logger.debug(f"Starting symlink resolving of {target.source_uri}, writing to path: {target.expected_relative_path}")

        try:
            self._set_state(DownloaderState.SEARCHING)
            self._emit_progress(DownloadProgress(bytes_done=0, bytes_total=0, speed=0))

            candidates = self._build_candidates()
            poller = FileSystemPoller(
                cancel_flag=self.cancel_flag,
                progress_callback=self._emit_progress,
                retry_delay=self.retry_delay,
            )
            probe_name = normalize_relative_path(target.expected_relative_path).name
            result = poller.poll(candidates, probe_name, self.max_retries)

            if not result.found:
                self._set_state(DownloaderState.EXHAUSTED)
                self._log_mount_contents()
                raise NotFoundAfterRetries(
                    f"Could not find {probe_name} in rclone mount after {result.attempts} attempts"
                )

            self._set_state(DownloaderState.FOUND)
            logger.debug(f"Found {result.path}")

            if self.cancel_flag.is_set():
                raise DownloadCancelled("Cancelled before linking")

            self._set_state(DownloaderState.LINKING)
            outcome = SymlinkMaterializer(Path(target.destination_path)).materialize(result.path)
            outcome.raise_for_failure()

            self._set_state(DownloaderState.COMPLETED)
            self._emit_complete()
            return str(result.path)

        except DownloadCancelled:
            self._set_state(DownloaderState.CANCELLED)
            logger.info(f"Symlink download cancelled: {target.source_uri}")
            raise
        except Exception as e:
            self._set_state(DownloaderState.FAILED)
            logger.error(f"Symlink download failed for {target.source_uri}: {e}")
            self._emit_complete(error=str(e))
            raise
        finally:
            self._finish_run()

    def pause(self) -> None:
        # Polling a mount has nothing to pause
        logger.debug(f"Pause ignored for symlink download: {self.target.source_uri}")

    def resume(self) -> None:
        logger.debug(f"Resume ignored for symlink download: {self.target.source_uri}")
