"""Bounded polling for an item to appear on the mount."""

from pathlib import Path
from threading import Event
from typing import Callable, Optional, Sequence, Tuple

from mountlink.core.logger import setup_logger
from mountlink.downloaders import DownloadCancelled, DownloadProgress

from .types import CandidateKind, EntryKind, PathCandidate, ResolutionResult

logger = setup_logger(__name__)

MAX_RETRIES = 10
RETRY_DELAY = 1.0  # seconds; attempt N waits N * RETRY_DELAY first


class FileSystemPoller:
    """Probe candidates in order, retrying with a linear backoff.

    Attempt ``i`` waits ``i * retry_delay`` seconds before probing (attempt 0
    probes immediately), so exhausting ``n`` attempts waits ``n*(n-1)/2``
    delays in total. The wait is interrupted as soon as ``cancel_flag`` is set.
    """

    def __init__(
        self,
        cancel_flag: Event,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
        retry_delay: float = RETRY_DELAY,
    ):
        self.cancel_flag = cancel_flag
        self.progress_callback = progress_callback
        self.retry_delay = retry_delay

    def poll(
        self,
        candidates: Sequence[PathCandidate],
        probe_name: str,
        max_retries: int = MAX_RETRIES,
    ) -> ResolutionResult:
        """Return the first hit, or a not-found result once all attempts are used.

        Raises:
            DownloadCancelled: If cancellation is requested before or during a wait
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        if not candidates:
            raise ValueError("No search locations to poll")

        for attempt in range(max_retries):
            if self.cancel_flag.is_set():
                raise DownloadCancelled(f"Cancelled before attempt #{attempt}")

            if attempt > 0:
                delay = self.retry_delay * attempt
                logger.debug(f"Waiting {delay:g}s before attempt #{attempt}")
                if self.cancel_flag.wait(timeout=delay):
                    raise DownloadCancelled(f"Cancelled while waiting for attempt #{attempt}")

            # Heartbeat only: attempt counters, not bytes
            if self.progress_callback:
                self.progress_callback(DownloadProgress(bytes_done=attempt, bytes_total=max_retries, speed=1))

            logger.debug(f"Searching for {probe_name} (attempt #{attempt})...")

            for candidate in candidates:
                hit = self._probe(candidate, probe_name)
                if hit:
                    path, kind = hit
                    logger.debug(f"Found {kind.value} {path} on attempt #{attempt}")
                    return ResolutionResult.hit(path, kind, attempts=attempt + 1)

        logger.debug(f"{probe_name} not found after {max_retries} attempts")
        return ResolutionResult.not_found(attempts=max_retries)

    def _probe(self, candidate: PathCandidate, probe_name: str) -> Optional[Tuple[Path, EntryKind]]:
        if candidate.kind == CandidateKind.CONTAINER:
            path = candidate.path / probe_name
            logger.debug(f"Searching {path}...")
            if _safe_check(path.is_file, path):
                return path, EntryKind.FILE
            return None

        path = candidate.path
        logger.debug(f"Searching {path}...")
        if _safe_check(path.is_file, path):
            return path, EntryKind.FILE
        if _safe_check(path.is_dir, path):
            return path, EntryKind.DIRECTORY
        return None


def _safe_check(check: Callable[[], bool], path: Path) -> bool:
    # FUSE mounts can raise EIO/ENOTCONN while the remote side is catching up
    try:
        return check()
    except OSError as e:
        logger.debug(f"Cannot stat {path}: {e}")
        return False
