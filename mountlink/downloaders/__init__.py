"""Downloader plugin system - base classes and registry.

Every download strategy exposes the same capability: ``download()`` returns the
resolved path or raises, ``cancel()`` requests cooperative cancellation, and
``pause()``/``resume()`` are optional. Progress and completion are published to
registered listeners.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from threading import Event, Lock
from typing import Callable, Dict, List, Optional, Type

from mountlink.core.logger import setup_logger
from mountlink.core.models import TargetDescriptor

logger = setup_logger(__name__)


class DownloadCancelled(Exception):
    """Raised by ``download()`` when the download was cancelled."""

    pass


@dataclass(frozen=True)
class DownloadProgress:
    """Progress observation.

    Units depend on the downloader: transfer strategies report bytes, while
    strategies that only wait (e.g. symlink) report attempt counters here.
    """
    bytes_done: int
    bytes_total: int
    speed: int


@dataclass(frozen=True)
class DownloadComplete:
    """Terminal event, published once per download. ``error`` is None on success."""
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class DownloaderState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    FOUND = "found"
    LINKING = "linking"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"


ProgressListener = Callable[[DownloadProgress], None]
CompleteListener = Callable[[DownloadComplete], None]


class Downloader(ABC):
    """Interface for executing one download."""

    def __init__(self, target: TargetDescriptor):
        self.target = target
        self.cancel_flag = Event()
        self._progress_listeners: List[ProgressListener] = []
        self._complete_listeners: List[CompleteListener] = []
        self._complete_lock = Lock()
        self._completed = False
        self._running = False

    def add_progress_listener(self, listener: ProgressListener) -> None:
        self._progress_listeners.append(listener)

    def add_complete_listener(self, listener: CompleteListener) -> None:
        self._complete_listeners.append(listener)

    def _start_run(self) -> None:
        """Mark a ``download()`` invocation as started; each one reports completion once.

        Raises:
            RuntimeError: If a download is already running on this instance
        """
        with self._complete_lock:
            if self._running:
                raise RuntimeError(f"Download already in progress for {self.target.source_uri}")
            self._running = True
            self._completed = False

    def _finish_run(self) -> None:
        # A cancel request applies to the run it was made for, not to later ones
        with self._complete_lock:
            self._running = False
            self.cancel_flag.clear()

    def _emit_progress(self, progress: DownloadProgress) -> None:
        for listener in list(self._progress_listeners):
            try:
                listener(progress)
            except Exception as e:
                logger.warning_trace(f"Progress listener failed for {self.target.source_uri}: {e}")

    def _emit_complete(self, error: Optional[str] = None) -> None:
        """Publish the terminal event. Later calls are ignored."""
        with self._complete_lock:
            if self._completed:
                logger.debug(f"Completion already reported for {self.target.source_uri}")
                return
            self._completed = True

        event = DownloadComplete(error=error)
        for listener in list(self._complete_listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning_trace(f"Completion listener failed for {self.target.source_uri}: {e}")

    @abstractmethod
    def download(self) -> str:
        """Run the download and return the resolved path. Raises on failure."""
        pass

    def cancel(self) -> None:
        """Request cancellation. Returns immediately; safe to call repeatedly."""
        if not self.cancel_flag.is_set():
            logger.debug(f"Cancel requested for {self.target.source_uri}")
        self.cancel_flag.set()

    def pause(self) -> None:
        return

    def resume(self) -> None:
        return


# --- Registry ---

_DOWNLOADERS: Dict[str, Type[Downloader]] = {}


def register_downloader(name: str):
    """Decorator to register a downloader class."""
    def decorator(cls):
        _DOWNLOADERS[name] = cls
        return cls
    return decorator


def get_downloader(name: str, target: TargetDescriptor, **kwargs) -> Downloader:
    """Build a downloader instance by name."""
    if name not in _DOWNLOADERS:
        raise ValueError(f"Unknown downloader: {name}")
    return _DOWNLOADERS[name](target, **kwargs)


def list_downloaders() -> List[str]:
    return sorted(_DOWNLOADERS)


# Import implementations to trigger registration
# These must be imported AFTER the base classes and registry are defined
from mountlink.downloaders import symlink  # noqa: F401, E402
