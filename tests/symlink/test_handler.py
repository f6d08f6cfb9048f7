"""
Tests for the symlink downloader.

These run against a temporary directory standing in for the rclone mount.
The cancel flag is swapped for an Event whose wait() returns immediately so
the backoff can be asserted without sleeping.
"""

import os
from pathlib import Path
from threading import Event
from unittest.mock import patch

import pytest

from mountlink.core.models import TargetDescriptor
from mountlink.downloaders import (
    DownloadCancelled,
    DownloaderState,
    get_downloader,
    list_downloaders,
)
from mountlink.downloaders.symlink import SymlinkDownloader
from mountlink.downloaders.symlink.errors import LinkCreationFailed, NotFoundAfterRetries


class RecordingEvent(Event):
    """Cancel flag that records wait timeouts instead of sleeping."""

    def __init__(self, on_wait=None):
        super().__init__()
        self.waits = []
        self.on_wait = on_wait

    def wait(self, timeout=None):
        self.waits.append(timeout)
        if self.on_wait:
            self.on_wait(len(self.waits))
        return self.is_set()


class EventRecorder:
    """Collects progress and completion events from a downloader."""

    def __init__(self, downloader):
        self.progress = []
        self.completions = []
        downloader.add_progress_listener(self.progress.append)
        downloader.add_complete_listener(self.completions.append)

    @property
    def progress_tuples(self):
        return [(p.bytes_done, p.bytes_total, p.speed) for p in self.progress]


@pytest.fixture
def mount(tmp_path):
    root = tmp_path / "remote"
    root.mkdir()
    return root


@pytest.fixture
def library(tmp_path):
    root = tmp_path / "library"
    root.mkdir()
    return root


def _downloader(mount, destination, relative_path, on_wait=None, **kwargs):
    target = TargetDescriptor(
        source_uri=f"remote://{relative_path}",
        destination_path=str(destination),
        expected_relative_path=relative_path,
    )
    kwargs.setdefault("max_retries", 10)
    kwargs.setdefault("retry_delay", 1.0)
    downloader = SymlinkDownloader(target, mount_root=str(mount), **kwargs)
    downloader.cancel_flag = RecordingEvent(on_wait=on_wait)
    return downloader


class TestResolveAndLink:
    """End-to-end resolution scenarios."""

    def test_file_appears_on_third_attempt(self, mount, library):
        """The item shows up late inside its expected folder and gets linked."""
        destination = library / "S01E01.mkv"

        def appear(wait_count):
            if wait_count == 2:
                (mount / "Show").mkdir()
                (mount / "Show" / "S01E01.mkv").write_text("episode")

        downloader = _downloader(mount, destination, "Show/S01E01.mkv", on_wait=appear)
        recorder = EventRecorder(downloader)

        found = downloader.download()

        assert found == str(mount / "Show" / "S01E01.mkv")
        assert downloader.cancel_flag.waits == [1.0, 2.0]
        assert recorder.progress_tuples == [(0, 0, 0), (0, 10, 1), (1, 10, 1), (2, 10, 1)]
        assert os.readlink(destination) == found
        assert destination.read_text() == "episode"
        assert len(recorder.completions) == 1
        assert recorder.completions[0].success
        assert downloader.state == DownloaderState.COMPLETED

    def test_item_already_present(self, mount, library):
        (mount / "Movie.2020.mkv").write_text("film")
        destination = library / "Movie.2020.mkv"
        downloader = _downloader(mount, destination, "Movie.2020.mkv")

        found = downloader.download()

        assert found == str(mount / "Movie.2020.mkv")
        assert downloader.cancel_flag.waits == []
        assert destination.is_symlink()

    def test_folder_named_after_item(self, mount, library):
        """A folder named like the item without extension is searched first."""
        (mount / "Album").mkdir()
        (mount / "Album" / "Album.flac").write_text("music")
        (mount / "Album.flac").write_text("decoy")
        destination = library / "Album.flac"

        found = _downloader(mount, destination, "Music/Album.flac").download()

        assert found == str(mount / "Album" / "Album.flac")

    def test_directory_result(self, mount, library):
        """A folder found on the mount is linked file by file."""
        release = mount / "Release"
        release.mkdir()
        (release / "a.mkv").write_text("a")
        (release / "b.srt").write_text("b")
        destination = library / "Release"

        found = _downloader(mount, destination, "Release.mkv").download()

        assert found == str(release)
        assert (destination / "a.mkv").is_symlink()
        assert (destination / "b.srt").read_text() == "b"

    def test_archive_resolves_to_unpacked_folder(self, mount, library):
        """Archives are looked up as the folder they unpack into."""
        (mount / "Pack").mkdir()
        (mount / "Pack" / "book.epub").write_text("book")
        destination = library / "Pack"

        found = _downloader(mount, destination, "Pack/Pack.zip").download()

        assert found == str(mount / "Pack")
        assert (destination / "book.epub").is_symlink()

    def test_trailing_slash_mount_root(self, mount, library):
        (mount / "x.epub").write_text("x")
        downloader = _downloader(str(mount) + "//", library / "x.epub", "x.epub")

        assert downloader.download() == str(mount / "x.epub")

    def test_relative_mount_root(self, tmp_path, monkeypatch):
        """A relative mount root still produces links with absolute targets."""
        monkeypatch.chdir(tmp_path)
        Path("remote").mkdir()
        Path("remote/a.mkv").write_text("movie")
        destination = Path("library/a.mkv")

        found = _downloader("remote", destination, "a.mkv").download()

        expected = Path.cwd() / "remote" / "a.mkv"
        assert found == str(expected)
        assert os.readlink(destination) == str(expected)
        assert destination.read_text() == "movie"


class TestFailures:
    """Failure paths publish exactly one completion event with an error."""

    def test_never_appears(self, mount, library):
        downloader = _downloader(mount, library / "missing.mkv", "Show/missing.mkv")
        recorder = EventRecorder(downloader)
        states = []
        real_set_state = downloader._set_state

        def track_state(state):
            states.append(state)
            real_set_state(state)

        downloader._set_state = track_state

        with pytest.raises(NotFoundAfterRetries, match="after 10 attempts"):
            downloader.download()

        assert downloader.cancel_flag.waits == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 7.0, 8.0, 9.0]
        assert len(recorder.progress) == 11
        assert len(recorder.completions) == 1
        assert "missing.mkv" in recorder.completions[0].error
        assert states == [DownloaderState.SEARCHING, DownloaderState.EXHAUSTED, DownloaderState.FAILED]
        assert downloader.state == DownloaderState.FAILED
        assert not (library / "missing.mkv").exists()

    def test_listing_failure_does_not_change_error(self, mount, library):
        """The troubleshooting listing is attempted but its failure is ignored."""
        downloader = _downloader(mount, library / "x.mkv", "x.mkv", max_retries=2)

        with patch(
            "mountlink.downloaders.symlink.handler.describe_directory_contents",
            side_effect=PermissionError(13, "Permission denied"),
        ) as listing:
            with pytest.raises(NotFoundAfterRetries):
                downloader.download()

        listing.assert_called_once_with(mount)

    def test_link_conflict(self, mount, library):
        (mount / "book.epub").write_text("new")
        destination = library / "book.epub"
        destination.write_text("old")
        downloader = _downloader(mount, destination, "book.epub")
        recorder = EventRecorder(downloader)

        with pytest.raises(LinkCreationFailed):
            downloader.download()

        assert downloader.state == DownloaderState.FAILED
        assert len(recorder.completions) == 1
        assert not recorder.completions[0].success
        assert destination.read_text() == "old"

    def test_completion_reported_once(self, mount, library):
        downloader = _downloader(mount, library / "x", "x", max_retries=1)
        recorder = EventRecorder(downloader)

        with pytest.raises(NotFoundAfterRetries):
            downloader.download()
        downloader._emit_complete()

        assert len(recorder.completions) == 1

    def test_listener_errors_are_contained(self, mount, library):
        (mount / "x.epub").write_text("x")
        downloader = _downloader(mount, library / "x.epub", "x.epub")

        def broken(_event):
            raise RuntimeError("listener bug")

        downloader.add_progress_listener(broken)
        downloader.add_complete_listener(broken)

        assert downloader.download() == str(mount / "x.epub")


class TestCancellation:

    def test_cancel_during_backoff(self, mount, library):
        """Cancelling mid-wait raises without linking or reporting completion."""
        holder = {}

        def cancel(wait_count):
            (mount / "late.mkv").write_text("x")
            holder["downloader"].cancel()

        downloader = _downloader(mount, library / "late.mkv", "late.mkv", on_wait=cancel)
        holder["downloader"] = downloader
        recorder = EventRecorder(downloader)

        with pytest.raises(DownloadCancelled):
            downloader.download()

        assert downloader.cancel_flag.waits == [1.0]
        assert recorder.completions == []
        assert downloader.state == DownloaderState.CANCELLED
        assert not (library / "late.mkv").exists()

    def test_cancel_is_idempotent(self, mount, library):
        downloader = _downloader(mount, library / "x", "x")
        downloader.cancel()
        downloader.cancel()

        with pytest.raises(DownloadCancelled):
            downloader.download()

    def test_pause_and_resume_are_noops(self, mount, library):
        (mount / "x.epub").write_text("x")
        downloader = _downloader(mount, library / "x.epub", "x.epub")

        downloader.pause()
        downloader.resume()

        assert downloader.download() == str(mount / "x.epub")
        assert not downloader.cancel_flag.is_set()


class TestRepeatedRuns:
    """Each download() call is its own invocation."""

    def test_each_run_reports_completion(self, mount, library):
        downloader = _downloader(mount, library / "a.mkv", "a.mkv", max_retries=1)
        recorder = EventRecorder(downloader)

        for _ in range(2):
            with pytest.raises(NotFoundAfterRetries):
                downloader.download()

        assert len(recorder.completions) == 2
        assert all(not c.success for c in recorder.completions)

    def test_cancel_does_not_carry_over(self, mount, library):
        downloader = _downloader(mount, library / "a.mkv", "a.mkv")
        recorder = EventRecorder(downloader)
        downloader.cancel()

        with pytest.raises(DownloadCancelled):
            downloader.download()

        (mount / "a.mkv").write_text("x")
        assert downloader.download() == str(mount / "a.mkv")
        assert downloader.state == DownloaderState.COMPLETED
        assert len(recorder.completions) == 1

    def test_concurrent_run_rejected(self, mount, library):
        """Starting a second download while one is polling fails fast."""
        holder = {}

        def start_again(wait_count):
            if wait_count == 1:
                try:
                    holder["downloader"].download()
                except RuntimeError as e:
                    holder["error"] = e

        downloader = _downloader(mount, library / "a.mkv", "a.mkv", on_wait=start_again, max_retries=2)
        holder["downloader"] = downloader
        recorder = EventRecorder(downloader)

        with pytest.raises(NotFoundAfterRetries):
            downloader.download()

        assert "already in progress" in str(holder["error"])
        assert len(recorder.completions) == 1


class TestConstruction:

    def test_registered_by_name(self, mount):
        target = TargetDescriptor("uri", "/library/x", "x")

        downloader = get_downloader("symlink", target, mount_root=str(mount), max_retries=3)

        assert isinstance(downloader, SymlinkDownloader)
        assert downloader.state == DownloaderState.IDLE
        assert "symlink" in list_downloaders()

    def test_unknown_downloader(self):
        with pytest.raises(ValueError, match="Unknown downloader"):
            get_downloader("torrent", TargetDescriptor("uri", "/library/x", "x"))

    def test_defaults_from_settings(self, mount):
        settings = {
            "RCLONE_MOUNT_PATH": str(mount) + "/",
            "SYMLINK_MAX_RETRIES": 4,
            "SYMLINK_RETRY_DELAY": 0.5,
            "SYMLINK_ARCHIVE_EXTENSIONS": ["cbz"],
        }
        with patch("mountlink.downloaders.symlink.handler.config") as mock_config:
            mock_config.get.side_effect = lambda key, default=None: settings.get(key, default)
            downloader = SymlinkDownloader(TargetDescriptor("uri", "/library/x", "x"))

        assert downloader.mount_root == mount
        assert downloader.max_retries == 4
        assert downloader.retry_delay == 0.5
        assert downloader.archive_extensions == ["cbz"]

    def test_extensions_as_text(self, mount):
        downloader = SymlinkDownloader(
            TargetDescriptor("uri", "/library/x", "x"), mount_root=str(mount), archive_extensions="zip, rar,"
        )

        assert downloader.archive_extensions == ["zip", "rar"]

    def test_missing_mount_root(self):
        with patch("mountlink.downloaders.symlink.handler.config") as mock_config:
            mock_config.get.side_effect = lambda key, default=None: default
            with pytest.raises(ValueError, match="RCLONE_MOUNT_PATH"):
                SymlinkDownloader(TargetDescriptor("uri", "/library/x", "x"), mount_root="")

    def test_rejects_zero_retries(self, mount):
        with pytest.raises(ValueError):
            SymlinkDownloader(TargetDescriptor("uri", "/library/x", "x"), mount_root=str(mount), max_retries=0)

    @pytest.mark.parametrize("relative_path", ["", "/", "\\"])
    def test_target_requires_relative_path(self, relative_path):
        with pytest.raises(ValueError):
            TargetDescriptor("uri", "/library/x", relative_path)
