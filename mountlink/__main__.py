"""Command-line entry point.

Usage:
    mountlink resolve --uri URI --path Show/S01E01.mkv --destination /library/S01E01.mkv
    mountlink test-mount [--mount-root /mnt/remote]
    mountlink settings show
    mountlink settings set KEY=VALUE [KEY=VALUE ...]
"""

import argparse
import json
import signal
import sys
import threading
from typing import Any, List, Optional, Tuple

from tqdm import tqdm

from mountlink import __version__
from mountlink.core.logger import setup_logger
from mountlink.core.models import TargetDescriptor

logger = setup_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


def _resolve(args: argparse.Namespace) -> int:
    from mountlink.downloaders import DownloadCancelled, DownloadProgress, get_downloader
    from mountlink.downloaders.symlink.errors import SymlinkError

    try:
        target = TargetDescriptor(
            source_uri=args.uri or args.path,
            destination_path=args.destination,
            expected_relative_path=args.path,
        )
        downloader = get_downloader(
            "symlink",
            target,
            mount_root=args.mount_root,
            max_retries=args.max_retries,
            retry_delay=args.retry_delay,
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED

    pbar = tqdm(total=downloader.max_retries, unit="attempt", desc="Searching mount", disable=args.quiet)

    def on_progress(progress: DownloadProgress) -> None:
        # The initial 0/0 event only marks the start
        if progress.bytes_total:
            pbar.n = progress.bytes_done + 1
            pbar.refresh()

    downloader.add_progress_listener(on_progress)

    # Ctrl-C requests cooperative cancellation instead of killing the wait
    def on_sigint(signum, frame):
        downloader.cancel()

    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGINT, on_sigint)

    try:
        found_path = downloader.download()
    except DownloadCancelled:
        print("cancelled", file=sys.stderr)
        return EXIT_CANCELLED
    except SymlinkError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED
    except Exception as e:
        logger.error_trace(f"Unexpected error resolving {args.path}: {e}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_FAILED
    finally:
        pbar.close()
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    print(found_path)
    return EXIT_OK


def _test_mount(args: argparse.Namespace) -> int:
    from mountlink.core.config import config
    from mountlink.core.settings_registry import execute_action

    config.refresh()
    current_values = {"RCLONE_MOUNT_PATH": args.mount_root} if args.mount_root else None
    result = execute_action("symlink", "test_mount_path", current_values)
    print(result["message"], file=sys.stdout if result["success"] else sys.stderr)
    return EXIT_OK if result["success"] else EXIT_FAILED


def _parse_assignment(raw: str) -> Tuple[str, Any]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    try:
        return key, json.loads(value)
    except json.JSONDecodeError:
        return key, value


def _settings(args: argparse.Namespace) -> int:
    from mountlink.core.config import config
    from mountlink.core.settings_registry import serialize_all_settings, update_settings

    config.refresh()  # registers the settings tabs

    if args.settings_command == "show":
        print(json.dumps(serialize_all_settings(), indent=2))
        return EXIT_OK

    result = update_settings(args.tab, dict(args.values))
    print(result["message"], file=sys.stdout if result["success"] else sys.stderr)
    return EXIT_OK if result["success"] else EXIT_FAILED


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mountlink",
        description="Link finished remote downloads from a network mount.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser("resolve", help="Wait for a download on the mount and link it")
    resolve.add_argument("--path", required=True, help="Expected path relative to the mount root")
    resolve.add_argument("--destination", required=True, help="Where the link is created")
    resolve.add_argument("--uri", help="Originating remote item (used in log messages)")
    resolve.add_argument("--mount-root", help="Override RCLONE_MOUNT_PATH")
    resolve.add_argument("--max-retries", type=int, help="Override SYMLINK_MAX_RETRIES")
    resolve.add_argument("--retry-delay", type=float, help="Override SYMLINK_RETRY_DELAY (seconds)")
    resolve.add_argument("-q", "--quiet", action="store_true", help="Hide the progress bar")
    resolve.set_defaults(func=_resolve)

    test_mount = subparsers.add_parser("test-mount", help="Check that the mount root is readable")
    test_mount.add_argument("--mount-root", help="Override RCLONE_MOUNT_PATH")
    test_mount.set_defaults(func=_test_mount)

    settings = subparsers.add_parser("settings", help="Show or change persisted settings")
    settings_sub = settings.add_subparsers(dest="settings_command", required=True)
    settings_sub.add_parser("show", help="Print all settings with their current values")
    settings_set = settings_sub.add_parser("set", help="Save settings to the config file")
    settings_set.add_argument("--tab", default="symlink", help="Settings tab (default: symlink)")
    settings_set.add_argument("values", nargs="+", type=_parse_assignment, metavar="KEY=VALUE")
    settings.set_defaults(func=_settings)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
