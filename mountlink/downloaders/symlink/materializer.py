"""Publish a found item at the destination as symbolic links.

Files get a single link. Directories are linked file by file: the destination
becomes a real directory tree whose leaves are links into the mount. Entries
that are not regular files (dangling links, FIFOs, sockets) are skipped. Files
the remote side adds to the folder later are not picked up.
"""

import os
from pathlib import Path
from typing import List, Optional

from mountlink.core.logger import setup_logger
from mountlink.download.fs import create_symlink

from .types import LinkFailure, LinkOutcome

logger = setup_logger(__name__)


class SymlinkMaterializer:

    def __init__(self, destination_path: Path):
        self.destination_path = Path(destination_path)

    def materialize(self, source_path: Path) -> LinkOutcome:
        # Relative targets would resolve against the link's own directory
        source_path = Path(source_path).absolute()

        # Re-check the kind here; the mount can change between discovery and linking
        if source_path.is_file():
            return self._link_file(source_path)
        if source_path.is_dir():
            return self._link_directory(source_path)

        logger.error(f"Source disappeared before it could be linked: {source_path}")
        return _source_missing(source_path)

    def _link_file(self, source_path: Path) -> LinkOutcome:
        link_path = self.destination_path
        try:
            create_symlink(source_path, link_path)
        except OSError as e:
            logger.error(f"Error creating symbolic link from {source_path} to {link_path}: {e}")
            return LinkOutcome.failed(
                LinkFailure.LINK_CREATION_FAILED,
                f"Could not create symbolic link at {link_path}: {e}",
            )

        failure = _verify_link(source_path, link_path, [link_path])
        if failure:
            return failure

        logger.info(f"Created symbolic link from {source_path} to {link_path}")
        return LinkOutcome.ok([link_path])

    def _link_directory(self, source_path: Path) -> LinkOutcome:
        links: List[Path] = []
        walk_errors: List[OSError] = []
        skipped = 0

        try:
            self.destination_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create destination directory {self.destination_path}: {e}")
            return LinkOutcome.failed(
                LinkFailure.LINK_CREATION_FAILED,
                f"Could not create destination directory {self.destination_path}: {e}",
            )

        for dirpath, dirnames, filenames in os.walk(source_path, onerror=walk_errors.append):
            dirnames.sort()
            relative_dir = Path(dirpath).relative_to(source_path)

            for filename in sorted(filenames):
                file_source = Path(dirpath) / filename
                link_path = self.destination_path / relative_dir / filename

                if not file_source.is_file():
                    if file_source.is_symlink() or file_source.exists():
                        logger.warning(f"Skipping {file_source}: not a regular file")
                        skipped += 1
                        continue
                    logger.error(f"{file_source} disappeared while linking {source_path}")
                    return _source_missing(file_source, links)

                try:
                    create_symlink(file_source, link_path)
                except OSError as e:
                    logger.error(f"Error creating symbolic link from {file_source} to {link_path}: {e}")
                    return LinkOutcome.failed(
                        LinkFailure.LINK_CREATION_FAILED,
                        f"Could not create symbolic link at {link_path}: {e}",
                        links=links,
                    )
                links.append(link_path)

                failure = _verify_link(file_source, link_path, links)
                if failure:
                    return failure

        if walk_errors:
            # An unreadable subfolder means some files were not linked
            first = walk_errors[0]
            logger.error(f"Could not read {first.filename} while linking {source_path}: {first}")
            if not source_path.exists():
                return _source_missing(source_path, links)
            return LinkOutcome.failed(
                LinkFailure.LINK_CREATION_FAILED,
                f"Could not read {first.filename}: {first}",
                links=links,
            )

        if not links:
            logger.warning(f"Directory {source_path} has no regular files, nothing to link")
        logger.info(
            f"Created {len(links)} symbolic link(s) from {source_path} under {self.destination_path}"
            + (f", skipped {skipped} non-regular entries" if skipped else "")
        )
        return LinkOutcome.ok(links)


def _source_missing(source_path: Path, links: Optional[List[Path]] = None) -> LinkOutcome:
    return LinkOutcome.failed(
        LinkFailure.SOURCE_MISSING,
        f"Source no longer exists on the mount: {source_path}",
        links=links,
    )


def _verify_link(source_path: Path, link_path: Path, links: List[Path]) -> Optional[LinkOutcome]:
    """None if ``link_path`` resolves to a file, else the failure to report."""
    if link_path.is_symlink() and link_path.is_file():
        return None

    if not source_path.exists():
        # The source vanished after the link was made; drop the dangling link
        logger.error(f"{source_path} disappeared before {link_path} could be verified")
        if link_path.is_symlink():
            link_path.unlink()
        return _source_missing(source_path, [link for link in links if link != link_path])

    logger.error(f"Failed to create symbolic link from {source_path} to {link_path}")
    return LinkOutcome.failed(
        LinkFailure.LINK_VERIFICATION_FAILED,
        f"Symbolic link at {link_path} does not resolve to a file",
        links=links,
    )
