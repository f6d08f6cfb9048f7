"""Where a finished download may show up on the mount.

The remote service does not say which layout the mount uses for an item, so
several guesses are generated, most specific first:

1. ``<root>/<stem>/<name>``  - item inside a folder named after it (no extension)
2. ``<root>/<name>/<name>``  - item inside a folder named after it
3. ``<root>/<dir>`` ... ``<root>`` - the expected folder and each parent, up to the root
4. ``<root>/<stem>``         - bare item without its extension
5. ``<root>/<name>``         - bare item at the root

Duplicates (e.g. when the name has no extension) are kept; probing one twice
is harmless.
"""

import posixpath
from pathlib import Path, PurePosixPath
from typing import Iterable, List, Tuple

from .types import CandidateKind, PathCandidate

DEFAULT_ARCHIVE_EXTENSIONS = ("zip", "rar", "tar")


def normalize_mount_root(mount_root: str) -> Path:
    """Trim trailing separators and anchor relative roots at the working directory.

    An all-separator root stays ``/``. Link targets are taken from these paths,
    so they must be absolute.
    """
    trimmed = str(mount_root).rstrip("/\\")
    return Path(trimmed or "/").absolute()


def normalize_relative_path(expected_relative_path: str) -> PurePosixPath:
    """Normalize separators and reject paths that would leave the mount root."""
    cleaned = expected_relative_path.replace("\\", "/").strip("/")
    if not cleaned:
        raise ValueError("expected_relative_path must not be empty")

    normalized = posixpath.normpath(cleaned)
    if normalized == "." or normalized == ".." or normalized.startswith("../"):
        raise ValueError(f"Path escapes the mount root: {expected_relative_path}")
    return PurePosixPath(normalized)


def split_name(relative_path: PurePosixPath) -> Tuple[str, str, str]:
    """Return ``(name, name_without_extension, extension)``; extension keeps its dot."""
    name = relative_path.name
    extension = relative_path.suffix
    stem = name[: -len(extension)] if extension else name
    return name, stem, extension


def is_archive_name(name: str, archive_extensions: Iterable[str] = DEFAULT_ARCHIVE_EXTENSIONS) -> bool:
    suffix = PurePosixPath(name).suffix.lower().lstrip(".")
    return bool(suffix) and suffix in {ext.lower().lstrip(".") for ext in archive_extensions}


def _ancestor_candidates(mount_root: Path, relative_path: PurePosixPath) -> List[PathCandidate]:
    """The expected parent folder and every folder above it, ending with the root."""
    parent = relative_path.parent
    current = mount_root if str(parent) == "." else mount_root.joinpath(*parent.parts)

    ancestors = []
    while True:
        ancestors.append(PathCandidate(current, CandidateKind.CONTAINER))
        if current == mount_root or current == current.parent:
            break
        current = current.parent
    return ancestors


def generate_candidates(expected_relative_path: str, mount_root: str) -> List[PathCandidate]:
    """Ordered search locations for a regular (non-archive) download."""
    root = normalize_mount_root(mount_root)
    relative_path = normalize_relative_path(expected_relative_path)
    name, stem, _ = split_name(relative_path)

    candidates = [
        PathCandidate(root / stem / name, CandidateKind.DIRECT),
        PathCandidate(root / name / name, CandidateKind.DIRECT),
    ]
    candidates.extend(_ancestor_candidates(root, relative_path))
    candidates.append(PathCandidate(root / stem, CandidateKind.DIRECT))
    candidates.append(PathCandidate(root / name, CandidateKind.DIRECT))
    return candidates


def generate_unarchived_candidates(expected_relative_path: str, mount_root: str) -> List[PathCandidate]:
    """Search locations for an archive that the remote side unpacks into a folder."""
    root = normalize_mount_root(mount_root)
    relative_path = normalize_relative_path(expected_relative_path)
    _, stem, _ = split_name(relative_path)

    parent = relative_path.parent
    if str(parent) != ".":
        return [PathCandidate(root.joinpath(*parent.parts), CandidateKind.DIRECT)]
    return [PathCandidate(root / stem, CandidateKind.DIRECT)]
