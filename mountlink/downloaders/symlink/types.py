from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .errors import LinkCreationFailed, LinkVerificationFailed, SourceVanished, SymlinkError


class CandidateKind(str, Enum):
    CONTAINER = "container"  # Directory the item may sit in; probe <path>/<name>
    DIRECT = "direct"        # Full path of the item itself; probe as file, then directory


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class PathCandidate:
    path: Path
    kind: CandidateKind = CandidateKind.CONTAINER


@dataclass(frozen=True)
class ResolutionResult:
    path: Optional[Path] = None
    kind: Optional[EntryKind] = None
    attempts: int = 0

    @property
    def found(self) -> bool:
        return self.path is not None

    @classmethod
    def hit(cls, path: Path, kind: EntryKind, attempts: int) -> "ResolutionResult":
        return cls(path=path, kind=kind, attempts=attempts)

    @classmethod
    def not_found(cls, attempts: int) -> "ResolutionResult":
        return cls(attempts=attempts)


class LinkFailure(str, Enum):
    SOURCE_MISSING = "source_missing"
    LINK_CREATION_FAILED = "link_creation_failed"
    LINK_VERIFICATION_FAILED = "link_verification_failed"


_FAILURE_ERRORS = {
    LinkFailure.SOURCE_MISSING: SourceVanished,
    LinkFailure.LINK_CREATION_FAILED: LinkCreationFailed,
    LinkFailure.LINK_VERIFICATION_FAILED: LinkVerificationFailed,
}


@dataclass(frozen=True)
class LinkOutcome:
    """Result of one materialize call."""
    failure: Optional[LinkFailure] = None
    message: Optional[str] = None
    links: List[Path] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure is None

    @classmethod
    def ok(cls, links: List[Path]) -> "LinkOutcome":
        return cls(links=list(links))

    @classmethod
    def failed(cls, failure: LinkFailure, message: str, links: Optional[List[Path]] = None) -> "LinkOutcome":
        return cls(failure=failure, message=message, links=list(links or []))

    def raise_for_failure(self) -> None:
        if self.failure is None:
            return
        error_cls = _FAILURE_ERRORS.get(self.failure, SymlinkError)
        raise error_cls(self.message or self.failure.value)
