class SymlinkError(Exception):
    """Base class for symlink downloader failures."""

    pass


class NotFoundAfterRetries(SymlinkError):
    """Raised when the item never appeared on the mount."""

    pass


class LinkCreationFailed(SymlinkError):
    """Raised when the filesystem refused to create a link."""

    pass


class LinkVerificationFailed(SymlinkError):
    """Raised when a link was created but does not resolve to the source."""

    pass


class SourceVanished(SymlinkError):
    """Raised when the found item disappeared before it could be linked."""

    pass
