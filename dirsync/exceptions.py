"""Exception hierarchy for directory change polling."""


class DirSyncError(Exception):
    """Base class for all synchronization errors."""

    pass


class InvalidArgumentError(DirSyncError, ValueError):
    """Raised when a caller supplies an unusable argument (bad token, unknown object class)."""

    pass


class TransportError(DirSyncError):
    """Raised when searching the directory fails at the protocol level.

    The caller may retry the whole scan; the last committed watermark stays
    authoritative.
    """

    def __init__(self, message: str, filter_text: str | None = None):
        super().__init__(message)
        self.filter_text = filter_text


class TranslationError(DirSyncError):
    """Raised when a directory entry cannot be converted to a connector object."""

    def __init__(self, message: str, dn: str | None = None):
        super().__init__(message)
        self.dn = dn


class SyncStateError(DirSyncError):
    """Raised when a polling cycle transitions out of order."""

    pass


class FilterSyntaxError(DirSyncError, ValueError):
    """Raised when search filter text cannot be parsed."""

    def __init__(self, message: str, filter_text: str, position: int):
        super().__init__(f"{message} at position {position} in {filter_text!r}")
        self.filter_text = filter_text
        self.position = position


class DirectoryError(DirSyncError):
    """I/O failure reported by a directory connection or its search cursor."""

    pass
