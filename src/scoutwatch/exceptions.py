class ScoutWatchError(Exception):
    """Base exception for scoutwatch errors."""
    pass

class ConfigError(ScoutWatchError):
    """Configuration loading specific errors."""
    pass

class IngestIOError(ScoutWatchError):
    """A source file could not be read, or a backup target could not be written."""

    def __init__(self, message: str, path=None):
        super().__init__(message)
        self.path = path

class ParseError(ScoutWatchError, ValueError):
    """Malformed header field or record in a form segment."""

    def __init__(self, message: str, segment: str = ""):
        super().__init__(message)
        self.segment = segment

class VolumeNotFound(ScoutWatchError):
    """No removable volume showed up within the retry window."""
    pass

class StoreUnavailable(ScoutWatchError):
    """A connection to the store could not be opened."""
    pass

class StoreOperationFailed(ScoutWatchError):
    """A single insert or query call against the store failed."""

    def __init__(self, operation: str, detail: str):
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail
