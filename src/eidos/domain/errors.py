"""Error types raised by the calibration engine and local store."""


class EidosError(Exception):
    """Base class for errors raised by the eidos core."""


class InvalidArgumentError(EidosError, ValueError):
    """Raised when an operation receives a malformed input."""


class PersistenceError(EidosError):
    """Raised when durable storage cannot be read or written."""


class NotFoundError(EidosError, LookupError):
    """Raised when a lookup references an absent photo."""
