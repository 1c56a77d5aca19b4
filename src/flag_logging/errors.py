"""Exception hierarchy for flag-driven logging and client initialization."""


class FlagLoggingError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(FlagLoggingError, ValueError):
    """A required configuration field is missing or invalid.

    Raised synchronously, before any asynchronous work starts, and never retried.
    """


class InitializationError(FlagLoggingError, RuntimeError):
    """Creating the flag client failed or was rejected."""


class NotInitializedError(FlagLoggingError, RuntimeError):
    """An operation needs a flag client but none is attached."""


class MissingFallbackError(FlagLoggingError, LookupError):
    """A flag had no value and the caller supplied no fallback."""
