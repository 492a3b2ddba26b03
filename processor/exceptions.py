"""Exception types for the countdown board."""


class CountdownError(Exception):
    """Base class for countdown board errors."""


class ValidationError(CountdownError):
    """User-supplied event data failed required-field checks."""


class ProviderFailure(CountdownError):
    """Holiday provider failed or returned unusable data."""


class CacheParseError(CountdownError):
    """Persisted holiday cache entry could not be parsed."""


class StoreParseError(CountdownError):
    """Persisted custom event list could not be parsed."""


class StorageError(CountdownError):
    """Key-value backend failed to read or write."""
