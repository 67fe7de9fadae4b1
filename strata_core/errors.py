class StrataError(Exception):
    """Base error for Strata."""


class RecoverableError(StrataError):
    """Indicates the operation can be retried safely on a later pass."""


class PermanentError(StrataError):
    """Indicates the operation should not be retried."""


class ConfigError(PermanentError):
    """Invalid retention policy or configuration value."""


class PassLockedError(PermanentError):
    """Another pass holds the lock for the archive."""


class StoreIOError(RecoverableError):
    """A directory or file in the record store could not be read or written."""


class ParseError(RecoverableError):
    """Record content is not a well-formed result document."""


class CompactionError(RecoverableError):
    """A tier transition could not be completed; the source is left in place."""
