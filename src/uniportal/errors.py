"""Exceptions raised by the progression engine."""


class UniportalError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(UniportalError):
    """The rank table is empty, has no zero floor, or is not strictly increasing."""


class EmptyQuestionSetError(UniportalError):
    """A quiz was requested but no questions matched."""


class IncompleteAttemptError(UniportalError):
    """finish() was called before every question was checked."""


class AttemptStateError(UniportalError):
    """An operation is not allowed in the session's current state."""


class PersistenceError(UniportalError):
    """The store failed to read or write progression data."""
