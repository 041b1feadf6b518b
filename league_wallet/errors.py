class LedgerError(Exception):
    """Base class for domain errors surfaced to API callers with a reason string."""


class InvalidAmount(LedgerError):
    pass


class InsufficientBalance(LedgerError):
    pass


class NoScoresRecorded(LedgerError):
    pass


class NotFound(LedgerError):
    pass


class InvalidStateTransition(LedgerError):
    pass
