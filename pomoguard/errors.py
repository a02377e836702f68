"""Exception types raised by PomoGuard."""


class PomoGuardError(Exception):
    """Base class for all PomoGuard errors."""


class StorageError(PomoGuardError):
    """A read or write against the timer store failed."""
