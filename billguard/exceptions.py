"""Exception types raised outside the pure audit core."""


class BillGuardError(Exception):
    """Base class for BillGuard errors."""
    pass


class ExtractionError(BillGuardError):
    """Raised when the extraction collaborator output cannot be used."""
    pass
