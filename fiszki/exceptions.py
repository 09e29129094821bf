"""Exception hierarchy for the flashcard stores and the sync layer."""

from typing import Optional


class FiszkiError(Exception):
    """Base exception for all fiszki errors."""


class ValidationError(FiszkiError):
    """Input rejected before reaching any store (e.g. empty term)."""


class SyncError(FiszkiError):
    """A sync pass finished without reaching a consistent state."""


class StoreError(FiszkiError):
    """Base class for failures raised by a store."""


class NotFoundError(StoreError):
    """Entity doesn't exist in the store."""


class ConflictError(StoreError):
    """Uniqueness violation, e.g. a duplicate category name."""


class NetworkError(StoreError):
    """Transient remote failure (no connectivity, timeout, 5xx)."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RejectedError(StoreError):
    """The remote store authoritatively refused the request."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
