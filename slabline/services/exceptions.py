"""
Domain errors raised by the commission services.

The API layer maps them to HTTP responses in slabline.main.
"""

from typing import Optional


class CommissionError(Exception):
    """Base class for commission engine errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CommissionError):
    """Input rejected before any mutation happened."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class SlabValidationError(ValidationError):
    """A submitted slab failed validation; `index` is its position in the payload."""

    def __init__(self, message: str, field: str, index: Optional[int] = None):
        super().__init__(message, field)
        self.index = index


class NotFoundError(CommissionError):
    """Referenced owner, lead or record does not exist."""


class ComputationError(CommissionError):
    """Internal invariant violated while computing commission."""
