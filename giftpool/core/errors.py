"""Domain errors raised by the contribution and debt services.

Every error carries a human-readable ``message`` that is safe to show to the
caller; the action boundary turns them into failure envelopes.
"""


class GiftPoolError(Exception):
    """Base class for expected, caller-correctable failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(GiftPoolError):
    """Missing or malformed input."""


class NotFoundError(GiftPoolError):
    """Item or debt does not exist."""


class OverfundedError(GiftPoolError):
    """Contributions would exceed the item's total price."""


class ConflictError(GiftPoolError):
    """Write clashes with the item's current contribution state."""


class AuthorizationError(GiftPoolError):
    """Actor is not allowed to perform the operation."""
