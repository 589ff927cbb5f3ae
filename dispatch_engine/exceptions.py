"""
Error taxonomy shared by the loops, the API client and the coordinators.

* ``LocationUnavailable`` -- no GPS fix or permission denied.
* ``BackendError``        -- timeout, transport failure or 4xx/5xx.
* ``InvalidStateTransition`` / ``UnknownStatusError`` -- programming defects,
  raised before any network call.
* ``MissingPrecondition`` subclasses -- no token, no address, etc.  The
  caller must prompt or redirect instead of retrying.
"""

from __future__ import annotations

from typing import Optional


class DispatchError(Exception):
    """Base class for every error raised by this package."""


class LocationUnavailable(DispatchError):
    """The device could not produce a position fix."""


class BackendError(DispatchError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class InvalidStateTransition(DispatchError):
    """Raised when an order status change violates the state machine."""


class UnknownStatusError(DispatchError):
    """A status literal outside the closed ``OrderStatus`` enum."""


class ImmutableOrderError(DispatchError):
    """Attempt to change a field that is frozen for the order's status."""


class DuplicateSubmissionError(DispatchError):
    """A second submission was attempted while one is still in flight."""


class MissingPrecondition(DispatchError):
    """Base for failures that need user action rather than a retry."""


class MissingAuthToken(MissingPrecondition):
    pass


class NoDeliveryAddress(MissingPrecondition):
    """The user has no delivery address on file; redirect to address creation."""


class EmptyCartError(MissingPrecondition):
    pass


class UnresolvedLocationError(MissingPrecondition):
    """Pickup or drop-off coordinates could not be resolved."""
