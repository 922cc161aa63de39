"""
Exceptions raised by the tour optimizer.
"""


class TourOptimizerError(Exception):
    """Base class for tour optimizer errors."""


class InvalidTransportMode(TourOptimizerError, ValueError):
    """Raised when a transport mode is not in the speed table."""

    def __init__(self, mode, choices=()):
        self.mode = mode
        self.choices = tuple(choices)
        message = f"Unknown transport mode: {mode!r}"
        if self.choices:
            message += f" (expected one of: {', '.join(self.choices)})"
        super().__init__(message)


class InvalidTourError(TourOptimizerError):
    """Raised when a tour is not a permutation of the location indices."""


class GeocodeFailure(TourOptimizerError):
    """Raised when an address cannot be resolved to coordinates."""

    def __init__(self, address, reason):
        self.address = address
        self.reason = reason
        super().__init__(f"Could not geocode {address!r}: {reason}")
