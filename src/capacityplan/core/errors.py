from __future__ import annotations


class CapacityPlanError(ValueError):
    """Base class for validation errors raised at the engine boundary."""


class InvalidDateError(CapacityPlanError):
    """A date string is not a real calendar date in YYYY-MM-DD format."""


class InvalidRangeError(CapacityPlanError):
    """A deadline precedes its start date."""


class InvalidQuantityError(CapacityPlanError):
    """Hours or week counts are non-positive, non-finite or out of bounds."""
