"""
Error Taxonomy
==============
Domain exceptions raised by the footprint engine. Each carries the HTTP
status the API layer answers with.
"""


class CarbonError(Exception):
    """Base class for footprint calculation errors."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInput(CarbonError):
    """Required request data is missing or malformed."""

    status_code = 400


class NoSourceData(CarbonError):
    """Neither metrics nor ingested activity exist for the period."""

    status_code = 404


MissingInput = NoSourceData


class NotFound(CarbonError):
    status_code = 404


class ConcurrentRecalculation(CarbonError):
    """Another calculation wrote the same (company, period) snapshot first."""

    status_code = 409


class CalculationCancelled(CarbonError):
    status_code = 499


class FactorResolutionFailure(CarbonError):
    """No emission factor set could be resolved, not even the seeded defaults."""

    status_code = 500
