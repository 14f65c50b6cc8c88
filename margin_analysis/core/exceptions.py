"""
Domain errors raised by the calculation and rate-lookup layers.

Routers translate these into HTTP responses; utilities never raise
HTTPException themselves.
"""


class MarginAnalysisError(Exception):
    """Base class for margin analysis domain errors."""


class RateUnavailable(MarginAnalysisError):
    """No exchange rate could be resolved from cache, store or refresh."""

    def __init__(self, currency_code: str):
        self.currency_code = currency_code
        super().__init__(f"Exchange rate not available for {currency_code}")


class UnknownResourceType(MarginAnalysisError):
    """A cost-rate lookup was made for a resource type outside the catalog."""

    def __init__(self, resource_type: str):
        self.resource_type = resource_type
        super().__init__(f"Cost rate not found for resource type: {resource_type}")
