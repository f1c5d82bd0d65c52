"""
Error taxonomy for the pricing engine.

Only ValidationError is meant to reach HTTP callers. Every other error is
raised by an upstream-facing component and absorbed by the resolution
engine, which turns it into "try the next candidate" or mock data.
"""

from typing import Optional


class PricingError(Exception):
    """Base class for all pricing-engine errors."""


class ValidationError(PricingError):
    """Malformed caller input: empty drug query, bad ZIP code, radius <= 0."""


class AuthError(PricingError):
    """Credentials missing or rejected by the token endpoint."""


class SchemaError(PricingError):
    """An upstream body that is not parseable JSON."""


class UpstreamError(PricingError):
    """HTTP error status, timeout or connection failure talking to the upstream."""

    def __init__(self, message: str, status_code: Optional[int] = None, timed_out: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.timed_out = timed_out


class ResolutionCancelled(PricingError):
    """The caller abandoned the request; no further attempts were started."""
