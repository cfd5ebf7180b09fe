"""
Domain error taxonomy for reservations and payment events.
Exceptions carry the domain meaning; a rule table maps them onto HTTP so routes stay thin.
"""
from __future__ import annotations

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_BAD_GATEWAY = 502
STATUS_INTERNAL_ERROR = 500

MSG_TRY_AGAIN = "Featured placement was just taken by another purchase. Please try again."


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class MarketplaceError(Exception):
    """Base class for errors raised by the placement and payment core."""


class CapacityExceeded(MarketplaceError):
    """Insert-time capacity re-check failed. Recoverable: the caller re-plans."""


class RegionCapExceeded(CapacityExceeded):
    def __init__(self, region_id: int, cap: int):
        super().__init__(f"Region {region_id} is at its featured slot cap ({cap})")
        self.region_id = region_id
        self.cap = cap


class VendorCapExceeded(CapacityExceeded):
    def __init__(self, vendor_id: str, cap: int):
        super().__init__(f"Vendor {vendor_id} already holds {cap} featured slot(s)")
        self.vendor_id = vendor_id
        self.cap = cap


class UpstreamVerificationFailed(MarketplaceError):
    """Unsigned, badly signed or malformed gateway event. Rejected before any state change."""


class TransientStoreFailure(MarketplaceError):
    """Backing store failed mid-processing; the event reservation is released so the gateway retries."""


class DomainInvariantViolation(MarketplaceError):
    """Event refers to state that does not exist (e.g. unknown vendor). Logged; event is still completed."""


class NotFound(MarketplaceError):
    pass


class NotEligible(MarketplaceError):
    """Vendor may not buy featured placement (inactive, or tier without featured slots)."""


class CheckoutUnavailable(MarketplaceError):
    """Payment gateway could not create a checkout session."""


# ---------------------------------------------------------------------------
# Error rules: (exception type, status_code, detail or None to use str(exc))
# First match wins.
# ---------------------------------------------------------------------------

ERROR_RULES: list[tuple[type[Exception], int, str | None]] = [
    (CapacityExceeded, STATUS_CONFLICT, MSG_TRY_AGAIN),
    (UpstreamVerificationFailed, STATUS_BAD_REQUEST, None),
    (NotFound, STATUS_NOT_FOUND, None),
    (NotEligible, STATUS_FORBIDDEN, None),
    (CheckoutUnavailable, STATUS_BAD_GATEWAY, None),
]


def domain_error_to_http(exc: Exception) -> HTTPException:
    """
    Map a domain exception into an HTTPException.
    Uses ERROR_RULES for known types; otherwise returns 500 with the exception message.
    """
    for exc_type, status_code, detail in ERROR_RULES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=detail or str(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))
