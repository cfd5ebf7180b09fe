"""Vendor tier tools: preview which products a downgrade would unpublish, and change tier."""
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.core.errors import (
    STATUS_BAD_REQUEST,
    DomainInvariantViolation,
    MarketplaceError,
    NotFound,
    domain_error_to_http,
)
from app.db.session import get_db
from app.models.vendor import Vendor
from app.services.payments.processor import DowngradeNotifier, get_downgrade_notifier
from app.services.tiers import change_vendor_tier, downgrade_preview, normalize_tier, product_quota, tier_limits

router = APIRouter()
logger = logging.getLogger(__name__)


class TierChangeRequest(BaseModel):
    tier: str = Field(..., min_length=1, max_length=16)


@router.get("/{vendor_id}/tier/downgrade-preview")
def tier_downgrade_preview(
    vendor_id: str,
    tier: str = Query(..., min_length=1, max_length=16),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Oldest-first list of published products that would be unpublished on moving to `tier`."""
    if db.get(Vendor, vendor_id) is None:
        raise domain_error_to_http(NotFound(f"Vendor {vendor_id} not found"))
    try:
        new_tier = normalize_tier(tier)
    except DomainInvariantViolation as e:
        raise HTTPException(status_code=STATUS_BAD_REQUEST, detail=str(e)) from e
    affected = downgrade_preview(db, vendor_id, new_tier)
    return {
        "tier": new_tier,
        "product_quota": product_quota(new_tier),
        "will_unpublish": len(affected),
        "affected_products": [
            {"id": p.id, "title": p.title, "created_at": p.created_at.isoformat() if p.created_at else None}
            for p in affected
        ],
    }


@router.patch("/{vendor_id}/tier")
def change_tier(
    vendor_id: str,
    body: TierChangeRequest,
    db: Session = Depends(get_db),
    notify: DowngradeNotifier = Depends(get_downgrade_notifier),
) -> dict[str, Any]:
    """
    Move the vendor to another tier. The tier's quota, commission rate and selling flag are copied
    onto the vendor; a downgrade unpublishes the oldest excess products and emails the vendor.
    """
    try:
        change = change_vendor_tier(db, vendor_id, body.tier)
    except DomainInvariantViolation as e:
        raise HTTPException(status_code=STATUS_BAD_REQUEST, detail=str(e)) from e
    except MarketplaceError as e:
        raise domain_error_to_http(e) from e

    unpublished = change.enforcement.unpublished_products
    if unpublished and change.contact_email:
        titles = [p.title or "Untitled product" for p in unpublished]
        try:
            notify(change.contact_email, change.business_name, change.old_tier, change.new_tier, len(unpublished), titles)
        except Exception as e:
            logger.warning("Downgrade notification for vendor %s failed: %s", vendor_id, e)

    limits = tier_limits(change.new_tier)
    return {
        "tier": change.new_tier,
        "previous_tier": change.old_tier,
        "product_quota": limits["product_quota"],
        "commission_rate": limits["commission_rate"],
        "unpublished_count": change.enforcement.unpublished_count,
    }
