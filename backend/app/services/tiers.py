"""
Tier limits and FIFO product quota enforcement.

Tier downgrades auto-unpublish the oldest published products first until the vendor fits the
new tier's product quota. Re-running against a compliant vendor is a no-op.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.constants import DEFAULT_TIER, SELF_SERVICE_TIERS, TIER_LIMITS, VENDOR_ACTIVE
from app.core.errors import DomainInvariantViolation, NotEligible, NotFound
from app.db.uow import unit_of_work
from app.models.product import Product
from app.models.vendor import Vendor

logger = logging.getLogger(__name__)

# Plan labels the gateway may send that map onto a canonical tier
_TIER_ALIASES = {
    "free": "basic",
    "standard": "pro",
}

# Higher weight = lower tier; moving to a heavier tier is a downgrade
_TIER_WEIGHTS = {
    "premium": 0,
    "pro": 1,
    "basic": 2,
    "none": 3,
    "suspended": 4,
}


@dataclass
class QuotaEnforcement:
    unpublished_count: int = 0
    unpublished_products: list[Product] = field(default_factory=list)


def normalize_tier(label: str | None) -> str:
    """Lower-case, trim and alias a tier label. Raises DomainInvariantViolation for unknown tiers."""
    tier = (label or "").strip().lower()
    tier = _TIER_ALIASES.get(tier, tier)
    if tier not in TIER_LIMITS:
        raise DomainInvariantViolation(f"Unknown tier: {label!r}")
    return tier


def tier_limits(tier: str | None) -> dict:
    return TIER_LIMITS.get((tier or "").lower(), TIER_LIMITS["none"])


def product_quota(tier: str | None) -> int:
    return tier_limits(tier)["product_quota"]


def is_downgrade(old_tier: str | None, new_tier: str | None) -> bool:
    # Unknown or missing tiers weigh heaviest, so moving off them is never a downgrade
    return _TIER_WEIGHTS.get(new_tier or "", 10) > _TIER_WEIGHTS.get(old_tier or "", 10)


def commission_cents(amount_cents: int, rate: float) -> int:
    """Commission on amount_cents at rate, whole cents with halves rounded up (2.5c -> 3c)."""
    exact = Decimal(amount_cents) * Decimal(str(rate))
    return int(exact.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def published_products(db: Session, vendor_id: str) -> list[Product]:
    """Vendor's published products, oldest first (FIFO order)."""
    return (
        db.query(Product)
        .filter(Product.vendor_id == vendor_id, Product.published.is_(True))
        .order_by(Product.created_at.asc(), Product.id.asc())
        .all()
    )


def downgrade_preview(db: Session, vendor_id: str, new_tier: str) -> list[Product]:
    """Products that enforce_tier_product_quota would unpublish for new_tier, without changing anything."""
    products = published_products(db, vendor_id)
    excess = len(products) - product_quota(new_tier)
    return products[:excess] if excess > 0 else []


def enforce_tier_product_quota(
    db: Session,
    vendor_id: str,
    new_tier: str,
    now: datetime | None = None,
) -> QuotaEnforcement:
    """Unpublish the oldest published products until the vendor is within new_tier's quota."""
    limit = product_quota(new_tier)
    with unit_of_work(db):
        products = published_products(db, vendor_id)
        if len(products) <= limit:
            logger.info(
                "No unpublish needed; within tier cap vendor=%s tier=%s count=%s limit=%s",
                vendor_id, new_tier, len(products), limit,
            )
            return QuotaEnforcement()
        to_unpublish = products[: len(products) - limit]
        stamp = now or utc_now()
        for product in to_unpublish:
            product.published = False
            product.updated_at = stamp
    logger.info(
        "FIFO unpublish complete vendor=%s tier=%s unpublished=%s product_ids=%s",
        vendor_id, new_tier, len(to_unpublish), [p.id for p in to_unpublish],
    )
    return QuotaEnforcement(unpublished_count=len(to_unpublish), unpublished_products=to_unpublish)


@dataclass
class TierChange:
    vendor_id: str
    old_tier: str
    new_tier: str
    business_name: str
    contact_email: str | None
    enforcement: QuotaEnforcement = field(default_factory=QuotaEnforcement)

    @property
    def changed(self) -> bool:
        return self.old_tier != self.new_tier


def change_vendor_tier(
    db: Session,
    vendor_id: str,
    target_tier: str | None,
    now: datetime | None = None,
) -> TierChange:
    """
    Move an active vendor onto a self-service tier and copy that tier's limits onto the vendor row.
    A downgrade then runs FIFO quota enforcement. Moving to the current tier changes nothing.
    """
    new_tier = normalize_tier(target_tier)
    if new_tier not in SELF_SERVICE_TIERS:
        raise DomainInvariantViolation(f"Tier must be one of: {', '.join(SELF_SERVICE_TIERS)}")
    with unit_of_work(db):
        vendor = db.query(Vendor).filter(Vendor.id == vendor_id).with_for_update().one_or_none()
        if vendor is None:
            raise NotFound(f"Vendor {vendor_id} not found")
        if vendor.vendor_status != VENDOR_ACTIVE:
            raise NotEligible("Vendor account is not active")
        change = TierChange(
            vendor_id=vendor_id,
            old_tier=vendor.tier or DEFAULT_TIER,
            new_tier=new_tier,
            business_name=vendor.business_name or "Your business",
            contact_email=vendor.contact_email,
        )
        if not change.changed:
            return change
        limits = TIER_LIMITS[new_tier]
        vendor.tier = new_tier
        vendor.product_quota = limits["product_quota"]
        vendor.commission_rate = limits["commission_rate"]
        vendor.can_sell_products = limits["can_sell"]
    logger.info("Vendor %s changed tier %s -> %s", vendor_id, change.old_tier, new_tier)

    if is_downgrade(change.old_tier, new_tier):
        change.enforcement = enforce_tier_product_quota(db, vendor_id, new_tier, now=now)
    return change
