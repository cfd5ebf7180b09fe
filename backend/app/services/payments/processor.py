"""
Payment event effects and the end-to-end processing entry point.

process_incoming_event: admit → handle_event → complete (or release on failure).
handle_event dispatches on the decoded variant. Every branch is idempotent on its own, because
admission only deduplicates by event id, not by the payment facts inside the payload.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utc_now
from app.core.constants import (
    AUTO_DELIST_DURATION,
    CHECKOUT_TYPE_FEATURED_SLOT,
    DEFAULT_COMMISSION_RATE,
    DISPUTE_AUTO_DELIST_THRESHOLD,
    LEDGER_COMMISSION_DEDUCTED,
    OCCUPYING_SLOT_STATUSES,
    ORDER_SUCCEEDED,
    SLOT_ACTIVE,
    VENDOR_ACTIVE,
    VENDOR_SUSPENDED,
)
from app.core.errors import DomainInvariantViolation, TransientStoreFailure
from app.db.uow import unit_of_work
from app.models.featured_slot import FeaturedSlot
from app.models.order import Order
from app.models.product import Product
from app.models.transaction_log import TransactionLog
from app.models.vendor import Vendor
from app.services import telemetry
from app.services.background import dispatch_in_background
from app.services.email_notify import send_tier_downgrade_email
from app.services.payments import idempotency
from app.services.payments.events import (
    AccountUpdated,
    CheckoutSessionCompleted,
    DisputeClosed,
    DisputeCreated,
    GatewayEvent,
    SubscriptionUpdated,
)
from app.services.payments.sanitize import sanitize_for_logging
from app.services.tiers import (
    commission_cents,
    enforce_tier_product_quota,
    normalize_tier,
    product_quota,
    published_products,
)

logger = logging.getLogger(__name__)

# notifier(to_email, business_name, old_tier, new_tier, unpublished_count, product_titles)
DowngradeNotifier = Callable[[str, str, str, str, int, list[str]], Any]


def notify_downgrade_in_background(
    to_email: str,
    business_name: str,
    old_tier: str,
    new_tier: str,
    unpublished_count: int,
    product_titles: list[str],
) -> None:
    dispatch_in_background(
        send_tier_downgrade_email, to_email, business_name, old_tier, new_tier, unpublished_count, product_titles
    )


def get_downgrade_notifier() -> DowngradeNotifier:
    return notify_downgrade_in_background


@dataclass
class ProcessResult:
    skipped: bool
    summary: dict[str, Any] = field(default_factory=dict)


# --- Effects ---


def _vendor_for_update(db: Session, vendor_id: str) -> Vendor:
    vendor = db.query(Vendor).filter(Vendor.id == vendor_id).with_for_update().one_or_none()
    if vendor is None:
        raise DomainInvariantViolation(f"Vendor {vendor_id} not found")
    return vendor


def _order_exists(db: Session, payment_reference: str) -> bool:
    return db.query(Order.id).filter(Order.payment_reference == payment_reference).first() is not None


def record_order(
    db: Session,
    *,
    payment_reference: str,
    amount_cents: int,
    metadata: dict[str, str],
) -> Order | None:
    """
    Create the order and commission ledger entry once per payment_reference.
    Returns the new order, or None when one already exists (duplicate delivery or replay).
    """
    if _order_exists(db, payment_reference):
        logger.info("Order for %s already recorded; skipping", payment_reference)
        return None
    vendor_id = metadata.get("vendor_id")
    rate = DEFAULT_COMMISSION_RATE
    if vendor_id:
        vendor = db.get(Vendor, vendor_id)
        if vendor is not None and vendor.commission_rate is not None:
            rate = vendor.commission_rate
    commission = commission_cents(amount_cents, rate)
    order = Order(
        customer_id=metadata.get("customer_id"),
        vendor_id=vendor_id,
        product_id=metadata.get("product_id"),
        amount_cents=amount_cents,
        commission_cents=commission,
        vendor_net_cents=amount_cents - commission,
        payment_reference=payment_reference,
        status=ORDER_SUCCEEDED,
    )
    try:
        with unit_of_work(db):
            db.add(order)
            db.add(TransactionLog(
                type=LEDGER_COMMISSION_DEDUCTED,
                vendor_id=vendor_id,
                amount_cents=commission,
                payment_reference=payment_reference,
            ))
    except IntegrityError:
        # Concurrent delivery inserted the same payment_reference first
        logger.info("Order for %s recorded concurrently; skipping", payment_reference)
        return None
    logger.info("Order recorded for %s amount=%s commission=%s", payment_reference, amount_cents, commission)
    return order


def activate_featured_slot(db: Session, slot_id: int, payment_reference: str, amount_cents: int) -> FeaturedSlot:
    with unit_of_work(db):
        slot = db.query(FeaturedSlot).filter(FeaturedSlot.id == slot_id).with_for_update().one_or_none()
        if slot is None:
            raise DomainInvariantViolation(f"Reserved featured slot {slot_id} not found")
        # A cancelled or expired slot no longer holds capacity; reviving it would skip the cap re-check
        if slot.status not in OCCUPYING_SLOT_STATUSES:
            raise DomainInvariantViolation(f"Reserved featured slot {slot_id} is {slot.status}, cannot activate")
        slot.status = SLOT_ACTIVE
        slot.payment_reference = payment_reference
        slot.charged_amount_cents = amount_cents
    logger.info("Activated featured slot %s for %s", slot_id, payment_reference)
    return slot


def handle_checkout_completed(db: Session, event: CheckoutSessionCompleted) -> None:
    session = event.data.object
    payment_reference = session.payment_reference
    if not payment_reference:
        logger.warning("checkout.session.completed without payment_intent session=%s", session.id)
        return
    amount = session.amount_cents
    record_order(db, payment_reference=payment_reference, amount_cents=amount, metadata=session.metadata)
    if session.metadata.get("type") == CHECKOUT_TYPE_FEATURED_SLOT and session.metadata.get("reserved_slot_id"):
        raw_slot_id = session.metadata["reserved_slot_id"]
        try:
            slot_id = int(raw_slot_id)
        except ValueError:
            raise DomainInvariantViolation(f"Invalid reserved_slot_id {raw_slot_id!r}") from None
        activate_featured_slot(db, slot_id, payment_reference, amount)


def handle_dispute_created(db: Session, event: DisputeCreated, now: datetime) -> None:
    vendor_id = event.data.object.metadata.get("vendor_id")
    if not vendor_id:
        return
    with unit_of_work(db):
        vendor = _vendor_for_update(db, vendor_id)
        new_count = (vendor.dispute_count or 0) + 1
        vendor.dispute_count = new_count
        vendor.last_dispute_at = now
        if new_count >= DISPUTE_AUTO_DELIST_THRESHOLD and vendor.vendor_status == VENDOR_ACTIVE:
            vendor.vendor_status = VENDOR_SUSPENDED
            vendor.tier = "suspended"
            vendor.auto_delisted_until = now + AUTO_DELIST_DURATION
            vendor.suspension_reason = f"Auto-suspended: {new_count} disputes"
            logger.warning("Vendor %s auto-suspended after %s disputes", vendor_id, new_count)


def handle_dispute_closed(db: Session, event: DisputeClosed) -> None:
    dispute = event.data.object
    vendor_id = dispute.metadata.get("vendor_id")
    if not vendor_id or dispute.outcome_type != "won":
        return
    with unit_of_work(db):
        vendor = _vendor_for_update(db, vendor_id)
        vendor.dispute_count = max((vendor.dispute_count or 0) - 1, 0)


def handle_subscription_updated(
    db: Session,
    event: SubscriptionUpdated,
    notify: DowngradeNotifier,
    now: datetime,
) -> None:
    metadata = event.data.object.metadata
    vendor_id = metadata.get("vendor_id")
    raw_tier = metadata.get("tier")
    if not vendor_id or not raw_tier:
        return
    new_tier = normalize_tier(raw_tier)
    with unit_of_work(db):
        vendor = _vendor_for_update(db, vendor_id)
        previous_tier = vendor.tier or "basic"
        business_name = vendor.business_name or "Your business"
        contact_email = vendor.contact_email
        vendor.tier = new_tier
    logger.info("Vendor %s tier %s -> %s", vendor_id, previous_tier, new_tier)

    if len(published_products(db, vendor_id)) <= product_quota(new_tier):
        return
    result = enforce_tier_product_quota(db, vendor_id, new_tier, now=now)
    if result.unpublished_count > 0 and contact_email:
        titles = [p.title or "Untitled product" for p in result.unpublished_products]
        try:
            notify(contact_email, business_name, previous_tier, new_tier, result.unpublished_count, titles)
        except Exception as e:
            logger.warning("Downgrade notification for vendor %s failed: %s", vendor_id, e)


def handle_account_updated(db: Session, event: AccountUpdated) -> None:
    account = event.data.object
    with unit_of_work(db):
        vendor = db.query(Vendor).filter(Vendor.payment_account_id == account.id).with_for_update().one_or_none()
        if vendor is None:
            logger.info("account.updated for unlinked account %s; nothing to sync", account.id)
            return
        vendor.payment_account_status = "active" if account.charges_enabled else "pending"
        vendor.onboarding_complete = bool(account.charges_enabled and account.payouts_enabled)


def handle_event(
    db: Session,
    event: GatewayEvent,
    *,
    notify: DowngradeNotifier = notify_downgrade_in_background,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Apply the event's business effects. Returns the redacted event summary."""
    now = now or utc_now()
    if isinstance(event, CheckoutSessionCompleted):
        handle_checkout_completed(db, event)
    elif isinstance(event, DisputeCreated):
        handle_dispute_created(db, event, now)
    elif isinstance(event, DisputeClosed):
        handle_dispute_closed(db, event)
    elif isinstance(event, SubscriptionUpdated):
        handle_subscription_updated(db, event, notify, now)
    elif isinstance(event, AccountUpdated):
        handle_account_updated(db, event)
    else:
        logger.info("Unhandled event type %s (%s); recording as processed", event.type, event.id)
    return event.summary()


# --- Entry point ---


def process_incoming_event(
    db: Session,
    event: GatewayEvent,
    *,
    notify: DowngradeNotifier = notify_downgrade_in_background,
    emit_telemetry: bool = True,
    now: datetime | None = None,
) -> ProcessResult:
    """
    Admit, apply effects, then complete. DomainInvariantViolation still completes the event so a
    permanently bad payload is not redelivered forever; store failures and unexpected errors
    release the reservation and propagate so the gateway retries.
    """
    admission = idempotency.admit(db, event.id, event.type)
    if not admission.admitted:
        return ProcessResult(skipped=True)

    try:
        summary = handle_event(db, event, notify=notify, now=now)
    except DomainInvariantViolation as e:
        db.rollback()
        logger.warning("Event %s (%s) violates a domain invariant: %s", event.id, event.type, e)
        summary = {**event.summary(), "error": "domain_invariant_violation", "detail": str(e)}
    except DBAPIError as e:
        db.rollback()
        _release_quietly(db, event.id)
        raise TransientStoreFailure(f"Store failure processing {event.id}: {e}") from e
    except Exception:
        db.rollback()
        _release_quietly(db, event.id)
        raise

    sanitized = sanitize_for_logging(summary)
    idempotency.complete(db, event.id, sanitized, now=now)
    if emit_telemetry:
        dispatch_in_background(
            telemetry.emit_event, "payment_event_processed", telemetry.minimal_event_payload(sanitized)
        )
    logger.info("Processed payment event %s %s", event.id, sanitized)
    return ProcessResult(skipped=False, summary=summary)


def _release_quietly(db: Session, external_event_id: str) -> None:
    """Release the reservation; a failed release is logged so the original error is what propagates."""
    try:
        idempotency.release(db, external_event_id)
    except Exception as e:
        logger.error("Failed to release reservation for event %s: %s", external_event_id, e, exc_info=True)
