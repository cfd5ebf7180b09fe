"""
Centralized business constants for tiers, featured slots and dispute gating.

Change limits here instead of scattering literals across services and routes.
"""
from datetime import timedelta

# Scheduler job IDs (must match ids used in main.py add_job)
FEATURED_REMINDER_JOB_ID = "featured_slot_reminders"
FEATURED_REMINDER_HOUR_UTC = 9

# Tier limits: product quota, commission rate, featured slot allowance
TIER_LIMITS: dict[str, dict] = {
    "none": {"product_quota": 0, "commission_rate": 0.0, "can_sell": False, "featured_slots": 0},
    "basic": {"product_quota": 3, "commission_rate": 0.08, "can_sell": True, "featured_slots": 0},
    "pro": {"product_quota": 50, "commission_rate": 0.06, "can_sell": True, "featured_slots": 0},
    "premium": {"product_quota": 50, "commission_rate": 0.05, "can_sell": True, "featured_slots": 3},
    "suspended": {"product_quota": 0, "commission_rate": 0.0, "can_sell": False, "featured_slots": 0},
}
DEFAULT_TIER = "basic"
# Tiers a vendor may move to themselves; none and suspended are set by the platform
SELF_SERVICE_TIERS = ("basic", "pro", "premium")

# Featured placement inventory
FEATURED_SLOT_PRICE_CENTS = 2000  # A$20.00
FEATURED_SLOT_DURATION = timedelta(days=30)
FEATURED_SLOT_MAX_PER_REGION = 5  # used when regions.slot_cap is NULL
FEATURED_SLOT_MAX_PER_VENDOR = 3
# Backfilled slots start this long after the slot they queue behind ends (avoids exact-boundary contention)
FEATURED_SLOT_BUFFER = timedelta(minutes=1)
# A planned start further out than this means no scheduling path: vendor joins the waiting queue instead
FEATURED_SLOT_MAX_LEAD = timedelta(days=180)
# Days before end_time that an expiry reminder email goes out
FEATURED_REMINDER_WINDOWS_DAYS = (7, 2)

# Slot statuses
SLOT_SCHEDULED = "scheduled"
SLOT_ACTIVE = "active"
SLOT_EXPIRED = "expired"
SLOT_CANCELLED = "cancelled"
OCCUPYING_SLOT_STATUSES = (SLOT_ACTIVE, SLOT_SCHEDULED)

# Queue statuses
QUEUE_WAITING = "waiting"
QUEUE_NOTIFIED = "notified"
QUEUE_EXPIRED = "expired"

# Vendor statuses
VENDOR_ACTIVE = "active"
VENDOR_SUSPENDED = "suspended"

# Payments and disputes
DEFAULT_COMMISSION_RATE = 0.05
DISPUTE_AUTO_DELIST_THRESHOLD = 3  # 3+ disputes = auto-suspend
AUTO_DELIST_DURATION = timedelta(days=30)
ORDER_SUCCEEDED = "succeeded"
LEDGER_COMMISSION_DEDUCTED = "commission_deducted"
CHECKOUT_TYPE_FEATURED_SLOT = "featured_slot"
