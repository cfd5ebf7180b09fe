from app.models.featured_queue_entry import FeaturedQueueEntry
from app.models.featured_slot import FeaturedSlot
from app.models.featured_slot_reminder import FeaturedSlotReminder
from app.models.order import Order
from app.models.product import Product
from app.models.region import Region
from app.models.transaction_log import TransactionLog
from app.models.vendor import Vendor
from app.models.webhook_event import WebhookEvent

__all__ = [
    "FeaturedQueueEntry",
    "FeaturedSlot",
    "FeaturedSlotReminder",
    "Order",
    "Product",
    "Region",
    "TransactionLog",
    "Vendor",
    "WebhookEvent",
]
