"""Featured placement: capacity ledger, FIFO backfill scheduler and waiting queue."""
from app.services.featured.capacity import (
    RegionUtilization,
    occupying_slots,
    peak_occupancy,
    region_slot_cap,
    region_utilization,
    vendor_slot_count,
)
from app.services.featured.queue import join_queue, list_vendor_queue, queue_position
from app.services.featured.scheduler import (
    SlotPlan,
    cancel_reserved_slot,
    insert_planned_slot,
    list_vendor_slots,
    plan_slot,
    reserve_slot,
)

__all__ = [
    "RegionUtilization",
    "SlotPlan",
    "cancel_reserved_slot",
    "insert_planned_slot",
    "join_queue",
    "list_vendor_queue",
    "list_vendor_slots",
    "occupying_slots",
    "peak_occupancy",
    "plan_slot",
    "queue_position",
    "region_slot_cap",
    "region_utilization",
    "reserve_slot",
    "vendor_slot_count",
]
