"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL (e.g. TRUNCATE). alembic/env.py asserts the
registered models match this list exactly.
"""
ALL_TABLE_NAMES = (
    "regions",
    "vendors",
    "products",
    "featured_slots",
    "featured_queue",
    "featured_slot_reminders",
    "orders",
    "transactions_log",
    "webhook_events",
)
