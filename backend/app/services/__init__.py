"""Domain services: featured placement, payments, tiers and vendor notifications."""
