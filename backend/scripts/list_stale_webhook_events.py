#!/usr/bin/env python3
"""
List webhook_events reservations that were never completed or released (crash between
admit and complete). Stripe's retries for these events are skipped until the row is cleared.
Run: cd backend && python scripts/list_stale_webhook_events.py [--minutes 30] [--release]
"""
import argparse
import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.session import SessionLocal
from app.services.payments.idempotency import release, stale_reservations


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--minutes", type=int, default=30, help="Minimum reservation age")
    parser.add_argument("--release", action="store_true", help="Delete the rows so the next delivery is processed")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        rows = stale_reservations(db, timedelta(minutes=args.minutes))
        if not rows:
            print("No stale reservations.")
            return 0
        for row in rows:
            print(f"{row.external_event_id}  {row.event_type:<32} reserved_at={row.created_at.isoformat()}")
        if args.release:
            for row in rows:
                release(db, row.external_event_id)
            print(f"Released {len(rows)} reservation(s).")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
