#!/usr/bin/env python3
"""
Print featured slot utilization per region (live now vs committed incl. future backfill).
Run: cd backend && python scripts/check_featured_capacity.py [--region-id N]
"""
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.db.session import SessionLocal
from app.models.region import Region
from app.services.featured import region_utilization


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--region-id", type=int, default=None)
    args = parser.parse_args()

    db = SessionLocal()
    try:
        q = db.query(Region).order_by(Region.name.asc())
        if args.region_id is not None:
            q = q.filter(Region.id == args.region_id)
        regions = q.all()
        if not regions:
            print("No regions found.")
            return 1
        print(f"{'region':<32} {'cap':>4} {'live':>5} {'committed':>10}  open")
        for region in regions:
            u = region_utilization(db, region.id)
            print(
                f"{region.name:<32} {u.slot_cap:>4} {u.live_count:>5} {u.committed_count:>10}  "
                f"{'yes' if u.has_capacity else 'no'}"
            )
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
