#!/usr/bin/env python3
"""
Quick checks so the backend can start. Run from repo root or backend/:
  python scripts/check_backend.py
"""
import os
import sys
from pathlib import Path

# Run from backend/
backend_dir = Path(__file__).resolve().parent.parent
os.chdir(backend_dir)
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))


def main():
    errors = []

    # 1) .env
    env_file = backend_dir / ".env"
    if not env_file.exists():
        errors.append("backend/.env missing. Set DATABASE_URL, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET, etc.")
    else:
        print("OK  .env exists")

    # 2) Stripe config: webhooks are rejected without a signing secret
    from app.config import settings

    if not settings.stripe_webhook_secret:
        errors.append("STRIPE_WEBHOOK_SECRET is not set; every webhook delivery will be rejected.")
        print("FAIL STRIPE_WEBHOOK_SECRET missing")
    else:
        print("OK  STRIPE_WEBHOOK_SECRET set")
    if not settings.stripe_secret_key or not settings.stripe_price_featured_30d:
        print("WARN STRIPE_SECRET_KEY / STRIPE_PRICE_FEATURED_30D missing; reservations will fail at checkout")

    # 3) DB connection + schema
    try:
        from sqlalchemy import inspect, text
        from app.db.session import engine
        from app.db.tables import ALL_TABLE_NAMES

        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("OK  Database connection (DATABASE_URL)")
        missing = sorted(set(ALL_TABLE_NAMES) - set(inspect(engine).get_table_names()))
        if missing:
            errors.append(f"Tables missing: {', '.join(missing)}. Run: alembic upgrade head")
            print("FAIL Schema:", ", ".join(missing))
        else:
            print("OK  Schema (all tables present)")
    except Exception as e:
        errors.append(f"Database: {e}")
        print("FAIL Database:", e)

    # 4) App import (catches missing deps, bad imports)
    try:
        from app.main import app  # noqa: F401
        print("OK  App import (app.main)")
    except Exception as e:
        errors.append(f"App import: {e}")
        print("FAIL App import:", e)

    if errors:
        print("\n---")
        for e in errors:
            print("•", e)
        print("\nThen start backend: uvicorn app.main:app --reload --host 0.0.0.0 --port 8000")
        return 1

    print("\nAll checks passed. Start with: uvicorn app.main:app --reload")
    return 0


if __name__ == "__main__":
    sys.exit(main())
