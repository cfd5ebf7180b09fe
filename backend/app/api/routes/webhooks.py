"""
Inbound Stripe webhook.

verify signature → decode variant → admit/process/complete. Bad signature or malformed known
event → 400, never admitted. Already-seen event → 200 no-op. Processing failure → 500 after the
reservation is released, so Stripe's retry delivers it again.
"""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.core.errors import STATUS_INTERNAL_ERROR, UpstreamVerificationFailed, domain_error_to_http
from app.db.session import get_db
from app.services.payments.events import decode_event
from app.services.payments.gateway import verify_webhook
from app.services.payments.processor import DowngradeNotifier, get_downgrade_notifier, process_incoming_event

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="stripe-signature"),
    db: Session = Depends(get_db),
    notify: DowngradeNotifier = Depends(get_downgrade_notifier),
):
    payload = await request.body()
    try:
        event = decode_event(verify_webhook(payload, stripe_signature or ""))
    except UpstreamVerificationFailed as e:
        raise domain_error_to_http(e) from e

    try:
        # Blocking session work runs in the threadpool, not on the event loop
        result = await run_in_threadpool(process_incoming_event, db, event, notify=notify)
    except Exception as e:
        logger.exception("Webhook handling error for event %s (%s): %s", event.id, event.type, e)
        raise HTTPException(status_code=STATUS_INTERNAL_ERROR, detail="Internal error") from e
    return {"received": True, "skipped": result.skipped}
