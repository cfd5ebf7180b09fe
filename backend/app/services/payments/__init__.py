"""Payment gateway events: verification, decoding, idempotency gate and effect processing."""
from app.services.payments.events import decode_event
from app.services.payments.gateway import CheckoutHandle, StripeCheckoutGateway, get_checkout_gateway, verify_webhook
from app.services.payments.processor import ProcessResult, handle_event, process_incoming_event

__all__ = [
    "CheckoutHandle",
    "ProcessResult",
    "StripeCheckoutGateway",
    "decode_event",
    "get_checkout_gateway",
    "handle_event",
    "process_incoming_event",
    "verify_webhook",
]
