"""
Stripe integration: webhook signature verification and featured slot checkout sessions.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any

import stripe

from app.config import settings
from app.core.constants import CHECKOUT_TYPE_FEATURED_SLOT, DEFAULT_COMMISSION_RATE, FEATURED_SLOT_PRICE_CENTS
from app.core.errors import CheckoutUnavailable, UpstreamVerificationFailed
from app.services.tiers import commission_cents

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutHandle:
    session_id: str
    url: str | None

    def as_dict(self) -> dict[str, Any]:
        return {"session_id": self.session_id, "url": self.url}


def verify_webhook(payload: bytes, signature: str, secret: str | None = None) -> dict[str, Any]:
    """
    Verify the stripe-signature header against the shared secret and parse the JSON body.
    Raises UpstreamVerificationFailed for a missing secret, bad signature or non-JSON body.
    """
    secret = secret if secret is not None else settings.stripe_webhook_secret
    if not secret:
        raise UpstreamVerificationFailed("Webhook secret is not configured")
    if not signature:
        raise UpstreamVerificationFailed("Missing stripe-signature header")
    try:
        text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            text, signature, secret, tolerance=settings.stripe_webhook_tolerance_seconds
        )
        return json.loads(text)
    except stripe.SignatureVerificationError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise UpstreamVerificationFailed(f"Webhook signature verification failed: {e}") from e
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise UpstreamVerificationFailed(f"Webhook body is not valid JSON: {e}") from e


class StripeCheckoutGateway:
    """Creates checkout sessions. Injected into routes so tests can swap in a fake."""

    def __init__(self, api_key: str | None = None, featured_price_id: str | None = None):
        self.api_key = api_key if api_key is not None else settings.stripe_secret_key
        self.featured_price_id = featured_price_id if featured_price_id is not None else settings.stripe_price_featured_30d

    def create_featured_slot_session(
        self,
        *,
        vendor_id: str,
        business_profile_id: str,
        region_id: int,
        region_label: str,
        reserved_slot_id: int,
        vendor_account_id: str | None = None,
        success_url: str | None = None,
        cancel_url: str | None = None,
    ) -> CheckoutHandle:
        """Checkout for one featured slot. Metadata carries reserved_slot_id so the completed event activates it."""
        if not self.api_key or not self.featured_price_id:
            raise CheckoutUnavailable("Featured slot checkout is not configured (STRIPE_SECRET_KEY / STRIPE_PRICE_FEATURED_30D)")
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [{"price": self.featured_price_id, "quantity": 1}],
            "success_url": success_url or f"{settings.site_url}/vendor/dashboard?featured=success",
            "cancel_url": cancel_url or f"{settings.site_url}/vendor/dashboard?featured=cancelled",
            "metadata": {
                "type": CHECKOUT_TYPE_FEATURED_SLOT,
                "vendor_id": vendor_id,
                "business_profile_id": business_profile_id,
                "region_id": str(region_id),
                "region_label": region_label,
                "reserved_slot_id": str(reserved_slot_id),
            },
        }
        try:
            if vendor_account_id:
                price = stripe.Price.retrieve(self.featured_price_id, api_key=self.api_key)
                params["payment_intent_data"] = {
                    "application_fee_amount": commission_cents(
                        price.unit_amount or FEATURED_SLOT_PRICE_CENTS, DEFAULT_COMMISSION_RATE
                    ),
                    "transfer_data": {"destination": vendor_account_id},
                }
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            logger.warning("Featured slot checkout failed vendor=%s slot=%s: %s", vendor_id, reserved_slot_id, e)
            raise CheckoutUnavailable(f"Payment provider error: {e}") from e
        logger.info("Featured slot checkout created session=%s slot=%s", session.id, reserved_slot_id)
        return CheckoutHandle(session_id=session.id, url=session.url)


def get_checkout_gateway() -> StripeCheckoutGateway:
    return StripeCheckoutGateway()
