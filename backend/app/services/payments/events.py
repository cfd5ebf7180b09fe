"""
Payment gateway events decoded into tagged variants at the boundary.

Known event types validate against a discriminated union on `type`; a malformed known event is
rejected (UpstreamVerificationFailed) before it reaches the idempotency gate. Unknown types decode
as UnhandledEvent and are recorded as processed with a redacted summary.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from app.core.errors import UpstreamVerificationFailed

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
DISPUTE_CREATED = "charge.dispute.created"
DISPUTE_CLOSED = "charge.dispute.closed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
ACCOUNT_UPDATED = "account.updated"


class _GatewayModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# --- Objects ---


class PaymentIntentRef(_GatewayModel):
    id: str
    amount: int | None = None


class CheckoutSession(_GatewayModel):
    id: str
    amount_total: int | None = None
    amount_subtotal: int | None = None
    payment_intent: str | PaymentIntentRef | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def payment_reference(self) -> str | None:
        if isinstance(self.payment_intent, PaymentIntentRef):
            return self.payment_intent.id
        return self.payment_intent

    @property
    def amount_cents(self) -> int:
        if self.amount_total is not None:
            return self.amount_total
        if self.amount_subtotal is not None:
            return self.amount_subtotal
        if isinstance(self.payment_intent, PaymentIntentRef) and self.payment_intent.amount is not None:
            return self.payment_intent.amount
        return 0


class DisputeOutcome(_GatewayModel):
    type: str | None = None


class Dispute(_GatewayModel):
    id: str
    status: str | None = None
    outcome: DisputeOutcome | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def outcome_type(self) -> str | None:
        if self.outcome and self.outcome.type:
            return self.outcome.type
        return self.status


class Subscription(_GatewayModel):
    id: str
    status: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class AccountRequirements(_GatewayModel):
    currently_due: list[str] = Field(default_factory=list)


class Account(_GatewayModel):
    id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    requirements: AccountRequirements | None = None


# --- Event envelopes ---


class _CheckoutData(_GatewayModel):
    object: CheckoutSession


class _DisputeData(_GatewayModel):
    object: Dispute


class _SubscriptionData(_GatewayModel):
    object: Subscription


class _AccountData(_GatewayModel):
    object: Account


class CheckoutSessionCompleted(_GatewayModel):
    id: str
    type: Literal["checkout.session.completed"]
    data: _CheckoutData

    def summary(self) -> dict[str, Any]:
        session = self.data.object
        return {
            "type": self.type,
            "session_id": session.id,
            "amount_total": session.amount_total if session.amount_total is not None else session.amount_subtotal,
            "payment_intent": session.payment_reference,
            "metadata": {
                "vendor_id": session.metadata.get("vendor_id"),
                "product_id": session.metadata.get("product_id"),
                "type": session.metadata.get("type"),
                "reserved_slot_id": session.metadata.get("reserved_slot_id"),
            },
        }


class DisputeCreated(_GatewayModel):
    id: str
    type: Literal["charge.dispute.created"]
    data: _DisputeData

    def summary(self) -> dict[str, Any]:
        return _dispute_summary(self.type, self.data.object)


class DisputeClosed(_GatewayModel):
    id: str
    type: Literal["charge.dispute.closed"]
    data: _DisputeData

    def summary(self) -> dict[str, Any]:
        return _dispute_summary(self.type, self.data.object)


class SubscriptionUpdated(_GatewayModel):
    id: str
    type: Literal["customer.subscription.updated"]
    data: _SubscriptionData

    def summary(self) -> dict[str, Any]:
        sub = self.data.object
        return {
            "type": self.type,
            "subscription_id": sub.id,
            "metadata": {"vendor_id": sub.metadata.get("vendor_id"), "tier": sub.metadata.get("tier")},
        }


class AccountUpdated(_GatewayModel):
    id: str
    type: Literal["account.updated"]
    data: _AccountData

    def summary(self) -> dict[str, Any]:
        account = self.data.object
        return {
            "type": self.type,
            "account_id": account.id,
            "charges_enabled": account.charges_enabled,
            "payouts_enabled": account.payouts_enabled,
            "requirements_due": account.requirements.currently_due if account.requirements else [],
        }


class UnhandledEvent(_GatewayModel):
    """Event type this processor does not interpret yet. Recorded, never acted on."""

    id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    def summary(self) -> dict[str, Any]:
        obj = self.data.get("object")
        raw_id = obj.get("id") if isinstance(obj, dict) else None
        return {"type": self.type, "raw": {"id": raw_id}}


def _dispute_summary(event_type: str, dispute: Dispute) -> dict[str, Any]:
    return {
        "type": event_type,
        "dispute_id": dispute.id,
        "status": dispute.status,
        "metadata": {"vendor_id": dispute.metadata.get("vendor_id")},
    }


KnownEvent = Annotated[
    Union[CheckoutSessionCompleted, DisputeCreated, DisputeClosed, SubscriptionUpdated, AccountUpdated],
    Field(discriminator="type"),
]
GatewayEvent = Union[CheckoutSessionCompleted, DisputeCreated, DisputeClosed, SubscriptionUpdated, AccountUpdated, UnhandledEvent]

KNOWN_EVENT_TYPES = frozenset({
    CHECKOUT_SESSION_COMPLETED,
    DISPUTE_CREATED,
    DISPUTE_CLOSED,
    SUBSCRIPTION_UPDATED,
    ACCOUNT_UPDATED,
})

_known_adapter: TypeAdapter = TypeAdapter(KnownEvent)


def decode_event(raw: Any) -> GatewayEvent:
    """Decode a verified webhook body into its tagged variant. Raises UpstreamVerificationFailed on bad shape."""
    if not isinstance(raw, dict):
        raise UpstreamVerificationFailed("Event payload must be a JSON object")
    try:
        if raw.get("type") in KNOWN_EVENT_TYPES:
            return _known_adapter.validate_python(raw)
        return UnhandledEvent.model_validate(raw)
    except ValidationError as e:
        raise UpstreamVerificationFailed(f"Malformed {raw.get('type') or 'unknown'} event: {e.error_count()} error(s)") from e
