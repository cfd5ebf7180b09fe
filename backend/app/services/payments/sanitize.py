"""
PII redaction for event summaries before they are logged, stored in webhook_events or sent to telemetry.
"""
import re
from typing import Any

EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
ABN_RE = re.compile(r"\b\d{11}\b")  # simple ABN matcher (11 digits)
MAX_FREE_TEXT = 200

PII_KEYS = frozenset({
    "email",
    "email_address",
    "contact_email",
    "abn",
    "abn_number",
    "phone",
    "phone_number",
    "first_name",
    "last_name",
    "name",
    "full_name",
    "address",
    "line1",
    "line2",
    "postcode",
    "ssn",
    "tax_id",
    "card_number",
    "customer_email",
})


def redact_value(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, str):
        if EMAIL_RE.search(value):
            return "[REDACTED_EMAIL]"
        if ABN_RE.search(value):
            return "[REDACTED_ABN]"
        if len(value) > MAX_FREE_TEXT:
            return "[REDACTED]"
        return value
    if isinstance(value, (int, float)):
        return value
    return "[REDACTED]"


def redact_pii(value: Any) -> Any:
    """Value stored under a PII key: kept only when empty, otherwise replaced by a redaction tag."""
    if value is None or value == "":
        return value
    tagged = redact_value(value) if isinstance(value, str) else None
    if tagged in ("[REDACTED_EMAIL]", "[REDACTED_ABN]"):
        return tagged
    return "[REDACTED]"


def sanitize_for_logging(value: Any) -> Any:
    """Recursively redact PII keys and PII-looking strings. Returns a new structure."""
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if str(key).lower() in PII_KEYS:
                out[key] = redact_pii(item)
            else:
                out[key] = sanitize_for_logging(item)
        return out
    if isinstance(value, (list, tuple)):
        return [sanitize_for_logging(v) for v in value]
    return redact_value(value)
