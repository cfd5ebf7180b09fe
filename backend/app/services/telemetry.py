"""
Processed-event telemetry to PostHog (capture API) over httpx.
No-op (debug log) when POSTHOG_API_KEY is not set.
"""
import logging
from typing import Any

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

# Keys forwarded from a sanitized event summary; everything else stays server-side
_MINIMAL_KEYS = ("type", "session_id", "payment_intent", "dispute_id", "subscription_id", "account_id", "status")
_METADATA_KEYS = ("vendor_id", "type", "tier", "reserved_slot_id")


def minimal_event_payload(summary: dict[str, Any]) -> dict[str, Any]:
    out = {k: summary[k] for k in _MINIMAL_KEYS if summary.get(k) is not None}
    meta = summary.get("metadata")
    if isinstance(meta, dict):
        for k in _METADATA_KEYS:
            if meta.get(k) is not None:
                out[f"metadata_{k}"] = meta[k]
    return out


def emit_event(event: str, properties: dict[str, Any], distinct_id: str = "payment-webhook") -> bool:
    """Send one capture event. Returns True on 2xx."""
    api_key = (settings.posthog_api_key or "").strip()
    if not api_key:
        logger.debug("POSTHOG_API_KEY not set; telemetry %s %s", event, properties)
        return False
    url = f"{settings.posthog_host.rstrip('/')}/capture/"
    payload = {"api_key": api_key, "event": event, "distinct_id": distinct_id, "properties": properties}
    try:
        with httpx.Client(timeout=5.0) as client:
            resp = client.post(url, json=payload)
        if resp.is_success:
            return True
        logger.warning("PostHog returned %s for %s: %s", resp.status_code, event, resp.text)
        return False
    except httpx.HTTPError as e:
        logger.warning("PostHog request failed for %s: %s", event, e)
        return False
