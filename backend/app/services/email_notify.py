"""
Vendor emails via SMTP (Google Gmail or other): tier downgrade notices and featured slot expiry reminders.
Set SMTP_USER, SMTP_PASSWORD (and optionally NOTIFY_FROM) in .env. Use a Gmail App Password (not your normal password).
"""
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.config import settings

logger = logging.getLogger(__name__)

PLATFORM_NAME = "SuburbMates"
MAX_TITLES_IN_EMAIL = 5


def _from_address() -> str:
    if (settings.notify_from or "").strip():
        return settings.notify_from.strip()
    user = (settings.smtp_user or "").strip()
    if user:
        return f"{PLATFORM_NAME} <{user}>"
    return f"{PLATFORM_NAME} <noreply@localhost>"


def send_email(to_email: str, subject: str, body: str) -> bool:
    """
    Send a plain-text + HTML email via SMTP.
    Returns True if sent, False if skipped (no recipient / SMTP not configured) or failed.
    """
    to_email = (to_email or "").strip()
    if not to_email:
        return False
    user = (settings.smtp_user or "").strip()
    password = (settings.smtp_password or "").strip()
    if not user or not password:
        logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping email %r", subject)
        return False
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = _from_address()
    msg["To"] = to_email
    msg.attach(MIMEText(body, "plain"))
    msg.attach(MIMEText(f"<pre style='font-family:sans-serif'>{body}</pre>", "html"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(user, password)
            server.sendmail(user, [to_email], msg.as_string())
        logger.info("Email sent: %s", subject)
        return True
    except Exception as e:
        logger.exception("Failed to send email %r: %s", subject, e)
        return False


def tier_downgrade_email(
    business_name: str,
    old_tier: str,
    new_tier: str,
    unpublished_count: int,
    product_titles: list[str],
) -> tuple[str, str]:
    """(subject, body) for the downgrade notice. Lists up to MAX_TITLES_IN_EMAIL titles."""
    preview = product_titles[:MAX_TITLES_IN_EMAIL]
    remaining = len(product_titles) - len(preview)
    subject = f"Tier changed to {new_tier.upper()}: {unpublished_count} product(s) unpublished"
    lines = [
        f"Heads up from {PLATFORM_NAME}",
        "",
        f"{business_name} was downgraded from {old_tier.upper()} to {new_tier.upper()}.",
        f"We automatically unpublished {unpublished_count} of your oldest products so you stay within the new tier limit.",
    ]
    if preview:
        lines += ["", "Unpublished items:"]
        lines += [f"• {t or 'Untitled product'}" for t in preview]
    if remaining > 0:
        lines.append(f"and {remaining} more…")
    lines += ["", f"Review and republish products from your dashboard: {settings.site_url}/vendor/products"]
    return subject, "\n".join(lines)


def send_tier_downgrade_email(
    to_email: str,
    business_name: str,
    old_tier: str,
    new_tier: str,
    unpublished_count: int,
    product_titles: list[str],
) -> bool:
    subject, body = tier_downgrade_email(business_name, old_tier, new_tier, unpublished_count, product_titles)
    return send_email(to_email, subject, body)


def send_featured_expiry_email(
    to_email: str,
    business_name: str,
    region_label: str,
    end_time: datetime,
    days_before: int,
) -> bool:
    """Reminder that a featured slot ends in days_before days."""
    subject = f"Your featured spot in {region_label} ends in {days_before} day{'s' if days_before != 1 else ''}"
    body = "\n".join([
        f"Hi {business_name},",
        "",
        f"Your featured placement in {region_label} ends on {end_time.strftime('%d %b %Y')}.",
        f"Renew from your dashboard to keep your spot: {settings.site_url}/vendor/dashboard",
    ])
    return send_email(to_email, subject, body)
