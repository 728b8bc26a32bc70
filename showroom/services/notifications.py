"""Transactional email through MailerSend.

Delivery is best-effort: every failure is logged and reported as ``False``,
never raised to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from html import escape
from typing import Protocol

import httpx

from showroom.config import Settings
from showroom.models.listing import Listing
from showroom.utils.masking import mask_email
from showroom.utils.pickup_credentials import qr_image_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    html: str
    text: str


class Notifier(Protocol):
    def send(self, to: str | None, subject: str, html: str, text: str) -> bool: ...


class MailerSendNotifier:
    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self.settings = settings
        self._client = client or httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)

    @property
    def configured(self) -> bool:
        return bool(self.settings.MAILERSEND_API_KEY and self.settings.MAILERSEND_FROM_EMAIL)

    def close(self) -> None:
        self._client.close()

    def send(self, to: str | None, subject: str, html: str, text: str) -> bool:
        if not to:
            logger.info("Email skipped: no recipient", extra={"subject": subject})
            return False
        if not self.configured:
            logger.warning(
                "Email skipped: MailerSend is not configured",
                extra={"subject": subject, "to": mask_email(to)},
            )
            return False

        payload = {
            "from": {
                "email": self.settings.MAILERSEND_FROM_EMAIL,
                "name": self.settings.MAILERSEND_FROM_NAME,
            },
            "to": [{"email": to}],
            "subject": subject,
            "text": text,
            "html": html,
        }
        try:
            response = self._client.post(
                self.settings.MAILERSEND_API_URL,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.settings.MAILERSEND_API_KEY}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "MailerSend request failed",
                extra={"subject": subject, "to": mask_email(to), "error": str(exc)},
            )
            return False
        if response.is_error:
            logger.warning(
                "MailerSend rejected email",
                extra={"subject": subject, "to": mask_email(to), "status_code": response.status_code},
            )
            return False
        logger.info("Email sent", extra={"subject": subject, "to": mask_email(to)})
        return True


def _money(amount: Decimal | None) -> str:
    if amount is None:
        return "$0.00"
    return f"${amount.quantize(Decimal('0.01')):,}"


def _footer_html(settings: Settings) -> str:
    support = escape(settings.SUPPORT_EMAIL)
    return (
        '<p style="margin:14px 0 0;font-size:13px;color:#556;">'
        f'Need help? <a href="mailto:{support}">{support}</a><br/>'
        f"Showroom Market &bull; {escape(settings.SITE_URL)}</p>"
    )


def buyer_pickup_email(listing: Listing, payload: str, settings: Settings) -> EmailMessage:
    """Pickup instructions with the QR image and a text fallback of the credential."""

    title = listing.display_title
    qr_url = qr_image_url(settings.QR_IMAGE_BASE_URL, payload)
    window = ""
    if listing.pickup_window_start or listing.pickup_window_end:
        window = f"{listing.pickup_window_start or ''} - {listing.pickup_window_end or ''}".strip(" -")

    text_lines = [
        "Your purchase is confirmed.",
        "",
        f"Listing: {title}",
        f"Seller: {listing.seller_name or ''}",
        "",
        f"Pickup Address: {listing.pickup_address or '(see seller)'}",
    ]
    if window:
        text_lines.append(f"Pickup Window: {window}")
    text_lines += [
        "",
        "Bring this QR code to pickup (show on your phone):",
        payload,
        "",
        f"Questions? {settings.SUPPORT_EMAIL}",
    ]

    details = [f"<div><b>Listing:</b> {escape(title)}</div>"]
    if listing.seller_name:
        details.append(f"<div><b>Seller:</b> {escape(listing.seller_name)}</div>")
    if listing.pickup_address:
        details.append(f"<div><b>Pickup Address:</b> {escape(listing.pickup_address)}</div>")
    if window:
        details.append(f"<div><b>Pickup Window:</b> {escape(window)}</div>")

    html = (
        '<div style="font-family:Arial,Helvetica,sans-serif;color:#0b1220;line-height:1.45;">'
        "<h2>Pickup Instructions</h2>"
        "<p>Your purchase is confirmed. Please present this QR code at pickup.</p>"
        f'<div style="border:1px solid #e6e8ee;border-radius:12px;padding:14px;">{"".join(details)}</div>'
        '<div style="text-align:center;margin:14px 0;">'
        f'<img src="{escape(qr_url)}" alt="Pickup QR Code" style="width:320px;max-width:100%;" />'
        "<div>If the image doesn't load, show this code to the seller:</div>"
        f'<div style="font-family:monospace;background:#f6f7fb;padding:10px;">{escape(payload)}</div>'
        "</div>"
        f"{_footer_html(settings)}</div>"
    )
    return EmailMessage(
        subject=f"Pickup Instructions - {title} (Showroom Market)",
        html=html,
        text="\n".join(text_lines),
    )


def seller_sold_email(listing: Listing, settings: Settings) -> EmailMessage:
    title = listing.display_title
    text = (
        f"Good news: {title} has sold.\n\n"
        "The buyer will present a pickup QR code. Your payout of "
        f"{_money(listing.seller_payout_amount)} is released after pickup is confirmed "
        f"and the {settings.PAYOUT_HOLD_HOURS:g}-hour hold has passed."
    )
    html = (
        f"<p>Good news: <b>{escape(title)}</b> has sold.</p>"
        "<p>The buyer will present a pickup QR code. Your payout of "
        f"<b>{escape(_money(listing.seller_payout_amount))}</b> is released after pickup is "
        f"confirmed and the {settings.PAYOUT_HOLD_HOURS:g}-hour hold has passed.</p>"
        f"{_footer_html(settings)}"
    )
    return EmailMessage(subject=f"Your item sold - {title}", html=html, text=text)


def seller_paid_email(listing: Listing, settings: Settings) -> EmailMessage:
    amount = _money(listing.seller_payout_amount)
    text = f"Your item has been picked up and payout of {amount} has been sent."
    html = f"<p>{escape(text)}</p>{_footer_html(settings)}"
    return EmailMessage(subject="You've been paid", html=html, text=text)


def dispute_resolved_email(listing: Listing, settings: Settings) -> EmailMessage:
    text = (
        f'The payment dispute for your item "{listing.display_title}" has been resolved. '
        "Your payout is now re-enabled and will be processed automatically."
    )
    html = f"<p>{escape(text)}</p>{_footer_html(settings)}"
    return EmailMessage(subject="Dispute Resolved - Payout Reinstated", html=html, text=text)


def ops_alert_email(title: str, facts: dict[str, object]) -> EmailMessage:
    """Operator alert listing the relevant identifiers; never includes credentials."""

    lines = [f"{key}: {value}" for key, value in facts.items() if value not in (None, "")]
    rows = "".join(
        f"<tr><td><b>{escape(str(key))}</b></td><td>{escape(str(value))}</td></tr>"
        for key, value in facts.items()
        if value not in (None, "")
    )
    return EmailMessage(
        subject=f"[Showroom Market] {title}",
        html=f"<h3>{escape(title)}</h3><table>{rows}</table>",
        text=f"{title}\n\n" + "\n".join(lines),
    )


def deliver(notifier: Notifier, to: str | None, message: EmailMessage) -> bool:
    """Send ``message``; any unexpected notifier failure is logged and swallowed."""

    try:
        return notifier.send(to, message.subject, message.html, message.text)
    except Exception:  # noqa: BLE001
        logger.exception("Notifier raised", extra={"subject": message.subject})
        return False


def alert_ops(notifier: Notifier, settings: Settings, title: str, facts: dict[str, object]) -> bool:
    recipient = settings.OPS_ALERT_EMAIL or settings.SUPPORT_EMAIL
    return deliver(notifier, recipient, ops_alert_email(title, facts))


__all__ = [
    "EmailMessage",
    "Notifier",
    "MailerSendNotifier",
    "buyer_pickup_email",
    "seller_sold_email",
    "seller_paid_email",
    "dispute_resolved_email",
    "ops_alert_email",
    "deliver",
    "alert_ops",
]
