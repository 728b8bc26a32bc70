"""Tests for MailerSend delivery and email templates."""
import json
from decimal import Decimal

import httpx

from showroom.config import Settings
from showroom.models.listing import Listing
from showroom.services.notifications import (
    MailerSendNotifier,
    buyer_pickup_email,
    deliver,
    ops_alert_email,
)

from tests.fakes import FakeNotifier


def _settings(**overrides) -> Settings:
    values = {"MAILERSEND_API_KEY": "mlsn_test", "MAILERSEND_FROM_EMAIL": "orders@showroommarket.com"}
    values.update(overrides)
    return Settings(**values)


def test_send_posts_mailersend_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.read())
        return httpx.Response(202)

    notifier = MailerSendNotifier(_settings(), client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert notifier.send("buyer@example.com", "Hello", "<p>Hi</p>", "Hi") is True
    assert seen["url"] == "https://api.mailersend.com/v1/email"
    assert seen["auth"] == "Bearer mlsn_test"
    assert seen["body"] == {
        "from": {"email": "orders@showroommarket.com", "name": "Showroom Market"},
        "to": [{"email": "buyer@example.com"}],
        "subject": "Hello",
        "text": "Hi",
        "html": "<p>Hi</p>",
    }


def test_send_failures_are_swallowed():
    def rejecting(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "bad sender"})

    def exploding(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    for handler in (rejecting, exploding):
        notifier = MailerSendNotifier(_settings(), client=httpx.Client(transport=httpx.MockTransport(handler)))
        assert notifier.send("buyer@example.com", "Hello", "<p>Hi</p>", "Hi") is False


def test_missing_configuration_or_recipient_skips_send():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    assert MailerSendNotifier(_settings(MAILERSEND_API_KEY=None), client=client).send("a@b.c", "s", "h", "t") is False
    assert MailerSendNotifier(_settings(), client=client).send(None, "s", "h", "t") is False


def test_deliver_swallows_notifier_exceptions():
    notifier = FakeNotifier()
    notifier.raise_on_send = True
    assert deliver(notifier, "a@example.com", ops_alert_email("x", {})) is False


def test_buyer_email_escapes_and_includes_qr_fallback():
    listing = Listing.from_record(
        {
            "id": "recQR",
            "fields": {
                "title": "<script>alert(1)</script> Sofa",
                "pickup_address": "5 Elm & Main",
                "pickup_window_start": "Sat 10am",
                "pickup_window_end": "Sat 2pm",
                "seller_payout_amount": Decimal("10"),
            },
        }
    )
    message = buyer_pickup_email(listing, "SMK|recQR|tok_abcdefgh", _settings())
    assert "<script>" not in message.html
    assert "&lt;script&gt;" in message.html
    assert "5 Elm &amp; Main" in message.html
    assert "https://api.qrserver.com/v1/create-qr-code/?size=320x320&amp;data=SMK%7CrecQR%7Ctok_abcdefgh" in message.html
    assert "SMK|recQR|tok_abcdefgh" in message.text
    assert "Pickup Window: Sat 10am - Sat 2pm" in message.text


def test_ops_alert_skips_empty_facts():
    message = ops_alert_email("Dispute", {"listing_id": "rec1", "transfer_id": None})
    assert "listing_id: rec1" in message.text
    assert "transfer_id" not in message.text
