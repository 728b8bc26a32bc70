"""Stripe SDK wrapper for checkout, payout transfers and Connect onboarding."""
from __future__ import annotations

import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Protocol

import stripe

from showroom.config import Settings
from showroom.utils.errors import LedgerError, WebhookSignatureError

logger = logging.getLogger(__name__)


def to_cents(amount: Decimal) -> int:
    """Convert a decimal amount to the smallest currency unit expected by Stripe."""

    normalized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return int((normalized * 100).to_integral_value())


def payout_idempotency_key(listing_id: str, destination: str, amount_cents: int) -> str:
    return f"payout_{listing_id}_{destination}_{amount_cents}"


def transfer_group_for(listing_id: str) -> str:
    return f"listing_{listing_id}"


def _plain(obj: Any) -> dict[str, Any]:
    """Return a plain ``dict`` for a Stripe object (or an already plain mapping)."""

    if obj is None:
        return {}
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    to_dict_recursive = getattr(obj, "to_dict_recursive", None)
    if callable(to_dict_recursive):
        return to_dict_recursive()
    return dict(obj)


class Ledger(Protocol):
    def create_checkout_session(
        self,
        *,
        listing_id: str,
        title: str,
        amount_cents: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Mapping[str, str],
    ) -> dict[str, Any]: ...

    def create_transfer(
        self,
        *,
        amount_cents: int,
        currency: str,
        destination: str,
        idempotency_key: str,
        metadata: Mapping[str, str],
        transfer_group: str,
    ) -> dict[str, Any]: ...

    def create_connected_account(self, *, email: str | None, display_name: str | None) -> dict[str, Any]: ...

    def create_account_link(self, *, account_id: str, refresh_url: str, return_url: str) -> dict[str, Any]: ...

    def verify_webhook(self, payload: bytes, sig_header: str) -> dict[str, Any]: ...

    def list_transfers_by_group(self, transfer_group: str) -> list[dict[str, Any]]: ...


class StripeLedger:
    """Wrapper around the Stripe Python SDK to isolate PSP concerns."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._secret_key = settings.STRIPE_SECRET_KEY
        self._webhook_secret = settings.STRIPE_WEBHOOK_SECRET
        if self._secret_key:
            stripe.api_key = self._secret_key
            stripe.default_http_client = stripe.RequestsClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    def _ensure_configured(self, operation: str) -> None:
        if not self._secret_key:
            raise LedgerError(
                "Stripe secret key is missing; configure STRIPE_SECRET_KEY.",
                operation=operation,
                retryable=False,
            )

    @staticmethod
    def _wrap(exc: stripe.StripeError, operation: str) -> LedgerError:
        http_status = getattr(exc, "http_status", None)
        retryable = http_status is None or http_status >= 500 or http_status == 429
        if isinstance(exc, stripe.IdempotencyError):
            retryable = False
        message = getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__
        logger.error(
            "Stripe request failed",
            extra={
                "operation": operation,
                "status_code": http_status,
                "stripe_error": exc.__class__.__name__,
                "request_id": getattr(exc, "request_id", None),
            },
        )
        return LedgerError(message, operation=operation, status_code=http_status, retryable=retryable)

    def create_checkout_session(
        self,
        *,
        listing_id: str,
        title: str,
        amount_cents: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: Mapping[str, str],
    ) -> dict[str, Any]:
        """Open a hosted Checkout session for a single listing."""

        self._ensure_configured("create_checkout_session")
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                line_items=[
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": currency,
                            "unit_amount": amount_cents,
                            "product_data": {"name": title},
                        },
                    }
                ],
                metadata=dict(metadata),
                payment_intent_data={"metadata": dict(metadata)},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as exc:
            raise self._wrap(exc, "create_checkout_session") from exc
        return _plain(session)

    def create_transfer(
        self,
        *,
        amount_cents: int,
        currency: str,
        destination: str,
        idempotency_key: str,
        metadata: Mapping[str, str],
        transfer_group: str,
    ) -> dict[str, Any]:
        """Create a Transfer from the platform balance to a connected account.

        ``idempotency_key`` makes a replayed request return the original transfer.
        """

        self._ensure_configured("create_transfer")
        try:
            transfer = stripe.Transfer.create(
                amount=amount_cents,
                currency=currency,
                destination=destination,
                metadata=dict(metadata),
                transfer_group=transfer_group,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            raise self._wrap(exc, "create_transfer") from exc
        return _plain(transfer)

    def list_transfers_by_group(self, transfer_group: str) -> list[dict[str, Any]]:
        self._ensure_configured("list_transfers")
        try:
            result = stripe.Transfer.list(transfer_group=transfer_group, limit=100)
        except stripe.StripeError as exc:
            raise self._wrap(exc, "list_transfers") from exc
        data = _plain(result).get("data") or []
        return [_plain(item) for item in data]

    def create_connected_account(self, *, email: str | None, display_name: str | None) -> dict[str, Any]:
        """Create a Stripe Connect Express account able to receive transfers."""

        self._ensure_configured("create_connected_account")
        params: dict[str, Any] = {
            "type": "express",
            "country": self.settings.STRIPE_CONNECT_COUNTRY,
            "capabilities": {"transfers": {"requested": True}},
        }
        if email:
            params["email"] = email
        if display_name:
            params["business_profile"] = {"name": display_name}
        try:
            account = stripe.Account.create(**params)
        except stripe.StripeError as exc:
            raise self._wrap(exc, "create_connected_account") from exc
        return _plain(account)

    def create_account_link(self, *, account_id: str, refresh_url: str, return_url: str) -> dict[str, Any]:
        self._ensure_configured("create_account_link")
        try:
            link = stripe.AccountLink.create(
                account=account_id,
                refresh_url=refresh_url,
                return_url=return_url,
                type="account_onboarding",
            )
        except stripe.StripeError as exc:
            raise self._wrap(exc, "create_account_link") from exc
        return _plain(link)

    def verify_webhook(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify the ``Stripe-Signature`` header against the raw body and decode the event."""

        if not self._webhook_secret:
            raise LedgerError(
                "Stripe webhook secret is missing; configure STRIPE_WEBHOOK_SECRET for verification.",
                operation="verify_webhook",
                retryable=False,
            )
        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                text,
                sig_header,
                self._webhook_secret,
                tolerance=self.settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError("Invalid Stripe signature") from exc
        except UnicodeDecodeError as exc:
            raise WebhookSignatureError("Webhook payload is not valid UTF-8") from exc
        try:
            event = json.loads(text)
        except ValueError as exc:
            raise WebhookSignatureError("Webhook payload is not valid JSON") from exc
        if not isinstance(event, dict):
            raise WebhookSignatureError("Webhook payload is not an event object")
        return event


__all__ = [
    "Ledger",
    "StripeLedger",
    "to_cents",
    "payout_idempotency_key",
    "transfer_group_for",
]
