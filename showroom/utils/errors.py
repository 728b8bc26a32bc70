"""Error payload helpers and upstream failure types."""
from typing import Any


def error_response(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    """Return a standardized error payload."""

    payload: dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


class UpstreamError(Exception):
    """Failure talking to an external collaborator (record store, ledger)."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.status_code = status_code
        self.retryable = retryable


class RecordStoreError(UpstreamError):
    """Record store (Airtable) request failed."""


class RecordNotFoundError(RecordStoreError):
    """The requested listing record does not exist."""

    def __init__(self, record_id: str, *, operation: str = "get") -> None:
        super().__init__(
            f"Record {record_id} not found",
            operation=operation,
            status_code=404,
            retryable=False,
        )
        self.record_id = record_id


class LedgerError(UpstreamError):
    """Payment provider (Stripe) request failed."""


class WebhookSignatureError(Exception):
    """Webhook payload could not be authenticated."""


__all__ = [
    "error_response",
    "UpstreamError",
    "RecordStoreError",
    "RecordNotFoundError",
    "LedgerError",
    "WebhookSignatureError",
]
