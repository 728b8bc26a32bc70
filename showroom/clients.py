"""Adapter construction and lifecycle for FastAPI dependencies."""
from __future__ import annotations

from dataclasses import dataclass

from showroom.config import Settings, get_settings
from showroom.services.notifications import MailerSendNotifier, Notifier
from showroom.services.psp_stripe import Ledger, StripeLedger
from showroom.services.records import AirtableRecordStore, RecordStore


@dataclass
class Clients:
    """The external collaborators every service works through."""

    records: RecordStore
    ledger: Ledger
    notifier: Notifier
    settings: Settings


_clients: Clients | None = None


def build_clients(settings: Settings) -> Clients:
    return Clients(
        records=AirtableRecordStore(settings),
        ledger=StripeLedger(settings),
        notifier=MailerSendNotifier(settings),
        settings=settings,
    )


def init_clients() -> Clients:
    """Initialise the shared adapters lazily."""

    global _clients
    if _clients is None:
        _clients = build_clients(get_settings())
    return _clients


def get_clients() -> Clients:
    """Provide the adapters to FastAPI dependencies, creating them if necessary."""

    if _clients is None:
        return init_clients()
    return _clients


def close_clients() -> None:
    """Close the adapters' HTTP connection pools and reset the container."""

    global _clients
    if _clients is not None:
        for adapter in (_clients.records, _clients.notifier):
            close = getattr(adapter, "close", None)
            if callable(close):
                close()
        _clients = None


__all__ = ["Clients", "build_clients", "init_clients", "get_clients", "close_clients"]
