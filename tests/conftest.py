"""Test configuration."""
import os
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import timedelta
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

# --- Config env par défaut
os.environ.setdefault("SHOWROOM_ENV", "test")
os.environ.setdefault("ADMIN_SECRET_TOKEN", "test-admin-secret")
os.environ.setdefault("ADMIN_TOKEN_SIGNING_SECRET", "test-signing-secret")
os.environ.setdefault("ADMIN_LOGIN_PASSCODE", "open-sesame")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from showroom.clients import Clients, get_clients  # noqa: E402
from showroom.config import Settings, get_settings  # noqa: E402
from showroom.main import app  # noqa: E402
from showroom.utils.time import to_iso, utcnow  # noqa: E402

from tests.fakes import FakeLedger, FakeNotifier, FakeRecordStore  # noqa: E402


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def records() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def ledger(settings: Settings) -> FakeLedger:
    return FakeLedger(settings)


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def clients(
    records: FakeRecordStore, ledger: FakeLedger, notifier: FakeNotifier, settings: Settings
) -> Clients:
    return Clients(records=records, ledger=ledger, notifier=notifier, settings=settings)


@pytest.fixture(autouse=True)
def override_clients_dependency(clients: Clients) -> Iterator[None]:
    app.dependency_overrides[get_clients] = lambda: clients
    yield
    app.dependency_overrides.pop(get_clients, None)


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {os.environ['ADMIN_SECRET_TOKEN']}"}


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def make_listing(records: FakeRecordStore) -> Callable[..., str]:
    """Factory inserting an ``Active`` listing, overridable field by field."""

    def _factory(**overrides: Any) -> str:
        fields: dict[str, Any] = {
            "title": "Walnut Console Table",
            "status": "Active",
            "price": 1200,
            "seller_payout_amount": 1000,
            "stripe_account_id": "acct_seller_1",
            "seller_email": "seller@example.com",
            "seller_name": "Oak & Iron Showroom",
            "pickup_address": "12 Market St",
        }
        fields.update(overrides)
        return records.add(**fields)

    return _factory


@pytest.fixture
def make_ready_listing(make_listing: Callable[..., str]) -> Callable[..., str]:
    """Factory for a picked-up listing whose hold window has passed."""

    def _factory(**overrides: Any) -> str:
        now = utcnow()
        fields: dict[str, Any] = {
            "status": "Picked Up",
            "pickup_confirmed": True,
            "pickup_confirmed_at": to_iso(now - timedelta(hours=30)),
            "paid_at": to_iso(now - timedelta(hours=48)),
            "payout_eligible_at": to_iso(now - timedelta(hours=24)),
            "seller_payout_status": "Pending",
            "stripe_payment_intent_id": "pi_paid_1",
        }
        fields.update(overrides)
        return make_listing(**fields)

    return _factory
