import pytest

from showroom.services.disputes import handle_dispute_event
from tests.fakes import stripe_event, stripe_signature_header

SECRET = "whsec_test_secret"


def _dispute(status="needs_response", intent="pi_paid_1", dispute_id="dp_1"):
    return {"id": dispute_id, "object": "dispute", "payment_intent": intent, "status": status, "amount": 120000, "reason": "fraudulent"}


def test_dispute_freezes_pending_payout(clients, records, notifier, settings, make_ready_listing):
    listing_id = make_ready_listing()

    result = handle_dispute_event(clients, "charge.dispute.created", _dispute(), event_id="evt_d1")

    assert result == {"handled": True, "listing_ids": [listing_id], "frozen": True}
    fields = records.fields(listing_id)
    assert fields["chargeback_flag"] is True
    assert fields["seller_payout_status"] == "Blocked"
    assert fields["dispute_id"] == "dp_1"
    assert fields["dispute_status"] == "needs_response"
    assert "payout_risk" not in fields
    assert notifier.subjects_for(settings.SUPPORT_EMAIL)


def test_dispute_after_payout_flags_risk(clients, records, notifier, settings, make_ready_listing):
    listing_id = make_ready_listing(status="Payout Sent", seller_payout_status="Paid", stripe_transfer_id="tr_1")

    handle_dispute_event(clients, "charge.dispute.created", _dispute())

    fields = records.fields(listing_id)
    assert fields["payout_risk"] is True
    assert fields["status"] == "Payout Sent"
    alert = notifier.sent[-1]
    assert "tr_1" in alert["text"]


def test_won_dispute_restores_payout(clients, records, make_ready_listing):
    listing_id = make_ready_listing(chargeback_flag=True, seller_payout_status="Blocked", dispute_id="dp_1")

    result = handle_dispute_event(clients, "charge.dispute.closed", _dispute(status="won"))

    assert result["frozen"] is False
    fields = records.fields(listing_id)
    assert fields["chargeback_flag"] is False
    assert fields["seller_payout_status"] == "Pending"
    assert fields["dispute_status"] == "won"
    assert fields["dispute_resolved_at"]


def test_lost_dispute_stays_frozen(clients, records, make_ready_listing):
    listing_id = make_ready_listing(chargeback_flag=True, seller_payout_status="Blocked")
    handle_dispute_event(clients, "charge.dispute.closed", _dispute(status="lost"))
    fields = records.fields(listing_id)
    assert fields["chargeback_flag"] is True
    assert fields["dispute_status"] == "lost"


def test_refund_freezes_without_changing_listing_status(clients, records, make_ready_listing):
    listing_id = make_ready_listing()
    charge = {"id": "ch_1", "object": "charge", "payment_intent": "pi_paid_1", "amount_refunded": 120000}

    handle_dispute_event(clients, "charge.refunded", charge)

    fields = records.fields(listing_id)
    assert fields["chargeback_flag"] is True
    assert fields["dispute_status"] == "refunded"
    assert fields["status"] == "Picked Up"
    assert "dispute_id" not in fields


def test_unmatched_dispute_alerts_only(clients, records, notifier, settings, make_ready_listing):
    make_ready_listing()

    result = handle_dispute_event(clients, "charge.dispute.created", _dispute(intent="pi_unknown"))

    assert result == {"handled": False, "reason": "listing_not_found"}
    assert records.patches == []
    assert notifier.subjects_for(settings.SUPPORT_EMAIL)


def test_dispute_without_intent_alerts_only(clients, records, notifier):
    result = handle_dispute_event(clients, "charge.dispute.created", _dispute(intent=None))
    assert result["reason"] == "missing_payment_intent"
    assert records.patches == []
    assert notifier.sent


@pytest.mark.anyio
async def test_dispute_webhook_blocks_later_sweep(client, admin_headers, records, ledger, make_ready_listing):
    listing_id = make_ready_listing()
    body = stripe_event("charge.dispute.created", _dispute(), event_id="evt_dispute")

    response = await client.post(
        "/stripe/webhook",
        content=body,
        headers={"Stripe-Signature": stripe_signature_header(body, SECRET), "Content-Type": "application/json"},
    )
    assert response.status_code == 200, response.text

    sweep = await client.post("/admin/payouts/release", headers=admin_headers)
    assert sweep.json()["processed"] == 0
    assert ledger.transfer_calls == []
    assert records.fields(listing_id)["seller_payout_status"] == "Blocked"


@pytest.mark.anyio
async def test_list_disputes(client, admin_headers, make_ready_listing):
    disputed = make_ready_listing(chargeback_flag=True, dispute_id="dp_9", seller_payout_status="Blocked")
    make_ready_listing()

    response = await client.get("/admin/disputes", headers=admin_headers)

    body = response.json()
    assert body["count"] == 1
    row = body["disputes"][0]
    assert row["id"] == disputed
    assert row["dispute_id"] == "dp_9"
    assert row["payout_status"] == "Blocked"


@pytest.mark.anyio
async def test_resolve_dispute(client, admin_headers, records, notifier, make_ready_listing):
    listing_id = make_ready_listing(chargeback_flag=True, seller_payout_status="Blocked")

    response = await client.post(f"/admin/disputes/{listing_id}/resolve", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["seller_payout_status"] == "Pending"
    fields = records.fields(listing_id)
    assert fields["chargeback_flag"] is False
    assert fields["dispute_status"] == "resolved"
    assert notifier.subjects_for("seller@example.com")


@pytest.mark.anyio
async def test_resolve_without_dispute_is_409(client, admin_headers, records, make_ready_listing):
    listing_id = make_ready_listing()
    response = await client.post(f"/admin/disputes/{listing_id}/resolve", headers=admin_headers)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "NO_ACTIVE_DISPUTE"
    assert records.patches == []


def test_late_update_after_won_dispute_is_ignored(clients, records, make_ready_listing):
    listing_id = make_ready_listing()
    handle_dispute_event(clients, "charge.dispute.created", _dispute())
    handle_dispute_event(clients, "charge.dispute.closed", _dispute(status="won"))
    patches = len(records.patches)

    result = handle_dispute_event(clients, "charge.dispute.updated", _dispute(status="under_review"))

    assert result["listing_ids"] == []
    assert result["stale_listing_ids"] == [listing_id]
    assert len(records.patches) == patches
    fields = records.fields(listing_id)
    assert fields["chargeback_flag"] is False
    assert fields["seller_payout_status"] == "Pending"
    assert fields["dispute_status"] == "won"


def test_new_dispute_after_won_one_still_freezes(clients, records, make_ready_listing):
    listing_id = make_ready_listing(dispute_id="dp_1", dispute_status="won")

    handle_dispute_event(clients, "charge.dispute.created", _dispute(dispute_id="dp_2"))

    fields = records.fields(listing_id)
    assert fields["chargeback_flag"] is True
    assert fields["dispute_id"] == "dp_2"
