import pytest

from showroom.services.risk import flag_risky_sellers


def test_repeat_offender_listings_are_flagged(clients, records, make_ready_listing):
    first = make_ready_listing(chargeback_flag=True, seller_email="Repeat@Example.com")
    second = make_ready_listing(chargeback_flag=True, seller_email="repeat@example.com")
    single = make_ready_listing(chargeback_flag=True, seller_email="once@example.com")

    result = flag_risky_sellers(clients, threshold=2)

    assert result["scanned"] == 3
    assert result["risky_sellers"] == 1
    assert sorted(result["flagged_listing_ids"]) == sorted([first, second])
    assert records.fields(first)["seller_risk_flag"] is True
    assert "seller_risk_flag" not in records.fields(single)


def test_already_flagged_listings_are_not_patched_again(clients, records, make_ready_listing):
    make_ready_listing(chargeback_flag=True, seller_risk_flag=True)
    make_ready_listing(chargeback_flag=True, seller_risk_flag=True)

    result = flag_risky_sellers(clients, threshold=2)

    assert result["risky_sellers"] == 1
    assert result["flagged_listing_ids"] == []
    assert records.patches == []


def test_listings_without_seller_email_are_ignored(clients, records, make_ready_listing):
    make_ready_listing(chargeback_flag=True, seller_email=None)
    make_ready_listing(chargeback_flag=True, seller_email="")
    result = flag_risky_sellers(clients, threshold=1)
    assert result["risky_sellers"] == 0
    assert records.patches == []


@pytest.mark.anyio
async def test_risk_scan_endpoint_uses_configured_threshold(client, admin_headers, settings, make_ready_listing):
    for _ in range(settings.RISKY_SELLER_CHARGEBACK_THRESHOLD):
        make_ready_listing(chargeback_flag=True)
    response = await client.post("/admin/sellers/risk-scan", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["risky_sellers"] == 1
