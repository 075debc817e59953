def test_calculate_payout(client, campaign, member):
    r = client.post(
        "/v1/campaigns/camp-summer/calculate-payout",
        json={"order_value": 10000, "quantity": 2},
        headers=member.headers,
    )
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["payout_per_unit"] == 900
    assert data["applicable_tier"] == {"min_order_value": 10000, "payout_amount": 900}
    assert data["total_payout"] == 1800
    assert data["net_payout"] == 1758
    assert data["currency"] == "INR"


def test_calculate_payout_missing_order_value(client, campaign, member):
    r = client.post("/v1/campaigns/camp-summer/calculate-payout", json={}, headers=member.headers)
    assert r.status_code == 400, r.text
    assert r.json()["error"] == "Order value is required and must be positive"


def test_calculate_payout_unknown_or_foreign_campaign(client, campaign, member, outsider):
    r = client.post("/v1/campaigns/nope/calculate-payout", json={"order_value": 1000}, headers=member.headers)
    assert r.status_code == 404, r.text

    r = client.post(
        "/v1/campaigns/camp-summer/calculate-payout",
        json={"order_value": 1000},
        headers=outsider.headers,
    )
    assert r.status_code == 404, r.text
    assert r.json()["error"] == "Campaign not found"
