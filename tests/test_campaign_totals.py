import pytest

from services.campaign_totals import build_cache_payload, build_summary_record, compute_totals


def _campaign(**kw):
    c = {
        "campaign_id": "1",
        "campaign_name": "A",
        "spend": 100,
        "impressions": 1000,
        "clicks": 50,
        "conversions": 0,
        "click_to_call": 1,
        "email_contacts": 0,
        "booking_step_1": 10,
        "booking_step_2": 5,
        "booking_step_3": 2,
        "reservations": 2,
        "reservation_value": 800,
        "conversion_value": 800,
        "total_conversion_value": 800,
        "actions": [{"action_type": "omni_purchase", "value": "2"}],
    }
    c.update(kw)
    return c


def test_compute_totals():
    t = compute_totals([
        {"spend": "100.5", "impressions": "1000", "clicks": "50", "conversions": 2},
        {"spend": 49.5, "impressions": 1000, "clicks": 50},
    ])
    assert t["spend"] == 150.0
    assert t["impressions"] == 2000
    assert t["clicks"] == 100
    assert t["conversions"] == 2
    assert t["average_ctr"] == pytest.approx(5.0)
    assert t["average_cpc"] == pytest.approx(1.5)


def test_compute_totals_empty():
    t = compute_totals([])
    assert t["spend"] == 0
    assert t["average_ctr"] == 0.0
    assert t["average_cpc"] == 0.0


class TestBuildSummaryRecord:
    def test_meta_record(self):
        r = build_summary_record("c1", "meta", "monthly", "2024-05-01", [_campaign()], "meta_api")
        assert r["client_id"] == "c1"
        assert r["summary_date"] == "2024-05-01"
        assert r["total_spend"] == 100.0
        assert r["booking_step_1"] == 10
        assert r["reservations"] == 2
        assert r["reservation_value"] == 800.0
        assert r["roas"] == 8.0
        assert r["cost_per_reservation"] == 50.0
        assert r["data_source"] == "meta_api"
        assert len(r["campaign_data"]) == 1
        assert "actions" not in r["campaign_data"][0]

    def test_cost_per_reservation_falls_back_to_conversions(self):
        r = build_summary_record("c1", "meta", "monthly", "2024-05-01",
                                 [_campaign(reservations=0, conversions=4)], "meta_api")
        assert r["cost_per_reservation"] == 25.0

    def test_unknown_platform(self):
        with pytest.raises(ValueError):
            build_summary_record("c1", "tiktok", "monthly", "2024-05-01", [], "x")


class TestBuildCachePayload:
    PERIOD = {"start_date": "2024-05-01", "end_date": "2024-05-31"}

    def test_shape(self):
        p = build_cache_payload({"id": "c1", "name": "Hotel", "ad_account_id": "123"}, "meta", [_campaign()], self.PERIOD)
        assert p["client"]["currency"] == "PLN"
        assert p["stats"]["totalSpend"] == 100.0
        assert p["stats"]["averageCtr"] == pytest.approx(5.0)
        assert p["conversionMetrics"]["reservations"] == 2
        assert p["dateRange"] == {"start": "2024-05-01", "end": "2024-05-31"}
        assert p["accountInfo"] is None
        assert p["fromCache"] is False

    def test_account_info(self):
        p = build_cache_payload({"id": "c1"}, "meta", [], self.PERIOD,
                                {"currency": "EUR", "timezone_name": "Europe/Warsaw", "account_status": 1})
        assert p["client"]["currency"] == "EUR"
        assert p["accountInfo"] == {"currency": "EUR", "timezone": "Europe/Warsaw", "status": 1}
