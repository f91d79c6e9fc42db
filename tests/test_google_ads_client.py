from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
from google.ads.googleads.errors import GoogleAdsException

from config import config
from integrations.google_ads_client import (
    GoogleAdsApiError,
    GoogleAdsAuthError,
    GoogleAdsCredentials,
    GoogleAdsRateLimitError,
    GoogleAdsReportingClient,
    clean_customer_id,
)

SETTINGS = {
    "google_ads_developer_token": "dev",
    "google_ads_client_id": "cid",
    "google_ads_client_secret": "sec",
    "google_ads_manager_refresh_token": "ref",
    "google_ads_manager_customer_id": "123-456-7890",
}


@pytest.fixture
def no_env_creds(monkeypatch):
    for name in ("DEVELOPER_TOKEN", "CLIENT_ID", "CLIENT_SECRET", "REFRESH_TOKEN", "LOGIN_CUSTOMER_ID"):
        monkeypatch.setattr(config, f"GOOGLE_ADS_{name}", None)


def _creds():
    return GoogleAdsCredentials("dev", "cid", "sec", "ref", "1234567890")


def _campaign_row(cost_micros, impressions, clicks, conversions, value, all_value):
    return SimpleNamespace(
        campaign=SimpleNamespace(id=111, name="Brand", status="ENABLED"),
        metrics=SimpleNamespace(
            cost_micros=cost_micros,
            impressions=impressions,
            clicks=clicks,
            ctr=0.04,
            average_cpc=312500,
            conversions=conversions,
            conversions_value=value,
            all_conversions=conversions,
            all_conversions_value=all_value,
        ),
    )


def _conversion_row(name, conversions, value):
    return SimpleNamespace(
        campaign=SimpleNamespace(id=111),
        segments=SimpleNamespace(conversion_action_name=name),
        metrics=SimpleNamespace(conversions=conversions, conversions_value=value),
    )


def _ads_exception(error_code):
    failure = Mock()
    failure.errors = [SimpleNamespace(error_code=error_code, message="boom")]
    return GoogleAdsException(None, Mock(), failure, "req-1")


def test_clean_customer_id():
    assert clean_customer_id("123-456-7890") == "1234567890"


class TestCredentials:
    def test_settings_fill_missing_env(self, no_env_creds):
        c = GoogleAdsCredentials.from_env_or_settings(SETTINGS)
        assert c.developer_token == "dev"
        assert c.refresh_token == "ref"
        assert c.login_customer_id == "1234567890"
        assert c.missing() == []

    def test_env_wins(self, no_env_creds, monkeypatch):
        monkeypatch.setattr(config, "GOOGLE_ADS_DEVELOPER_TOKEN", "env-dev")
        c = GoogleAdsCredentials.from_env_or_settings(SETTINGS)
        assert c.developer_token == "env-dev"

    def test_missing(self, no_env_creds):
        c = GoogleAdsCredentials.from_env_or_settings({})
        assert set(c.missing()) == {"developer_token", "client_id", "client_secret", "refresh_token"}

    def test_config_dict(self):
        d = _creds().to_config_dict()
        assert d["use_proto_plus"] is True
        assert d["login_customer_id"] == "1234567890"


class TestReportingClient:
    def test_incomplete_credentials(self):
        with pytest.raises(GoogleAdsAuthError):
            GoogleAdsReportingClient(GoogleAdsCredentials()).search("1", "SELECT campaign.id FROM campaign")

    def test_search_builds_request(self):
        with patch("integrations.google_ads_client.GoogleAdsClient") as cls:
            sdk = cls.load_from_dict.return_value
            sdk.get_service.return_value.search.return_value = iter(["row"])
            rows = GoogleAdsReportingClient(_creds()).search("123-456-7890", "SELECT 1")

        assert rows == ["row"]
        request = sdk.get_type.return_value
        assert request.customer_id == "1234567890"
        assert request.query == "SELECT 1"
        sdk.get_service.return_value.search.assert_called_once_with(request=request)

    def test_campaign_data_merges_breakdown(self):
        client = GoogleAdsReportingClient(_creds())
        campaign_rows = [
            _campaign_row(12_500_000, 1000, 40, 3.0, 900.0, 1000.0),
            _campaign_row(7_500_000, 1000, 10, 1.0, 100.0, 100.0),
        ]
        conversion_rows = [
            _conversion_row("Rezerwacja", 2.0, 800.0),
            _conversion_row("Booking Engine - krok 1", 10.0, 0.0),
        ]
        with patch.object(client, "search", side_effect=[campaign_rows, conversion_rows]):
            campaigns = client.get_campaign_data("1234567890", "2024-05-01", "2024-05-31")

        assert len(campaigns) == 1
        c = campaigns[0]
        assert c["campaign_id"] == "111"
        assert c["spend"] == pytest.approx(20.0)
        assert c["impressions"] == 2000
        assert c["clicks"] == 50
        assert c["ctr"] == pytest.approx(2.5)
        assert c["cpc"] == pytest.approx(0.4)
        assert c["total_conversion_value"] == pytest.approx(1100.0)
        assert c["reservations"] == 2
        assert c["reservation_value"] == 800.0
        assert c["booking_step_1"] == 10

    def test_daily_data_split_by_date(self):
        client = GoogleAdsReportingClient(_creds())
        day1 = _campaign_row(10_000_000, 500, 20, 1.0, 400.0, 400.0)
        day1.segments = SimpleNamespace(date="2024-05-01")
        day2 = _campaign_row(5_000_000, 300, 5, 0.0, 0.0, 0.0)
        day2.segments = SimpleNamespace(date="2024-05-02")
        conv = _conversion_row("Rezerwacja", 1.0, 400.0)
        conv.segments.date = "2024-05-01"

        with patch.object(client, "search", side_effect=[[conv], [day1, day2]]) as search:
            by_day = client.get_daily_campaign_data("1234567890", "2024-05-01", "2024-05-02")

        for call in search.call_args_list:
            assert "segments.date," in call.args[1]
        assert sorted(by_day) == ["2024-05-01", "2024-05-02"]
        first = by_day["2024-05-01"][0]
        assert first["date"] == "2024-05-01"
        assert first["spend"] == pytest.approx(10.0)
        assert first["reservations"] == 1
        assert first["reservation_value"] == 400.0
        assert by_day["2024-05-02"][0]["reservations"] == 0
        assert by_day["2024-05-02"][0]["clicks"] == 5

    @pytest.mark.parametrize("code,exc", [
        ("authentication_error: OAUTH_TOKEN_EXPIRED", GoogleAdsAuthError),
        ("quota_error: RESOURCE_EXHAUSTED", GoogleAdsRateLimitError),
        ("query_error: BAD_FIELD", GoogleAdsApiError),
    ])
    def test_exceptions_are_mapped(self, code, exc):
        with patch("integrations.google_ads_client.GoogleAdsClient") as cls:
            cls.load_from_dict.return_value.get_service.return_value.search.side_effect = _ads_exception(code)
            with pytest.raises(exc):
                GoogleAdsReportingClient(_creds()).search("1", "SELECT 1")
