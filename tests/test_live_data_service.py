from unittest.mock import Mock

import pytest

from config import config
from services.live_data_service import (
    fetch_campaigns,
    fetch_google_campaigns,
    fetch_meta_campaigns,
    normalize_meta_row,
    resolve_meta_token,
)


class TestResolveMetaToken:
    def test_system_user_token_first(self):
        assert resolve_meta_token({"system_user_token": "sys", "meta_access_token": "own"}) == "sys"

    def test_client_token(self):
        assert resolve_meta_token({"system_user_token": "", "meta_access_token": "own"}) == "own"

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setattr(config, "META_SYSTEM_USER_TOKEN", "env")
        assert resolve_meta_token({}) == "env"

    def test_no_token(self, monkeypatch):
        monkeypatch.setattr(config, "META_SYSTEM_USER_TOKEN", None)
        with pytest.raises(ValueError):
            resolve_meta_token({"name": "Hotel"})


def test_normalize_meta_row():
    row = normalize_meta_row({
        "campaign_id": "1",
        "spend": "12.34",
        "impressions": "1000",
        "clicks": "20",
        "conversions": [{"action_type": "a", "value": "2"}, {"action_type": "b", "value": "1.5"}],
    })
    assert row["spend"] == 12.34
    assert row["impressions"] == 1000
    assert row["clicks"] == 20
    assert row["conversions"] == 3.5
    assert row["cpc"] == 0.0


def test_fetch_meta_campaigns_parses_actions():
    graph = Mock()
    graph.get_campaign_insights.return_value = [{
        "campaign_id": "1",
        "campaign_name": "Summer",
        "spend": "100",
        "actions": [{"action_type": "omni_purchase", "value": "3"}],
        "action_values": [{"action_type": "omni_purchase", "value": "900"}],
    }]
    campaigns = fetch_meta_campaigns({"id": "c1", "ad_account_id": "123"}, "2024-05-01", "2024-05-31", graph_client=graph)

    graph.get_campaign_insights.assert_called_once_with("123", "2024-05-01", "2024-05-31", time_increment=None)
    assert campaigns[0]["reservations"] == 3
    assert campaigns[0]["reservation_value"] == 900.0


def test_fetch_meta_requires_ad_account():
    with pytest.raises(ValueError):
        fetch_meta_campaigns({"id": "c1"}, "2024-05-01", "2024-05-31", graph_client=Mock())


def test_fetch_google_requires_enabled_client():
    ads = Mock()
    with pytest.raises(ValueError):
        fetch_google_campaigns({"id": "c1", "google_ads_customer_id": "123", "google_ads_enabled": 0},
                               "2024-05-01", "2024-05-31", ads_client=ads)
    ads.get_campaign_data.assert_not_called()


def test_fetch_google_campaigns():
    ads = Mock()
    ads.get_campaign_data.return_value = [{"campaign_id": "9"}]
    client = {"id": "c1", "google_ads_customer_id": "123-456-7890", "google_ads_enabled": 1}
    assert fetch_campaigns(client, "google", "2024-05-01", "2024-05-31", ads_client=ads) == [{"campaign_id": "9"}]
    ads.get_campaign_data.assert_called_once_with("123-456-7890", "2024-05-01", "2024-05-31")


def test_unknown_platform():
    with pytest.raises(ValueError):
        fetch_campaigns({}, "tiktok", "2024-05-01", "2024-05-31")
