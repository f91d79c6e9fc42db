import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from services import smart_cache_service as sc

NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)
CLIENT = {"id": "c1", "name": "Hotel", "ad_account_id": "123"}
CACHED = {"stats": {"totalSpend": 10}, "campaigns": [], "fromCache": False, "cacheAge": 0}


@pytest.fixture
def repo():
    with patch.object(sc, "get_client", return_value=CLIENT), \
            patch.object(sc, "get_cache_row") as get_row, \
            patch.object(sc, "fetch_fresh_data", return_value={"campaigns": [{"campaign_id": "1"}]}) as fetch:
        yield get_row, fetch


class TestFreshness:
    def test_fresh(self):
        assert sc.is_cache_fresh(NOW - timedelta(hours=1), NOW)

    def test_expired(self):
        assert not sc.is_cache_fresh(NOW - timedelta(hours=7), NOW)

    def test_missing(self):
        assert not sc.is_cache_fresh(None, NOW)

    def test_naive_and_iso_string(self):
        assert sc.cache_age_seconds(datetime(2024, 5, 15, 11, 0), NOW) == 3600
        assert sc.cache_age_seconds("2024-05-15T11:00:00Z", NOW) == 3600


class TestGetSmartCacheData:
    def test_fresh_row_served(self, repo):
        get_row, fetch = repo
        get_row.return_value = {"cache_data": CACHED, "last_updated": NOW - timedelta(minutes=30)}

        result = sc.get_smart_cache_data("c1", now=NOW)

        assert result["source"] == "cache"
        assert result["data"]["fromCache"] is True
        assert result["data"]["cacheAge"] == 1800
        fetch.assert_not_called()

    def test_stale_row_served_without_refresh(self, repo):
        get_row, fetch = repo
        get_row.return_value = {"cache_data": CACHED, "last_updated": NOW - timedelta(hours=8)}

        result = sc.get_smart_cache_data("c1", now=NOW)

        assert result["source"] == "stale-cache"
        assert result["data"]["stats"]["totalSpend"] == 10
        fetch.assert_not_called()

    def test_naive_utc_timestamp_from_db(self, repo):
        # last_updated comes back from MySQL as a naive UTC_TIMESTAMP() value
        get_row, fetch = repo
        get_row.return_value = {"cache_data": CACHED, "last_updated": datetime(2024, 5, 15, 6, 30)}
        assert sc.get_smart_cache_data("c1", now=NOW)["source"] == "cache"

        get_row.return_value = {"cache_data": CACHED, "last_updated": datetime(2024, 5, 15, 5, 30)}
        assert sc.get_smart_cache_data("c1", now=NOW)["source"] == "stale-cache"
        fetch.assert_not_called()

    def test_miss_fetches(self, repo):
        get_row, fetch = repo
        get_row.return_value = None

        result = sc.get_smart_cache_data("c1", platform="google", period="week", now=NOW)

        assert result["source"] == "cache-miss"
        fetch.assert_called_once_with(CLIENT, "google", "week")

    def test_force_refresh_skips_row(self, repo):
        get_row, fetch = repo
        result = sc.get_smart_cache_data("c1", force_refresh=True, now=NOW)
        assert result["source"] == "force-refresh"
        get_row.assert_not_called()
        fetch.assert_called_once()

    def test_unknown_client(self):
        with patch.object(sc, "get_client", return_value=None):
            with pytest.raises(ValueError):
                sc.get_smart_cache_data("nope")

    def test_unknown_period(self, repo):
        with pytest.raises(ValueError):
            sc.get_smart_cache_data("c1", period="year")


def test_concurrent_fetches_share_one_call():
    started = threading.Event()
    joined = threading.Event()
    calls = []

    def slow_fetch():
        calls.append(1)
        started.set()
        joined.wait(5)
        return {"campaigns": []}

    fake_logger = Mock()
    fake_logger.info.side_effect = lambda *a, **k: joined.set()
    key = ("c1", "meta", "month", "2024-05")
    results = []

    with patch.object(sc, "logger", fake_logger):
        owner = threading.Thread(target=lambda: results.append(sc._shared_fetch(key, slow_fetch)))
        owner.start()
        started.wait(5)
        results.append(sc._shared_fetch(key, slow_fetch))
        owner.join(5)

    assert len(calls) == 1
    assert results == [{"campaigns": []}, {"campaigns": []}]
    assert key not in sc._IN_FLIGHT


def test_fetch_fresh_data_upserts_payload():
    campaigns = [{"campaign_id": "1", "spend": 50, "impressions": 1000, "clicks": 10, "reservations": 1}]
    with patch.object(sc, "fetch_campaigns", return_value=campaigns) as fetch, \
            patch.object(sc, "_account_info", return_value=None), \
            patch.object(sc, "upsert_cache_row") as upsert:
        payload = sc.fetch_fresh_data(CLIENT, "meta", "month")

    info = sc.month_info()
    fetch.assert_called_once_with(CLIENT, "meta", info["start_date"], info["end_date"])
    upsert.assert_called_once_with("c1", info["period_id"], payload, platform="meta", period="month")
    assert payload["stats"]["totalSpend"] == 50
    assert payload["conversionMetrics"]["reservations"] == 1


def test_refresh_cache_for_client_reports_errors():
    with patch.object(sc, "get_smart_cache_data", side_effect=RuntimeError("api down")):
        out = sc.refresh_cache_for_client("c1")
    assert out["saved"] is False
    assert out["error"] == "api down"


def test_account_info_network_error_is_tolerated():
    graph = Mock()
    graph.get_account_info.side_effect = requests.exceptions.ConnectionError("connection reset")
    with patch.object(sc, "meta_client_for", return_value=graph), patch.object(sc, "logger"):
        assert sc._account_info(CLIENT, "meta") is None


def test_account_info_skipped_for_google():
    with patch.object(sc, "meta_client_for") as factory:
        assert sc._account_info(CLIENT, "google") is None
    factory.assert_not_called()
