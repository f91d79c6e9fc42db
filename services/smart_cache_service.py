# services/smart_cache_service.py
"""
Current-month / current-week dashboard cache.

Rows younger than CACHE_DURATION_HOURS are served as they are. Older rows are
still served (marked stale) and left for the batch refresher. Only a missing
row or an explicit force refresh goes to the live API.
"""
from __future__ import annotations

import threading
from concurrent.futures import Future
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from config.config import CACHE_DURATION_HOURS
from db.repositories.clients_repo import get_client
from db.repositories.smart_cache_repo import get_cache_row, upsert_cache_row
from integrations.meta_graph_client import MetaApiError
from logs.logger import logger
from services.campaign_totals import build_cache_payload
from services.data_validation import log_missing_data_warning, looks_estimated, sanitize_metrics, validate_metrics
from services.live_data_service import fetch_campaigns, meta_client_for
from utils.datetime_utils import month_info, parse_meta_datetime, to_utc, utc_now, week_info

PERIODS = {"month": month_info, "week": week_info}

_GUARD = threading.Lock()
_IN_FLIGHT: Dict[Tuple[Any, str, str, str], Future] = {}


def cache_age_seconds(last_updated: Any, now: Optional[datetime] = None) -> Optional[float]:
    if not last_updated:
        return None
    if isinstance(last_updated, str):
        last_updated = parse_meta_datetime(last_updated)
        if last_updated is None:
            return None
    now = to_utc(now) if now else utc_now()
    return (now - to_utc(last_updated)).total_seconds()


def is_cache_fresh(last_updated: Any, now: Optional[datetime] = None) -> bool:
    age = cache_age_seconds(last_updated, now)
    if age is None:
        return False
    return age < timedelta(hours=CACHE_DURATION_HOURS).total_seconds()


def _period_info(period: str) -> Dict[str, Any]:
    try:
        return PERIODS[period]()
    except KeyError:
        raise ValueError(f"Unknown cache period: {period}")


def _shared_fetch(key: Tuple[Any, str, str, str], fn: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """Run fn once per key; callers arriving meanwhile get the same result."""
    with _GUARD:
        fut = _IN_FLIGHT.get(key)
        owner = fut is None
        if owner:
            fut = Future()
            _IN_FLIGHT[key] = fut

    if not owner:
        logger.info(f"⏳ Joining in-flight fetch {key}")
        return fut.result()

    try:
        result = fn()
    except Exception as e:
        fut.set_exception(e)
        raise
    else:
        fut.set_result(result)
        return result
    finally:
        with _GUARD:
            _IN_FLIGHT.pop(key, None)


def _account_info(client: Dict[str, Any], platform: str) -> Optional[Dict[str, Any]]:
    if platform != "meta":
        return None
    try:
        return meta_client_for(client).get_account_info(client["ad_account_id"])
    except (MetaApiError, requests.exceptions.RequestException) as e:
        # currency/timezone are cosmetic; the campaigns are what matters
        logger.warning(f"⚠️ Account info unavailable for {client.get('name')}: {e}")
        return None


def fetch_fresh_data(client: Dict[str, Any], platform: str, period: str) -> Dict[str, Any]:
    info = _period_info(period)
    campaigns = fetch_campaigns(client, platform, info["start_date"], info["end_date"])
    payload = build_cache_payload(client, platform, campaigns, info, _account_info(client, platform))

    source = f"smart-cache {platform}/{period} {client.get('name')}"
    stats = payload["stats"]
    checked = sanitize_metrics({
        "spend": stats["totalSpend"],
        "impressions": stats["totalImpressions"],
        "clicks": stats["totalClicks"],
        **payload["conversionMetrics"],
    })
    validate_metrics(checked, source)
    log_missing_data_warning(source, checked)
    looks_estimated(checked)

    upsert_cache_row(client["id"], info["period_id"], payload, platform=platform, period=period)
    logger.info(f"💾 Cached {source} period={info['period_id']} campaigns={len(campaigns)}")
    return payload


def get_smart_cache_data(
    client_id: Any,
    platform: str = "meta",
    period: str = "month",
    force_refresh: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Returns {"success": True, "data": <cache document>, "source": ...}
    source: cache | stale-cache | cache-miss | force-refresh
    """
    client = get_client(client_id)
    if not client:
        raise ValueError(f"Client not found: {client_id}")

    period_id = _period_info(period)["period_id"]

    if not force_refresh:
        row = get_cache_row(client_id, period_id, platform=platform, period=period)
        if row and row.get("cache_data"):
            age = cache_age_seconds(row.get("last_updated"), now)
            data = dict(row["cache_data"])
            data["fromCache"] = True
            data["cacheAge"] = int(age or 0)
            if is_cache_fresh(row.get("last_updated"), now):
                return {"success": True, "data": data, "source": "cache"}
            logger.info(f"🕰️ Serving stale cache {platform}/{period} client={client_id} age={int(age or 0)}s")
            return {"success": True, "data": data, "source": "stale-cache"}

    key = (client_id, platform, period, period_id)
    data = _shared_fetch(key, lambda: fetch_fresh_data(client, platform, period))
    return {"success": True, "data": data, "source": "force-refresh" if force_refresh else "cache-miss"}


def refresh_cache_for_client(client_id: Any, platform: str = "meta", period: str = "month") -> Dict[str, Any]:
    out = {"client_id": client_id, "platform": platform, "period": period, "saved": False, "campaigns": 0, "error": None}
    try:
        result = get_smart_cache_data(client_id, platform=platform, period=period, force_refresh=True)
        out["saved"] = True
        out["campaigns"] = len(result["data"].get("campaigns") or [])
    except Exception as e:
        logger.error(f"❌ Cache refresh failed client={client_id} {platform}/{period}: {e}")
        out["error"] = str(e)
    return out
