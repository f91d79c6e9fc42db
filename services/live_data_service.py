# services/live_data_service.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from config import config
from db.repositories.system_settings_repo import get_settings
from integrations.google_ads_client import SETTINGS_KEYS, GoogleAdsCredentials, GoogleAdsReportingClient
from integrations.meta_graph_client import MetaGraphClient
from logs.logger import logger
from services.meta_actions_parser import enhance_campaigns
from utils.insights_utils import sanitize_number, to_int

PLATFORMS = ("meta", "google")

META_FLOAT_FIELDS = ("spend", "ctr", "cpc", "cpm", "cpp", "frequency")
META_INT_FIELDS = ("impressions", "clicks", "reach")


def resolve_meta_token(client: Dict[str, Any]) -> str:
    """system user token (never expires) > client's own token > env fallback"""
    token = client.get("system_user_token") or client.get("meta_access_token") or config.META_SYSTEM_USER_TOKEN
    if not token:
        raise ValueError(f"No Meta token for client {client.get('name') or client.get('id')}")
    return token


def meta_client_for(client: Dict[str, Any]) -> MetaGraphClient:
    return MetaGraphClient(resolve_meta_token(client))


def google_client_from_settings() -> GoogleAdsReportingClient:
    settings = get_settings(SETTINGS_KEYS.values())
    return GoogleAdsReportingClient(GoogleAdsCredentials.from_env_or_settings(settings))


def _meta_conversions(value: Any) -> float:
    # insights `conversions` is an actions-style list on most accounts
    if isinstance(value, list):
        return sum(sanitize_number(a.get("value")) for a in value if isinstance(a, dict))
    return sanitize_number(value)


def normalize_meta_row(row: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(row)
    for f in META_FLOAT_FIELDS:
        out[f] = sanitize_number(row.get(f))
    for f in META_INT_FIELDS:
        out[f] = to_int(row.get(f))
    out["conversions"] = _meta_conversions(row.get("conversions"))
    return out


def fetch_meta_campaigns(
    client: Dict[str, Any],
    since: str,
    until: str,
    graph_client: Optional[MetaGraphClient] = None,
    time_increment: Optional[int] = None,
) -> List[Dict[str, Any]]:
    ad_account_id = client.get("ad_account_id")
    if not ad_account_id:
        raise ValueError(f"Client {client.get('name') or client.get('id')} has no Meta ad account")

    graph_client = graph_client or meta_client_for(client)
    rows = graph_client.get_campaign_insights(ad_account_id, since, until, time_increment=time_increment)
    return enhance_campaigns([normalize_meta_row(r) for r in rows])


def fetch_google_campaigns(
    client: Dict[str, Any],
    since: str,
    until: str,
    ads_client: Optional[GoogleAdsReportingClient] = None,
) -> List[Dict[str, Any]]:
    customer_id = client.get("google_ads_customer_id")
    if not client.get("google_ads_enabled") or not customer_id:
        raise ValueError(f"Google Ads not enabled for client {client.get('name') or client.get('id')}")

    ads_client = ads_client or google_client_from_settings()
    return ads_client.get_campaign_data(customer_id, since, until)


def fetch_campaigns(client: Dict[str, Any], platform: str, since: str, until: str, **kwargs: Any) -> List[Dict[str, Any]]:
    if platform == "meta":
        campaigns = fetch_meta_campaigns(client, since, until, **kwargs)
    elif platform == "google":
        campaigns = fetch_google_campaigns(client, since, until, **kwargs)
    else:
        raise ValueError(f"Unknown platform: {platform}")

    logger.info(f"📥 Live {platform} {client.get('name')} {since}..{until} campaigns={len(campaigns)}")
    return campaigns
