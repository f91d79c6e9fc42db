# services/daily_kpi_service.py
from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from db.repositories.daily_kpi_repo import upsert_daily_rows
from integrations.google_ads_client import GoogleAdsReportingClient
from integrations.meta_graph_client import MetaGraphClient
from logs.logger import logger
from services.backfill_service import DATA_SOURCES
from services.campaign_totals import aggregator_for, compute_totals
from services.data_validation import validate_metrics
from services.live_data_service import fetch_meta_campaigns, google_client_from_settings
from services.meta_actions_parser import FUNNEL_FIELDS
from utils.datetime_utils import as_date, utc_now

DailyCampaigns = Dict[str, List[Dict[str, Any]]]


def collection_window(days: int = 1, today: Optional[date] = None) -> Tuple[str, str]:
    """The `days` full days ending yesterday (today is still accumulating)."""
    if days < 1:
        raise ValueError(f"days must be >= 1, got {days}")
    end = (today or utc_now().date()) - timedelta(days=1)
    start = end - timedelta(days=days - 1)
    return start.isoformat(), end.isoformat()


def collect_meta_daily(
    client: Dict[str, Any],
    since: str,
    until: str,
    graph_client: Optional[MetaGraphClient] = None,
) -> DailyCampaigns:
    # time_increment=1: one insights row per campaign per day, keyed by date_start
    by_day: DailyCampaigns = {}
    for c in fetch_meta_campaigns(client, since, until, graph_client=graph_client, time_increment=1):
        day = c.get("date_start")
        if not day:
            logger.warning(f"⚠️ Meta row without date_start for {client.get('name')}: campaign={c.get('campaign_id')}")
            continue
        by_day.setdefault(day, []).append(c)
    return by_day


def collect_google_daily(
    client: Dict[str, Any],
    since: str,
    until: str,
    ads_client: Optional[GoogleAdsReportingClient] = None,
) -> DailyCampaigns:
    customer_id = client.get("google_ads_customer_id")
    if not client.get("google_ads_enabled") or not customer_id:
        raise ValueError(f"Google Ads not enabled for client {client.get('name') or client.get('id')}")

    ads_client = ads_client or google_client_from_settings()
    return ads_client.get_daily_campaign_data(customer_id, since, until)


DAILY_COLLECTORS: Dict[str, Callable[..., DailyCampaigns]] = {
    "meta": collect_meta_daily,
    "google": collect_google_daily,
}


def build_daily_row(client_id: Any, day: str, platform: str, campaigns: List[Dict[str, Any]]) -> Dict[str, Any]:
    """A daily_kpi_data row: campaign totals plus the platform's funnel aggregate."""
    totals = compute_totals(campaigns)
    conv = aggregator_for(platform)(campaigns).to_dict()

    row = {
        "client_id": client_id,
        "date": as_date(day).isoformat(),
        "data_source": DATA_SOURCES[platform],
        "total_spend": round(totals["spend"], 2),
        "total_impressions": totals["impressions"],
        "total_clicks": totals["clicks"],
        "total_conversions": totals["conversions"],
        "average_ctr": round(totals["average_ctr"], 2),
        "average_cpc": round(totals["average_cpc"], 2),
        "campaigns_count": len(campaigns),
    }
    for f in FUNNEL_FIELDS:
        row[f] = conv[f]
    row["reservation_value"] = round(row["reservation_value"], 2)
    return row


def collect_daily_kpis(
    client: Dict[str, Any],
    platform: str,
    since: str,
    until: str,
    dry_run: bool = False,
    collector: Optional[Callable[..., DailyCampaigns]] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "client_id": client.get("id"),
        "client_name": client.get("name"),
        "platform": platform,
        "days": 0,
        "saved": False,
        "error": None,
    }
    label = f"{client.get('name')} {platform} daily {since}..{until}"

    try:
        if collector is None:
            try:
                collector = DAILY_COLLECTORS[platform]
            except KeyError:
                raise ValueError(f"Unknown platform: {platform}")

        by_day = collector(client, since, until)
        if not by_day:
            out["error"] = f"No data from {platform} API"
            logger.warning(f"⚠️ {label}: no campaigns returned")
            return out

        rows = [build_daily_row(client["id"], day, platform, by_day[day]) for day in sorted(by_day)]
        for r in rows:
            validate_metrics(
                {"spend": r["total_spend"], "impressions": r["total_impressions"],
                 "clicks": r["total_clicks"], **{f: r[f] for f in FUNNEL_FIELDS}},
                f"{client.get('name')} {platform} {r['date']}",
            )
        out["days"] = len(rows)

        if dry_run:
            logger.info(f"🔍 [dry run] {label}: days={len(rows)} spend={sum(r['total_spend'] for r in rows):.2f}")
        else:
            upsert_daily_rows(rows)
            out["saved"] = True
            logger.info(f"✅ {label}: days={len(rows)} stored")

    except Exception as e:
        logger.error(f"❌ {label}: {e}")
        out["error"] = str(e)

    return out
