# services/campaign_totals.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from services import google_ads_conversions_parser, meta_actions_parser
from services.meta_actions_parser import FUNNEL_FIELDS
from utils.datetime_utils import utc_now
from utils.insights_utils import sanitize_number

AGGREGATORS = {
    "meta": meta_actions_parser.aggregate_conversion_metrics,
    "google": google_ads_conversions_parser.aggregate_conversion_metrics,
}

CAMPAIGN_DATA_FIELDS = ("campaign_id", "campaign_name", "spend", "impressions", "clicks", "conversions") + FUNNEL_FIELDS


def aggregator_for(platform: str):
    try:
        return AGGREGATORS[platform]
    except KeyError:
        raise ValueError(f"Unknown platform: {platform}")


def compute_totals(campaigns: List[Dict[str, Any]]) -> Dict[str, float]:
    spend = sum(sanitize_number(c.get("spend")) for c in campaigns)
    impressions = sum(sanitize_number(c.get("impressions")) for c in campaigns)
    clicks = sum(sanitize_number(c.get("clicks")) for c in campaigns)
    conversions = sum(sanitize_number(c.get("conversions")) for c in campaigns)
    return {
        "spend": spend,
        "impressions": int(impressions),
        "clicks": int(clicks),
        "conversions": conversions,
        "average_ctr": (clicks / impressions * 100) if impressions > 0 else 0.0,
        "average_cpc": (spend / clicks) if clicks > 0 else 0.0,
    }


def _conversion_block(platform: str, campaigns: List[Dict[str, Any]], totals: Dict[str, float]) -> Dict[str, Any]:
    metrics = aggregator_for(platform)(campaigns).to_dict()
    # conversions stands in when no reservation events are tracked
    denominator = metrics["reservations"] or totals["conversions"]
    metrics["cost_per_reservation"] = (totals["spend"] / denominator) if denominator > 0 else 0.0
    return metrics


def build_summary_record(
    client_id: Any,
    platform: str,
    summary_type: str,
    summary_date: str,
    campaigns: List[Dict[str, Any]],
    data_source: str,
) -> Dict[str, Any]:
    """Row for campaign_summaries. summary_date is the period start."""
    totals = compute_totals(campaigns)
    conv = _conversion_block(platform, campaigns, totals)

    return {
        "client_id": client_id,
        "summary_type": summary_type,
        "summary_date": summary_date,
        "platform": platform,
        "total_spend": round(totals["spend"], 2),
        "total_impressions": totals["impressions"],
        "total_clicks": totals["clicks"],
        "total_conversions": round(totals["conversions"], 2),
        "average_ctr": round(totals["average_ctr"], 4),
        "average_cpc": round(totals["average_cpc"], 4),
        **{f: conv[f] for f in FUNNEL_FIELDS},
        "roas": round(conv["roas"], 4),
        "cost_per_reservation": round(conv["cost_per_reservation"], 2),
        "campaign_data": [{k: c.get(k) for k in CAMPAIGN_DATA_FIELDS} for c in campaigns],
        "data_source": data_source,
    }


def build_cache_payload(
    client: Dict[str, Any],
    platform: str,
    campaigns: List[Dict[str, Any]],
    period: Dict[str, Any],
    account_info: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Document stored in the *_cache tables and returned to dashboards."""
    totals = compute_totals(campaigns)
    conv = _conversion_block(platform, campaigns, totals)

    return {
        "client": {
            "id": client.get("id"),
            "name": client.get("name"),
            "adAccountId": client.get("ad_account_id"),
            "googleAdsCustomerId": client.get("google_ads_customer_id"),
            "currency": (account_info or {}).get("currency") or "PLN",
        },
        "campaigns": campaigns,
        "stats": {
            "totalSpend": totals["spend"],
            "totalImpressions": totals["impressions"],
            "totalClicks": totals["clicks"],
            "totalConversions": totals["conversions"],
            "averageCtr": totals["average_ctr"],
            "averageCpc": totals["average_cpc"],
        },
        "conversionMetrics": conv,
        "dateRange": {"start": period["start_date"], "end": period["end_date"]},
        "accountInfo": {
            "currency": account_info.get("currency"),
            "timezone": account_info.get("timezone_name"),
            "status": account_info.get("account_status"),
        } if account_info else None,
        "fetchedAt": utc_now().isoformat(),
        "fromCache": False,
        "cacheAge": 0,
    }
