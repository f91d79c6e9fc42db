# services/backfill_service.py
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from db.repositories.campaign_summaries_repo import get_summary, upsert_summary
from db.repositories.campaigns_repo import upsert_campaign_rows
from logs.logger import logger
from services.campaign_totals import build_summary_record
from services.data_validation import has_real_conversion_data, validate_metrics
from services.live_data_service import fetch_campaigns
from services.meta_actions_parser import FUNNEL_FIELDS
from utils.datetime_utils import month_ranges, week_ranges
from utils.insights_utils import to_int

SNAPSHOT_FIELDS = ("booking_step_1", "booking_step_2", "booking_step_3", "reservations")

DATA_SOURCES = {"meta": "meta_api", "google": "google_ads_api"}

PERIOD_BUILDERS = {"monthly": month_ranges, "weekly": week_ranges}


def periods_for(summary_type: str, start_date: str, end_date: str) -> List[Dict[str, Any]]:
    try:
        return PERIOD_BUILDERS[summary_type](start_date, end_date)
    except KeyError:
        raise ValueError(f"Unknown summary type: {summary_type}")


def _snapshot(row: Optional[Dict[str, Any]]) -> Dict[str, int]:
    row = row or {}
    return {f: to_int(row.get(f)) for f in SNAPSHOT_FIELDS}


def needs_funnel_fix(summary: Optional[Dict[str, Any]]) -> bool:
    """Step 1 recorded but step 2 or 3 missing: written before omni_* parsing."""
    s = _snapshot(summary)
    return s["booking_step_1"] > 0 and (s["booking_step_2"] == 0 or s["booking_step_3"] == 0)


def _campaign_row(client_id: Any, start_date: str, end_date: str, c: Dict[str, Any]) -> Dict[str, Any]:
    r = {
        "client_id": client_id,
        "campaign_id": c.get("campaign_id"),
        "campaign_name": c.get("campaign_name"),
        "date_range_start": start_date,
        "date_range_end": end_date,
        "spend": c.get("spend", 0),
        "impressions": c.get("impressions", 0),
        "clicks": c.get("clicks", 0),
        "conversions": c.get("conversions", 0),
    }
    for f in FUNNEL_FIELDS:
        r[f] = c.get(f, 0)
    return r


def backfill_period(
    client: Dict[str, Any],
    platform: str,
    summary_type: str,
    start_date: str,
    end_date: str,
    dry_run: bool = True,
    only_broken_funnel: bool = False,
    live_fetcher: Optional[Callable[..., List[Dict[str, Any]]]] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "period": start_date,
        "before": _snapshot(None),
        "after": _snapshot(None),
        "success": False,
        "skipped": False,
        "saved": False,
        "error": None,
    }
    label = f"{client.get('name')} {platform} {summary_type} {start_date}"

    try:
        current = get_summary(client["id"], summary_type, start_date, platform)
        out["before"] = _snapshot(current)

        if only_broken_funnel and not needs_funnel_fix(current):
            out["skipped"] = True
            out["success"] = True
            logger.info(f"⏭️ {label}: funnel complete, skipping")
            return out

        campaigns = (live_fetcher or fetch_campaigns)(client, platform, start_date, end_date)
        if not campaigns:
            out["error"] = f"No data from {platform} API"
            logger.warning(f"⚠️ {label}: no campaigns returned")
            return out

        record = build_summary_record(client["id"], platform, summary_type, start_date, campaigns, DATA_SOURCES[platform])
        validate_metrics(
            {"spend": record["total_spend"], "impressions": record["total_impressions"],
             "clicks": record["total_clicks"], **{f: record[f] for f in FUNNEL_FIELDS}},
            label,
        )
        out["after"] = _snapshot(record)
        if not has_real_conversion_data(record):
            logger.warning(f"⚠️ {label}: campaigns returned but no conversions tracked")

        if dry_run:
            logger.info(f"🔍 [dry run] {label}: before={out['before']} after={out['after']}")
        else:
            upsert_summary(record)
            if platform == "meta":
                upsert_campaign_rows([_campaign_row(client["id"], start_date, end_date, c) for c in campaigns])
            out["saved"] = True
            logger.info(f"✅ {label}: before={out['before']} after={out['after']}")

        out["success"] = True

    except Exception as e:
        logger.error(f"❌ {label}: {e}")
        out["error"] = str(e)

    return out


def backfill_client(
    client: Dict[str, Any],
    platform: str,
    periods: List[Dict[str, Any]],
    summary_type: str = "monthly",
    dry_run: bool = True,
    only_broken_funnel: bool = False,
) -> Dict[str, Any]:
    results = [
        backfill_period(
            client, platform, summary_type, p["start_date"], p["end_date"],
            dry_run=dry_run, only_broken_funnel=only_broken_funnel,
        )
        for p in periods
    ]
    return {
        "client_id": client.get("id"),
        "client_name": client.get("name"),
        "results": results,
        "fixed": sum(1 for r in results if r["success"] and not r["skipped"]),
        "skipped": sum(1 for r in results if r["skipped"]),
        "failed": sum(1 for r in results if not r["success"]),
    }
