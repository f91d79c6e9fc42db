# services/monthly_from_daily_service.py
from __future__ import annotations

from typing import Any, Dict, List

from db.repositories.campaign_summaries_repo import get_summary
from db.repositories.daily_kpi_repo import list_daily_rows, list_recent_rows
from logs.logger import logger
from utils.insights_utils import sanitize_number

SUMMED = {
    "totalClicks": "total_clicks",
    "totalSpend": "total_spend",
    "totalImpressions": "total_impressions",
    "totalConversions": "total_conversions",
    "click_to_call": "click_to_call",
    "email_contacts": "email_contacts",
    "booking_step_1": "booking_step_1",
    "booking_step_2": "booking_step_2",
    "booking_step_3": "booking_step_3",
    "reservations": "reservations",
    "reservation_value": "reservation_value",
}

STALE_FALLBACK_DAYS = 7
CONSISTENCY_TOLERANCE_PCT = 1.0


def aggregate_daily_records(records: List[Dict[str, Any]], start_date: str, end_date: str) -> Dict[str, Any]:
    totals: Dict[str, Any] = {k: 0.0 for k in SUMMED}
    for r in records:
        for key, column in SUMMED.items():
            totals[key] += sanitize_number(r.get(column))

    clicks = totals["totalClicks"]
    impressions = totals["totalImpressions"]
    totals["averageCtr"] = (clicks / impressions * 100) if impressions > 0 else 0.0
    totals["averageCpc"] = (totals["totalSpend"] / clicks) if clicks > 0 else 0.0
    totals["dataSource"] = "daily-aggregated"
    totals["daysIncluded"] = len(records)
    totals["dateRange"] = {"start": start_date, "end": end_date}
    return totals


def zero_totals(start_date: str, end_date: str) -> Dict[str, Any]:
    out = aggregate_daily_records([], start_date, end_date)
    out["dataSource"] = "daily-aggregated-zero"
    return out


def calculate_monthly_totals(client_id: Any, start_date: str, end_date: str, platform: str = "meta") -> Dict[str, Any]:
    """
    Period totals summed from daily_kpi_data.
    With no rows in the period the most recent week of rows is used and
    marked daily-aggregated-stale; with nothing at all, zeros.
    """
    records = list_daily_rows(client_id, start_date, end_date, platform=platform)
    if records:
        result = aggregate_daily_records(records, start_date, end_date)
        logger.info(
            f"📊 Daily totals client={client_id} {start_date}..{end_date} days={result['daysIncluded']} "
            f"spend={result['totalSpend']:.2f} clicks={result['totalClicks']:g}"
        )
        return result

    logger.warning(f"⚠️ No daily rows for client={client_id} {start_date}..{end_date}, trying most recent rows")
    recent = list_recent_rows(client_id, limit=STALE_FALLBACK_DAYS, platform=platform)
    if not recent:
        logger.warning(f"⚠️ No daily rows at all for client={client_id}, returning zero totals")
        return zero_totals(start_date, end_date)

    result = aggregate_daily_records(recent, start_date, end_date)
    result["dataSource"] = "daily-aggregated-stale"
    logger.info(f"📅 Stale fallback client={client_id} rows={len(recent)} newest={recent[0].get('date')}")
    return result


def validate_consistency(client_id: Any, start_date: str, end_date: str, platform: str = "meta") -> Dict[str, Any]:
    """Stored monthly summary vs. the sum of its daily rows."""
    daily = calculate_monthly_totals(client_id, start_date, end_date, platform=platform)
    summary = get_summary(client_id, "monthly", start_date, platform) or {}

    checks = {}
    for label, summary_col, daily_key in (
        ("spend", "total_spend", "totalSpend"),
        ("clicks", "total_clicks", "totalClicks"),
    ):
        stored = sanitize_number(summary.get(summary_col))
        summed = daily[daily_key]
        difference = abs(stored - summed)
        pct = (difference / stored * 100) if stored > 0 else (0.0 if summed == 0 else 100.0)
        checks[label] = {
            "monthly_total": stored,
            "daily_sum": summed,
            "difference": difference,
            "percentage_diff": pct,
            "is_consistent": pct <= CONSISTENCY_TOLERANCE_PCT,
        }

    is_consistent = bool(summary) and daily["dataSource"] == "daily-aggregated" and all(
        c["is_consistent"] for c in checks.values()
    )
    if not is_consistent:
        logger.warning(f"⚠️ Monthly vs daily mismatch client={client_id} {start_date}: {checks}")

    return {
        "is_consistent": is_consistent,
        "has_summary": bool(summary),
        "data_source": daily["dataSource"],
        "checks": checks,
    }
