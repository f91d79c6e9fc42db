# services/reconciliation_service.py
"""
Cross-checks one client/period across every place its numbers live:

  live      - the ad platform API right now
  summary   - campaign_summaries row (monthly / weekly)
  campaigns - raw per-campaign rows (Meta only)
  cache     - current month / week smart cache

Live is the reference when it could be fetched, otherwise the summary row.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from db.repositories.campaign_summaries_repo import get_summary
from db.repositories.campaigns_repo import list_campaign_rows
from db.repositories.smart_cache_repo import get_cache_row
from logs.logger import logger
from services.campaign_totals import aggregator_for, compute_totals
from services.data_validation import conversion_rate_checks
from services.live_data_service import fetch_campaigns
from services.meta_actions_parser import FUNNEL_FIELDS
from utils.datetime_utils import month_info, week_info
from utils.insights_utils import sanitize_number

# metric -> campaign_summaries column
RECONCILED_METRICS: Tuple[Tuple[str, str], ...] = (
    ("spend", "total_spend"),
    ("impressions", "total_impressions"),
    ("clicks", "total_clicks"),
    ("conversions", "total_conversions"),
) + tuple((f, f) for f in FUNNEL_FIELDS)

DEFAULT_TOLERANCE = 0.01
# float sums such as 100.01 - 100.00 overshoot 0.01 by a few ulps
_EPSILON = 1e-9

SUMMARY_TYPES = {"monthly": ("month", month_info), "weekly": ("week", week_info)}


@dataclass
class MetricComparison:
    metric: str
    left: float
    right: float
    difference: float
    percent_diff: float
    match: bool


@dataclass
class ReconciliationReport:
    client_id: Any
    client_name: Optional[str]
    platform: str
    summary_type: str
    start_date: str
    end_date: str
    reference: Optional[str] = None
    tiers: Dict[str, Dict[str, float]] = field(default_factory=dict)
    comparisons: Dict[str, List[MetricComparison]] = field(default_factory=dict)
    critical_checks: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    all_match: bool = False

    def mismatches(self) -> List[Tuple[str, MetricComparison]]:
        return [(tier, c) for tier, comps in self.comparisons.items() for c in comps if not c.match]


def compare_metrics(
    left: Dict[str, Any],
    right: Dict[str, Any],
    tolerance: float = DEFAULT_TOLERANCE,
    metrics: Iterable[str] = tuple(m for m, _ in RECONCILED_METRICS),
) -> List[MetricComparison]:
    """percent_diff is relative to left; 0 when left is 0."""
    out = []
    for m in metrics:
        lv = sanitize_number(left.get(m))
        rv = sanitize_number(right.get(m))
        diff = abs(lv - rv)
        out.append(MetricComparison(
            metric=m,
            left=lv,
            right=rv,
            difference=diff,
            percent_diff=(diff / lv * 100) if lv > 0 else 0.0,
            match=diff <= tolerance + _EPSILON,
        ))
    return out


# -------------------------
# per-tier totals
# -------------------------
def _funnel(source: Dict[str, Any]) -> Dict[str, float]:
    return {f: sanitize_number(source.get(f)) for f in FUNNEL_FIELDS}


def totals_from_cache(cache_data: Dict[str, Any]) -> Dict[str, float]:
    stats = cache_data.get("stats") or {}
    out = {
        "spend": sanitize_number(stats.get("totalSpend")),
        "impressions": sanitize_number(stats.get("totalImpressions")),
        "clicks": sanitize_number(stats.get("totalClicks")),
        "conversions": sanitize_number(stats.get("totalConversions")),
    }
    out.update(_funnel(cache_data.get("conversionMetrics") or {}))
    return out


def totals_from_summary(row: Dict[str, Any]) -> Dict[str, float]:
    return {metric: sanitize_number(row.get(column)) for metric, column in RECONCILED_METRICS}


def totals_from_campaign_rows(rows: List[Dict[str, Any]]) -> Dict[str, float]:
    t = compute_totals(rows)
    out = {k: float(t[k]) for k in ("spend", "impressions", "clicks", "conversions")}
    for f in FUNNEL_FIELDS:
        out[f] = sum(sanitize_number(r.get(f)) for r in rows)
    return out


def totals_from_live(campaigns: List[Dict[str, Any]], platform: str = "meta") -> Dict[str, float]:
    t = compute_totals(campaigns)
    out = {k: float(t[k]) for k in ("spend", "impressions", "clicks", "conversions")}
    out.update(_funnel(aggregator_for(platform)(campaigns).to_dict()))
    return out


# -------------------------
# reconciliation
# -------------------------
def _cache_totals(client_id: Any, platform: str, summary_type: str, start_date: str) -> Optional[Dict[str, float]]:
    period, info_fn = SUMMARY_TYPES[summary_type]
    info = info_fn(start_date)
    row = get_cache_row(client_id, info["period_id"], platform=platform, period=period)
    cache_data = (row or {}).get("cache_data") or {}
    # the cache only ever holds the current period; skip it when it has rolled over
    if (cache_data.get("dateRange") or {}).get("start") != start_date:
        return None
    return totals_from_cache(cache_data)


def reconcile_period(
    client: Dict[str, Any],
    platform: str,
    summary_type: str,
    start_date: str,
    end_date: str,
    include_live: bool = True,
    tolerance: float = DEFAULT_TOLERANCE,
    live_fetcher: Optional[Callable[..., List[Dict[str, Any]]]] = None,
) -> ReconciliationReport:
    if summary_type not in SUMMARY_TYPES:
        raise ValueError(f"Unknown summary type: {summary_type}")

    client_id = client["id"]
    report = ReconciliationReport(
        client_id=client_id,
        client_name=client.get("name"),
        platform=platform,
        summary_type=summary_type,
        start_date=start_date,
        end_date=end_date,
    )

    if include_live:
        try:
            campaigns = (live_fetcher or fetch_campaigns)(client, platform, start_date, end_date)
            report.tiers["live"] = totals_from_live(campaigns, platform)
        except Exception as e:
            logger.error(f"❌ Live fetch failed {client.get('name')} {platform} {start_date}: {e}")
            report.errors.append(f"live: {e}")

    summary = get_summary(client_id, summary_type, start_date, platform)
    if summary:
        report.tiers["summary"] = totals_from_summary(summary)

    if platform == "meta":
        rows = list_campaign_rows(client_id, start_date, end_date)
        if rows:
            report.tiers["campaigns"] = totals_from_campaign_rows(rows)

    cache = _cache_totals(client_id, platform, summary_type, start_date)
    if cache is not None:
        report.tiers["cache"] = cache

    if "live" in report.tiers:
        report.reference = "live"
    elif "summary" in report.tiers:
        report.reference = "summary"
    elif report.tiers:
        report.reference = next(iter(report.tiers))
    else:
        report.errors.append("no data in any tier")
        logger.warning(f"⚠️ Nothing to reconcile for {client.get('name')} {platform} {summary_type} {start_date}")
        return report

    ref = report.tiers[report.reference]
    for tier, totals in report.tiers.items():
        if tier != report.reference:
            report.comparisons[tier] = compare_metrics(ref, totals, tolerance=tolerance)

    report.critical_checks = conversion_rate_checks(ref)
    report.all_match = not report.mismatches() and all(c["passed"] for c in report.critical_checks.values())

    mismatched = report.mismatches()
    if mismatched:
        for tier, c in mismatched:
            logger.warning(
                f"❌ {client.get('name')} {platform} {start_date} {tier}.{c.metric}: "
                f"{report.reference}={c.left:.2f} {tier}={c.right:.2f} diff={c.difference:.2f} ({c.percent_diff:.2f}%)"
            )
    else:
        logger.info(f"✅ {client.get('name')} {platform} {start_date} tiers={list(report.tiers)} match")

    return report


def audit_clients(
    clients: List[Dict[str, Any]],
    periods: List[Dict[str, Any]],
    platform: str = "meta",
    summary_type: str = "monthly",
    include_live: bool = True,
    tolerance: float = DEFAULT_TOLERANCE,
) -> Dict[str, Any]:
    """Reconcile every client over every period; one failure never stops the run."""
    reports: List[ReconciliationReport] = []
    failures: List[Dict[str, Any]] = []

    for client in clients:
        for p in periods:
            try:
                reports.append(reconcile_period(
                    client, platform, summary_type, p["start_date"], p["end_date"],
                    include_live=include_live, tolerance=tolerance,
                ))
            except Exception as e:
                logger.error(f"❌ Reconcile crashed {client.get('name')} {p['start_date']}: {e}")
                failures.append({"client_id": client.get("id"), "start_date": p["start_date"], "error": str(e)})

    matched = sum(1 for r in reports if r.all_match)
    return {
        "reports": reports,
        "failures": failures,
        "checked": len(reports),
        "matched": matched,
        "mismatched": len(reports) - matched,
    }
