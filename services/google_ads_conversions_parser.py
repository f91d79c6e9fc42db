# services/google_ads_conversions_parser.py
"""
Google Ads conversion-action rows -> the same funnel counters Meta uses.

Google has no fixed action types; accounts name their conversion actions
freely (mostly Polish), so counters are matched on name fragments.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from logs.logger import logger
from services.meta_actions_parser import ConversionMetrics, warn_funnel_inversions
from utils.insights_utils import round_count

PHONE_PATTERNS = ("phone", "telefon", "call", "dzwonienie")
EMAIL_PATTERNS = ("email", "e-mail", "mail", "contact", "kontakt", "formularz")


def _step_patterns(n: int, ordinal: str) -> tuple:
    return (
        f"step {n}",
        f"step{n}",
        f"krok {n}",
        f"{n} krok",
        f"{ordinal} krok",
        f"{ordinal}_krok",
        f"booking_step_{n}",
    )


STEP_PATTERNS = {
    "booking_step_1": _step_patterns(1, "pierwszy"),
    "booking_step_2": _step_patterns(2, "drugi"),
    "booking_step_3": _step_patterns(3, "trzeci"),
}

RESERVATION_PATTERNS = ("rezerwacja", "reservation", "zakup", "purchase", "complete")
# "Booking Engine - krok 1" style names are funnel steps, not reservations
BOOKING_STEP_MARKERS = ("krok", "step", "booking engine", "booking_step")

COUNT_FIELDS = ("click_to_call", "email_contacts", "booking_step_1", "booking_step_2", "booking_step_3", "reservations")


def _matches(name: str, patterns) -> bool:
    return any(p in name for p in patterns)


def _num(value: Any) -> Optional[float]:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    return n if math.isfinite(n) else None


def _first(row: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = row.get(k)
        if v is not None and v != "":
            return v
    return None


def parse_google_ads_conversions(conversions: Any = None, campaign_name: Optional[str] = None) -> ConversionMetrics:
    """
    Google attribution can hand out fractional conversions, so counts are
    summed as floats and rounded once at the end.
    """
    label = campaign_name or "unknown"
    metrics = ConversionMetrics()

    if conversions is None:
        conversions = []
    if not isinstance(conversions, list):
        logger.warning(f"parse_google_ads_conversions: conversions is not a list for campaign \"{label}\"")
        return metrics

    sums = {f: 0.0 for f in COUNT_FIELDS}
    reservation_value = 0.0

    for row in conversions:
        if not isinstance(row, dict):
            continue
        name = str(_first(row, "conversion_name", "name") or "").lower()
        count = _num(_first(row, "conversions", "value") or 0)
        value = _num(_first(row, "conversion_value", "all_conversions_value") or 0)

        if count is None or count < 0:
            logger.debug(f"parse_google_ads_conversions: invalid conversions for \"{name}\": {row.get('conversions')}")
            continue

        if _matches(name, PHONE_PATTERNS):
            sums["click_to_call"] += count
        if _matches(name, EMAIL_PATTERNS):
            sums["email_contacts"] += count
        for field, patterns in STEP_PATTERNS.items():
            if _matches(name, patterns):
                sums[field] += count

        if _matches(name, RESERVATION_PATTERNS) and not _matches(name, BOOKING_STEP_MARKERS):
            sums["reservations"] += count
            if value is not None and value > 0:
                reservation_value += value

    for f in COUNT_FIELDS:
        setattr(metrics, f, round_count(sums[f]))
    metrics.reservation_value = round(reservation_value, 2)
    metrics.conversion_value = metrics.reservation_value

    warn_funnel_inversions(metrics.to_dict(), label, platform="Google Ads")
    return metrics


def enhance_campaign(campaign: Dict[str, Any]) -> Dict[str, Any]:
    parsed = parse_google_ads_conversions(
        campaign.get("conversions_breakdown") or [],
        campaign.get("campaign_name") or campaign.get("name"),
    ).to_dict()
    out = dict(campaign)
    # total_conversion_value comes from the campaign row (all_conversions_value)
    parsed.pop("total_conversion_value", None)
    parsed.pop("roas", None)
    out.update(parsed)
    return out


def enhance_campaigns(campaigns: Any) -> List[Dict[str, Any]]:
    if not isinstance(campaigns, list):
        logger.warning("enhance_campaigns: campaigns is not a list")
        return []
    return [enhance_campaign(c) for c in campaigns]


def aggregate_conversion_metrics(campaigns: Any) -> ConversionMetrics:
    totals = ConversionMetrics()
    if not isinstance(campaigns, list):
        logger.warning("aggregate_conversion_metrics: campaigns is not a list")
        return totals

    sums = {f: 0.0 for f in COUNT_FIELDS}
    reservation_value = 0.0
    total_value = 0.0
    spend = 0.0
    for c in campaigns:
        for f in COUNT_FIELDS:
            sums[f] += _num(c.get(f)) or 0.0
        reservation_value += _num(c.get("reservation_value")) or 0.0
        total_value += _num(c.get("total_conversion_value")) or 0.0
        spend += _num(c.get("spend")) or 0.0

    # float sums drift (1162.892644); counters are whole numbers
    for f in COUNT_FIELDS:
        setattr(totals, f, round_count(sums[f]))
    totals.reservation_value = round(reservation_value, 2)
    totals.conversion_value = totals.reservation_value
    totals.total_conversion_value = round(total_value, 2)
    if spend > 0 and totals.total_conversion_value > 0:
        totals.roas = totals.total_conversion_value / spend
    return totals
