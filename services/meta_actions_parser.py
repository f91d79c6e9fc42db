# services/meta_actions_parser.py
"""
Meta insights `actions` / `action_values` -> booking funnel counters.

Every path that turns Meta campaign insights into funnel numbers (smart cache,
backfills, audits) goes through parse_meta_actions so the numbers agree.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from logs.logger import logger
from utils.insights_utils import round_count, sanitize_number

FUNNEL_FIELDS = (
    "click_to_call",
    "email_contacts",
    "booking_step_1",
    "booking_step_2",
    "booking_step_3",
    "reservations",
    "reservation_value",
)

# Custom pixel events some clients fire for phone/email clicks.
# When any of these is present it replaces the standard event for that counter.
CUSTOM_PHONE_EVENTS = {
    "offsite_conversion.custom.1470262077092668",
}
CUSTOM_EMAIL_EVENTS = {
    "offsite_conversion.custom.2770488499782793",
}

STANDARD_PHONE_EVENTS = ("click_to_call_call_confirm",)
STANDARD_EMAIL_EVENTS = ("lead", "onsite_conversion.lead_grouped")

# counter -> (authoritative omni type, pixel fallback)
# bare names ("search", "purchase") repeat the same event and are never counted
FUNNEL_ACTIONS = {
    "booking_step_1": ("omni_search", "offsite_conversion.fb_pixel_search"),
    "booking_step_2": ("omni_view_content", "offsite_conversion.fb_pixel_view_content"),
    "booking_step_3": ("omni_initiated_checkout", "offsite_conversion.fb_pixel_initiate_checkout"),
    "reservations": ("omni_purchase", "offsite_conversion.fb_pixel_purchase"),
}
PURCHASE_VALUE_ACTIONS = ("omni_purchase", "offsite_conversion.fb_pixel_purchase")


@dataclass
class ConversionMetrics:
    click_to_call: int = 0
    email_contacts: int = 0
    booking_step_1: int = 0
    booking_step_2: int = 0
    booking_step_3: int = 0
    reservations: int = 0
    reservation_value: float = 0.0
    conversion_value: float = 0.0
    total_conversion_value: float = 0.0
    roas: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _count(value: Any) -> Optional[int]:
    money = _money(value)
    return int(money) if money is not None else None


def _money(value: Any) -> Optional[float]:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return None
    # NaN and inf never count
    if not math.isfinite(n) or n < 0:
        return None
    return n


def _build_map(rows: Iterable[Dict[str, Any]], conv) -> Dict[str, float]:
    """action_type (lower-cased) -> summed value; unusable values dropped."""
    out: Dict[str, float] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        action_type = str(row.get("action_type") or "").lower()
        value = conv(row.get("value", 0))
        if not action_type or value is None:
            continue
        out[action_type] = out.get(action_type, 0) + value
    return out


def _first_present(mapping: Dict[str, float], candidates: Iterable[str]) -> Optional[float]:
    for name in candidates:
        if name in mapping:
            return mapping[name]
    return None


def warn_funnel_inversions(metrics: Dict[str, Any], label: str, platform: str = "Meta") -> None:
    s1 = metrics.get("booking_step_1", 0)
    s2 = metrics.get("booking_step_2", 0)
    s3 = metrics.get("booking_step_3", 0)
    res = metrics.get("reservations", 0)
    if s2 > s1 > 0:
        logger.warning(f"{platform} funnel inversion for campaign \"{label}\": step 2 ({s2}) > step 1 ({s1})")
    if s3 > s2 > 0:
        logger.warning(f"{platform} funnel inversion for campaign \"{label}\": step 3 ({s3}) > step 2 ({s2})")
    if res > s3 > 0:
        logger.warning(f"{platform} funnel inversion for campaign \"{label}\": reservations ({res}) > step 3 ({s3})")


def parse_meta_actions(
    actions: Any = None,
    action_values: Any = None,
    campaign_name: Optional[str] = None,
    phone_events: Optional[Iterable[str]] = None,
    email_events: Optional[Iterable[str]] = None,
) -> ConversionMetrics:
    """
    Parse one insights row's actions arrays into ConversionMetrics.

    phone_events / email_events extend the module-level custom pixel events
    for clients that track calls or emails through their own pixel events.
    """
    metrics = ConversionMetrics()
    label = campaign_name or "unknown"

    if actions is None:
        actions = []
    if not isinstance(actions, list):
        logger.warning(f"parse_meta_actions: actions is not a list for campaign \"{label}\"")
        return metrics

    if action_values is None:
        action_values = []
    if not isinstance(action_values, list):
        logger.warning(f"parse_meta_actions: action_values is not a list for campaign \"{label}\"")
        action_values = []

    custom_phone = CUSTOM_PHONE_EVENTS | {e.lower() for e in (phone_events or ())}
    custom_email = CUSTOM_EMAIL_EVENTS | {e.lower() for e in (email_events or ())}

    counts = _build_map(actions, _count)

    phone_custom = [counts[e] for e in custom_phone if e in counts]
    if phone_custom:
        metrics.click_to_call = int(sum(phone_custom))
    else:
        metrics.click_to_call = int(sum(counts.get(e, 0) for e in STANDARD_PHONE_EVENTS))

    email_custom = [counts[e] for e in custom_email if e in counts]
    if email_custom:
        metrics.email_contacts = int(sum(email_custom))
    else:
        metrics.email_contacts = int(sum(counts.get(e, 0) for e in STANDARD_EMAIL_EVENTS))

    for field, candidates in FUNNEL_ACTIONS.items():
        value = _first_present(counts, candidates)
        if value is not None:
            setattr(metrics, field, int(value))

    values = _build_map(action_values, _money)
    purchase_value = _first_present(values, PURCHASE_VALUE_ACTIONS)
    if purchase_value is not None:
        metrics.reservation_value = float(purchase_value)

    warn_funnel_inversions(asdict(metrics), label)

    # Ads Manager's "website purchase conversion value" is the purchase value itself
    metrics.conversion_value = metrics.reservation_value
    metrics.total_conversion_value = metrics.reservation_value

    if metrics.reservation_value > 0:
        logger.debug(f"Meta conversion value for \"{label}\": {metrics.reservation_value}")

    return metrics


def enhance_campaign(campaign: Dict[str, Any], **parse_kwargs: Any) -> Dict[str, Any]:
    parsed = parse_meta_actions(
        campaign.get("actions") or [],
        campaign.get("action_values") or [],
        campaign.get("campaign_name") or campaign.get("name"),
        **parse_kwargs,
    )
    out = dict(campaign)
    out.update(parsed.to_dict())
    return out


def enhance_campaigns(campaigns: Any, **parse_kwargs: Any) -> List[Dict[str, Any]]:
    if not isinstance(campaigns, list):
        logger.warning("enhance_campaigns: campaigns is not a list")
        return []
    return [enhance_campaign(c, **parse_kwargs) for c in campaigns]


def aggregate_conversion_metrics(campaigns: Any) -> ConversionMetrics:
    """
    Sum parsed funnel fields over campaigns.
    roas is recomputed from the summed conversion value and spend.
    """
    totals = ConversionMetrics()
    if not isinstance(campaigns, list):
        logger.warning("aggregate_conversion_metrics: campaigns is not a list")
        return totals

    sums = {f: 0.0 for f in FUNNEL_FIELDS + ("conversion_value", "total_conversion_value")}
    total_spend = 0.0
    for c in campaigns:
        for f in sums:
            sums[f] += sanitize_number(c.get(f))
        total_spend += sanitize_number(c.get("spend"))

    for f in ("click_to_call", "email_contacts", "booking_step_1", "booking_step_2", "booking_step_3", "reservations"):
        setattr(totals, f, round_count(sums[f]))
    totals.reservation_value = sums["reservation_value"]
    totals.conversion_value = sums["conversion_value"]
    totals.total_conversion_value = sums["total_conversion_value"]

    if total_spend > 0 and totals.total_conversion_value > 0:
        totals.roas = totals.total_conversion_value / total_spend

    return totals
