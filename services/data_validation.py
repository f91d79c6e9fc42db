# services/data_validation.py
"""
Checks run on metrics before they are stored or compared.
Nothing here corrects data; problems are reported and logged.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from logs.logger import logger
from utils.insights_utils import sanitize_number, to_float

SANITIZED_FIELDS = (
    "spend", "impressions", "clicks", "conversions",
    "click_to_call", "email_contacts",
    "booking_step_1", "booking_step_2", "booking_step_3",
    "reservations", "reservation_value",
    "ctr", "cpc", "cpm", "roas", "cost_per_reservation", "reach", "frequency",
)

CONVERSION_FIELDS = (
    "click_to_call", "email_contacts",
    "booking_step_1", "booking_step_2", "booking_step_3",
    "reservations", "reservation_value",
)

# metric -> share of clicks that earlier code used to invent values
ESTIMATE_PATTERNS = {
    "click_to_call": (0.3, 0.15, 0.01),
    "email_contacts": (0.4, 0.10, 0.005),
    "booking_step_1": (0.8, 0.75, 0.02),
}


@dataclass
class ValidationResult:
    is_valid: bool = True
    has_real_data: bool = False
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def validate_metrics(data: Dict[str, Any], source: str) -> ValidationResult:
    result = ValidationResult()

    spend = sanitize_number(data.get("spend"))
    impressions = sanitize_number(data.get("impressions"))
    clicks = sanitize_number(data.get("clicks"))

    if spend > 0 or impressions > 0 or clicks > 0:
        result.has_real_data = True

    if clicks > impressions:
        result.warnings.append(f"{source}: clicks ({clicks:g}) > impressions ({impressions:g})")

    raw_spend = to_float(data.get("spend"))
    if raw_spend is not None and raw_spend < 0:
        result.errors.append(f"{source}: negative spend ({data.get('spend')})")
        result.is_valid = False

    s1 = sanitize_number(data.get("booking_step_1"))
    s2 = sanitize_number(data.get("booking_step_2"))
    s3 = sanitize_number(data.get("booking_step_3"))
    res = sanitize_number(data.get("reservations"))

    # attribution windows make these possible, so they stay warnings
    if s2 > s1 > 0:
        result.warnings.append(f"{source}: funnel inversion step 2 ({s2:g}) > step 1 ({s1:g})")
    if s3 > s2 > 0:
        result.warnings.append(f"{source}: funnel inversion step 3 ({s3:g}) > step 2 ({s2:g})")
    if res > s3 > 0:
        result.warnings.append(f"{source}: funnel inversion reservations ({res:g}) > step 3 ({s3:g})")

    for w in result.warnings:
        logger.warning(f"⚠️ {w}")
    for e in result.errors:
        logger.error(f"❌ {e}")

    return result


def sanitize_metrics(data: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(data)
    for f in SANITIZED_FIELDS:
        out[f] = sanitize_number(data.get(f))
    return out


def has_real_conversion_data(data: Dict[str, Any]) -> bool:
    return any(sanitize_number(data.get(f)) > 0 for f in CONVERSION_FIELDS)


def looks_estimated(data: Dict[str, Any]) -> List[str]:
    """
    Metrics that are exactly a fixed share of clicks. Could be chance,
    so callers only log these.
    """
    clicks = sanitize_number(data.get("clicks"))
    hits: List[str] = []
    if clicks <= 0:
        return hits

    for metric, shares in ESTIMATE_PATTERNS.items():
        value = sanitize_number(data.get(metric))
        for share in shares:
            estimated = int(clicks * share + 0.5)
            if estimated > 0 and value == estimated:
                msg = f"{metric}={value:g} equals {share * 100:g}% of clicks={clicks:g}"
                logger.warning(f"⚠️ Suspicious pattern: {msg}")
                hits.append(msg)
    return hits


def log_missing_data_warning(source: str, data: Dict[str, Any]) -> bool:
    """True (and a warning) when there was traffic but no reservations."""
    spend = sanitize_number(data.get("spend"))
    clicks = sanitize_number(data.get("clicks"))
    reservations = sanitize_number(data.get("reservations"))
    if (spend > 0 or clicks > 0) and reservations == 0:
        logger.warning(
            f"⚠️ {source}: spend={spend:g} clicks={clicks:g} but no reservations. "
            f"Check conversion tracking."
        )
        return True
    return False


def conversion_rate_checks(totals: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Sanity checks that must hold for any stored totals:
    conversion rate <= 100% and conversions <= clicks.
    """
    clicks = sanitize_number(totals.get("clicks"))
    conversions = sanitize_number(totals.get("conversions"))
    rate = (conversions / clicks * 100) if clicks > 0 else 0.0

    return {
        "conversion_rate_ok": {
            "passed": rate <= 100,
            "value": round(rate, 2),
            "message": f"conversion rate {rate:.2f}%",
        },
        "conversions_le_clicks": {
            "passed": conversions <= clicks,
            "value": conversions,
            "message": f"conversions={conversions:g} clicks={clicks:g}",
        },
    }
