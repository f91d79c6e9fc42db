# services/data_quality_service.py
from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any, Dict, List, Optional, Tuple

from db.repositories.campaign_summaries_repo import (
    delete_summaries,
    list_summaries,
    list_zero_data_summaries,
    set_data_source,
)
from logs.logger import logger
from utils.datetime_utils import as_date, is_monday
from utils.insights_utils import sanitize_number

CLEANUP_MODES = ("analyze", "delete", "mark-inactive")
INACTIVE_DATA_SOURCE = "zero-data-inactive"


def _date_key(value: Any) -> str:
    return as_date(value).isoformat()


# =========================
# Weekly summaries
# =========================

def find_duplicate_summaries(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Periods stored more than once for the same platform."""
    groups: Dict[Tuple[str, str], List[Dict[str, Any]]] = defaultdict(list)
    for r in rows:
        groups[(_date_key(r["summary_date"]), r.get("platform"))].append(r)

    return [
        {"summary_date": d, "platform": p, "count": len(records), "records": records}
        for (d, p), records in sorted(groups.items(), key=lambda kv: kv[0][0], reverse=True)
        if len(records) > 1
    ]


def find_non_monday_weeks(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [r for r in rows if not is_monday(r["summary_date"])]


def find_empty_summaries(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """No campaign_data, or zero spend, step 1 and reservations."""
    out = []
    for r in rows:
        no_campaigns = not r.get("campaign_data")
        no_metrics = all(
            sanitize_number(r.get(f)) == 0 for f in ("total_spend", "booking_step_1", "reservations")
        )
        if no_campaigns or no_metrics:
            out.append(r)
    return out


def check_weekly_summaries(client_id: Any, rows: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    if rows is None:
        rows = list_summaries(client_id, summary_type="weekly")

    duplicates = find_duplicate_summaries(rows)
    non_monday = find_non_monday_weeks(rows)
    empty = find_empty_summaries(rows)

    report = {
        "client_id": client_id,
        "total": len(rows),
        "duplicates": duplicates,
        "extra_records": sum(d["count"] - 1 for d in duplicates),
        "non_monday": non_monday,
        "empty": empty,
        "ok": not duplicates and not non_monday and not empty,
    }

    if not rows:
        logger.warning(f"⚠️ No weekly summaries for client={client_id}")
    elif report["ok"]:
        logger.info(f"✅ Weekly summaries client={client_id} total={len(rows)} clean")
    else:
        logger.warning(
            f"⚠️ Weekly summaries client={client_id} total={len(rows)} "
            f"duplicate_weeks={len(duplicates)} extra={report['extra_records']} "
            f"non_monday={len(non_monday)} empty={len(empty)}"
        )
    return report


# =========================
# Zero-data anomalies
# =========================

def find_zero_data_records() -> List[Dict[str, Any]]:
    return list_zero_data_summaries()


def summarize_zero_data(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    by_client: Dict[str, Counter] = defaultdict(Counter)
    for r in records:
        name = r.get("client_name") or str(r.get("client_id"))
        c = by_client[name]
        c["total"] += 1
        c[r.get("platform") or "unknown"] += 1
        c[r.get("summary_type") or "unknown"] += 1

    by_month = Counter(_date_key(r["summary_date"])[:7] for r in records)

    return {
        "total": len(records),
        "by_platform": dict(Counter(r.get("platform") for r in records)),
        "by_type": dict(Counter(r.get("summary_type") for r in records)),
        "by_client": sorted(
            ({"name": k, **dict(v)} for k, v in by_client.items()),
            key=lambda x: x["total"],
            reverse=True,
        ),
        "by_month": dict(sorted(by_month.items())),
    }


def cleanup_zero_data(records: List[Dict[str, Any]], mode: str = "analyze") -> Dict[str, Any]:
    """
    analyze       - report only
    delete        - remove the rows
    mark-inactive - keep them as an audit trail, tagged in data_source
    """
    if mode not in CLEANUP_MODES:
        raise ValueError(f"Unknown cleanup mode: {mode}")

    summary = summarize_zero_data(records)
    out = {"mode": mode, "summary": summary, "deleted": 0, "marked": 0}
    ids = [r["id"] for r in records]

    if not ids:
        logger.info("✅ No zero-data anomalies found")
        return out

    if mode == "delete":
        out["deleted"] = delete_summaries(ids)
        logger.info(f"🗑️ Deleted {out['deleted']} zero-data summaries")
    elif mode == "mark-inactive":
        out["marked"] = set_data_source(ids, INACTIVE_DATA_SOURCE)
        logger.info(f"🏷️ Marked {out['marked']} zero-data summaries as {INACTIVE_DATA_SOURCE}")
    else:
        logger.info(f"📊 {summary['total']} zero-data summaries: platform={summary['by_platform']} type={summary['by_type']}")

    return out
