# db/repositories/campaign_summaries_repo.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from db.db import execute, from_json, query_dict, query_one, to_json

SUMMARY_COLUMNS = """
    id, client_id, summary_type, summary_date, platform,
    total_spend, total_impressions, total_clicks, total_conversions,
    average_ctr, average_cpc,
    click_to_call, email_contacts, booking_step_1, booking_step_2, booking_step_3,
    reservations, reservation_value, roas, cost_per_reservation,
    campaign_data, data_source, last_updated
"""

DELETE_BATCH = 100


def _decode(row: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if row is not None and "campaign_data" in row:
        row["campaign_data"] = from_json(row["campaign_data"])
    return row


def get_summary(client_id: Any, summary_type: str, summary_date: str, platform: str) -> Optional[Dict[str, Any]]:
    row = query_one(
        f"""
        SELECT {SUMMARY_COLUMNS}
        FROM campaign_summaries
        WHERE client_id = %(client_id)s
          AND summary_type = %(summary_type)s
          AND summary_date = %(summary_date)s
          AND platform = %(platform)s
        """,
        {"client_id": client_id, "summary_type": summary_type, "summary_date": summary_date, "platform": platform},
    )
    return _decode(row)


def list_summaries(
    client_id: Any,
    summary_type: Optional[str] = None,
    platform: Optional[str] = None,
) -> List[Dict[str, Any]]:
    where = ["client_id = %(client_id)s"]
    params: Dict[str, Any] = {"client_id": client_id}
    if summary_type:
        where.append("summary_type = %(summary_type)s")
        params["summary_type"] = summary_type
    if platform:
        where.append("platform = %(platform)s")
        params["platform"] = platform

    rows = query_dict(
        f"""
        SELECT {SUMMARY_COLUMNS}
        FROM campaign_summaries
        WHERE {' AND '.join(where)}
        ORDER BY summary_date DESC
        """,
        params,
    )
    return [_decode(r) for r in rows]


def list_zero_data_summaries() -> List[Dict[str, Any]]:
    """Rows with zero spend, impressions and clicks, joined with the client name."""
    return query_dict(
        """
        SELECT s.id, s.client_id, c.name AS client_name, s.summary_type, s.summary_date,
               s.platform, s.total_spend, s.total_impressions, s.total_clicks
        FROM campaign_summaries s
        JOIN clients c ON c.id = s.client_id
        WHERE s.total_spend = 0 AND s.total_impressions = 0 AND s.total_clicks = 0
        ORDER BY s.summary_date DESC
        """
    )


def upsert_summary(r: dict) -> None:
    params = dict(r)
    params["campaign_data"] = to_json(r.get("campaign_data"))
    sql = """
    INSERT INTO campaign_summaries (
        client_id, summary_type, summary_date, platform,
        total_spend, total_impressions, total_clicks, total_conversions,
        average_ctr, average_cpc,
        click_to_call, email_contacts, booking_step_1, booking_step_2, booking_step_3,
        reservations, reservation_value, roas, cost_per_reservation,
        campaign_data, data_source, last_updated
    )
    VALUES (
        %(client_id)s, %(summary_type)s, %(summary_date)s, %(platform)s,
        %(total_spend)s, %(total_impressions)s, %(total_clicks)s, %(total_conversions)s,
        %(average_ctr)s, %(average_cpc)s,
        %(click_to_call)s, %(email_contacts)s, %(booking_step_1)s, %(booking_step_2)s, %(booking_step_3)s,
        %(reservations)s, %(reservation_value)s, %(roas)s, %(cost_per_reservation)s,
        %(campaign_data)s, %(data_source)s, NOW()
    )
    ON DUPLICATE KEY UPDATE
        total_spend=VALUES(total_spend),
        total_impressions=VALUES(total_impressions),
        total_clicks=VALUES(total_clicks),
        total_conversions=VALUES(total_conversions),
        average_ctr=VALUES(average_ctr),
        average_cpc=VALUES(average_cpc),
        click_to_call=VALUES(click_to_call),
        email_contacts=VALUES(email_contacts),
        booking_step_1=VALUES(booking_step_1),
        booking_step_2=VALUES(booking_step_2),
        booking_step_3=VALUES(booking_step_3),
        reservations=VALUES(reservations),
        reservation_value=VALUES(reservation_value),
        roas=VALUES(roas),
        cost_per_reservation=VALUES(cost_per_reservation),
        campaign_data=VALUES(campaign_data),
        data_source=VALUES(data_source),
        last_updated=NOW();
    """
    execute(sql, params)


def delete_summaries(ids: Iterable[Any]) -> int:
    ids = list(ids)
    deleted = 0
    for i in range(0, len(ids), DELETE_BATCH):
        batch = ids[i:i + DELETE_BATCH]
        params = {f"id{n}": v for n, v in enumerate(batch)}
        placeholders = ", ".join(f"%({k})s" for k in params)
        deleted += execute(f"DELETE FROM campaign_summaries WHERE id IN ({placeholders})", params)
    return deleted


def set_data_source(ids: Iterable[Any], data_source: str) -> int:
    ids = list(ids)
    updated = 0
    for i in range(0, len(ids), DELETE_BATCH):
        batch = ids[i:i + DELETE_BATCH]
        params: Dict[str, Any] = {f"id{n}": v for n, v in enumerate(batch)}
        placeholders = ", ".join(f"%({k})s" for k in params)
        params["data_source"] = data_source
        updated += execute(
            f"UPDATE campaign_summaries SET data_source = %(data_source)s WHERE id IN ({placeholders})",
            params,
        )
    return updated
