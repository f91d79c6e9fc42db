# db/repositories/daily_kpi_repo.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from db.db import execute_many, query_dict

KPI_COLUMNS = """
    client_id, date, data_source,
    total_spend, total_impressions, total_clicks, total_conversions,
    click_to_call, email_contacts, booking_step_1, booking_step_2, booking_step_3,
    reservations, reservation_value
"""

# daily rows are tagged meta_api / google_ads_api
SOURCE_PREFIX = {"meta": "meta%", "google": "google%"}


def _source_filter(platform: Optional[str], params: Dict[str, Any]) -> str:
    prefix = SOURCE_PREFIX.get(platform or "")
    if not prefix:
        return ""
    params["source_prefix"] = prefix
    return "AND data_source LIKE %(source_prefix)s"


def list_daily_rows(client_id: Any, start_date: str, end_date: str, platform: Optional[str] = None) -> List[Dict[str, Any]]:
    params: Dict[str, Any] = {"client_id": client_id, "start_date": start_date, "end_date": end_date}
    return query_dict(
        f"""
        SELECT {KPI_COLUMNS}
        FROM daily_kpi_data
        WHERE client_id = %(client_id)s
          AND date BETWEEN %(start_date)s AND %(end_date)s
          {_source_filter(platform, params)}
        ORDER BY date
        """,
        params,
    )


def list_recent_rows(client_id: Any, limit: int = 7, platform: Optional[str] = None) -> List[Dict[str, Any]]:
    params: Dict[str, Any] = {"client_id": client_id, "limit": int(limit)}
    return query_dict(
        f"""
        SELECT {KPI_COLUMNS}
        FROM daily_kpi_data
        WHERE client_id = %(client_id)s
          {_source_filter(platform, params)}
        ORDER BY date DESC
        LIMIT %(limit)s
        """,
        params,
    )


UPSERT_SQL = """
    INSERT INTO daily_kpi_data (
        client_id, date, data_source,
        total_spend, total_impressions, total_clicks, total_conversions,
        average_ctr, average_cpc, campaigns_count,
        click_to_call, email_contacts, booking_step_1, booking_step_2, booking_step_3,
        reservations, reservation_value, created_at
    )
    VALUES (
        %(client_id)s, %(date)s, %(data_source)s,
        %(total_spend)s, %(total_impressions)s, %(total_clicks)s, %(total_conversions)s,
        %(average_ctr)s, %(average_cpc)s, %(campaigns_count)s,
        %(click_to_call)s, %(email_contacts)s, %(booking_step_1)s, %(booking_step_2)s, %(booking_step_3)s,
        %(reservations)s, %(reservation_value)s, UTC_TIMESTAMP()
    )
    ON DUPLICATE KEY UPDATE
        total_spend=VALUES(total_spend),
        total_impressions=VALUES(total_impressions),
        total_clicks=VALUES(total_clicks),
        total_conversions=VALUES(total_conversions),
        average_ctr=VALUES(average_ctr),
        average_cpc=VALUES(average_cpc),
        campaigns_count=VALUES(campaigns_count),
        click_to_call=VALUES(click_to_call),
        email_contacts=VALUES(email_contacts),
        booking_step_1=VALUES(booking_step_1),
        booking_step_2=VALUES(booking_step_2),
        booking_step_3=VALUES(booking_step_3),
        reservations=VALUES(reservations),
        reservation_value=VALUES(reservation_value);
"""


def upsert_daily_rows(rows: Iterable[dict]) -> int:
    """One row per (client_id, date, data_source); re-collecting a day overwrites it."""
    return execute_many(UPSERT_SQL, rows)
