# db/repositories/campaigns_repo.py
from typing import Any, Dict, Iterable, List

from db.db import execute_many, query_dict


def list_campaign_rows(client_id: Any, start_date: str, end_date: str) -> List[Dict[str, Any]]:
    """Raw Meta campaign rows stored for exactly this date range."""
    return query_dict(
        """
        SELECT campaign_id, campaign_name, spend, impressions, clicks, conversions,
               click_to_call, email_contacts, booking_step_1, booking_step_2, booking_step_3,
               reservations, reservation_value
        FROM campaigns
        WHERE client_id = %(client_id)s
          AND date_range_start = %(start_date)s
          AND date_range_end = %(end_date)s
        """,
        {"client_id": client_id, "start_date": start_date, "end_date": end_date},
    )


UPSERT_SQL = """
    INSERT INTO campaigns (
        client_id, campaign_id, campaign_name, date_range_start, date_range_end,
        spend, impressions, clicks, conversions,
        click_to_call, email_contacts, booking_step_1, booking_step_2, booking_step_3,
        reservations, reservation_value, updated_at
    )
    VALUES (
        %(client_id)s, %(campaign_id)s, %(campaign_name)s, %(date_range_start)s, %(date_range_end)s,
        %(spend)s, %(impressions)s, %(clicks)s, %(conversions)s,
        %(click_to_call)s, %(email_contacts)s, %(booking_step_1)s, %(booking_step_2)s, %(booking_step_3)s,
        %(reservations)s, %(reservation_value)s, NOW()
    )
    ON DUPLICATE KEY UPDATE
        campaign_name=VALUES(campaign_name),
        spend=VALUES(spend),
        impressions=VALUES(impressions),
        clicks=VALUES(clicks),
        conversions=VALUES(conversions),
        click_to_call=VALUES(click_to_call),
        email_contacts=VALUES(email_contacts),
        booking_step_1=VALUES(booking_step_1),
        booking_step_2=VALUES(booking_step_2),
        booking_step_3=VALUES(booking_step_3),
        reservations=VALUES(reservations),
        reservation_value=VALUES(reservation_value),
        updated_at=NOW();
"""


def upsert_campaign_rows(rows: Iterable[dict]) -> int:
    return execute_many(UPSERT_SQL, rows)
