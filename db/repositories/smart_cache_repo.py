# db/repositories/smart_cache_repo.py
from __future__ import annotations

from typing import Any, Dict, Optional

from db.db import execute, from_json, query_one, to_json

CACHE_TABLES = {
    ("meta", "month"): "current_month_cache",
    ("meta", "week"): "current_week_cache",
    ("google", "month"): "google_ads_current_month_cache",
    ("google", "week"): "google_ads_current_week_cache",
}


def cache_table(platform: str, period: str) -> str:
    try:
        return CACHE_TABLES[(platform, period)]
    except KeyError:
        raise ValueError(f"Unknown cache platform/period: {platform}/{period}")


def get_cache_row(client_id: Any, period_id: str, platform: str = "meta", period: str = "month") -> Optional[Dict[str, Any]]:
    table = cache_table(platform, period)
    row = query_one(
        f"""
        SELECT client_id, period_id, cache_data, last_updated
        FROM {table}
        WHERE client_id = %(client_id)s AND period_id = %(period_id)s
        """,
        {"client_id": client_id, "period_id": period_id},
    )
    if row:
        row["cache_data"] = from_json(row.get("cache_data"))
    return row


def upsert_cache_row(client_id: Any, period_id: str, cache_data: dict, platform: str = "meta", period: str = "month") -> None:
    table = cache_table(platform, period)
    execute(
        f"""
        INSERT INTO {table} (client_id, period_id, cache_data, last_updated)
        VALUES (%(client_id)s, %(period_id)s, %(cache_data)s, UTC_TIMESTAMP())
        ON DUPLICATE KEY UPDATE
            cache_data = VALUES(cache_data),
            last_updated = UTC_TIMESTAMP()
        """,
        {"client_id": client_id, "period_id": period_id, "cache_data": to_json(cache_data)},
    )
