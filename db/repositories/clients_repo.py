# db/repositories/clients_repo.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from db.db import execute, query_dict, query_one, query_scalar

CLIENT_COLUMNS = """
    id, name, email, company, ad_account_id, meta_access_token, system_user_token,
    google_ads_customer_id, google_ads_enabled, reporting_frequency, api_status, notes
"""


def get_client(client_id: Any) -> Optional[Dict[str, Any]]:
    return query_one(
        f"SELECT {CLIENT_COLUMNS} FROM clients WHERE id = %(id)s",
        {"id": client_id},
    )


def list_clients(platform: Optional[str] = None, name_like: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    platform='meta'   -> clients with an ad account
    platform='google' -> clients with Google Ads enabled and a customer id
    """
    where = ["1=1"]
    params: Dict[str, Any] = {}
    if platform == "meta":
        where.append("ad_account_id IS NOT NULL AND ad_account_id <> ''")
    elif platform == "google":
        where.append("google_ads_enabled = 1 AND google_ads_customer_id IS NOT NULL")
    if name_like:
        where.append("name LIKE %(name_like)s")
        params["name_like"] = f"%{name_like}%"

    return query_dict(
        f"SELECT {CLIENT_COLUMNS} FROM clients WHERE {' AND '.join(where)} ORDER BY name",
        params,
    )


def client_exists_for_ad_account(ad_account_id: str) -> bool:
    n = query_scalar(
        "SELECT COUNT(*) FROM clients WHERE ad_account_id = %(ad_account_id)s",
        {"ad_account_id": ad_account_id},
    )
    return bool(n)


def insert_client(r: dict) -> None:
    sql = """
    INSERT INTO clients (
        id, name, email, company, ad_account_id, meta_access_token, system_user_token,
        google_ads_customer_id, google_ads_enabled, reporting_frequency, api_status, notes,
        created_at, updated_at
    )
    VALUES (
        %(id)s, %(name)s, %(email)s, %(company)s, %(ad_account_id)s, %(meta_access_token)s,
        %(system_user_token)s, %(google_ads_customer_id)s, %(google_ads_enabled)s,
        %(reporting_frequency)s, %(api_status)s, %(notes)s,
        NOW(), NOW()
    )
    """
    execute(sql, r)


def update_api_status(client_id: Any, api_status: str) -> None:
    execute(
        """
        UPDATE clients
        SET api_status = %(api_status)s, updated_at = NOW()
        WHERE id = %(id)s
        """,
        {"id": client_id, "api_status": api_status},
    )
