# services/token_audit_service.py
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests

from integrations.meta_graph_client import MetaApiError, MetaGraphClient, MetaTokenError
from logs.logger import logger
from services.live_data_service import resolve_meta_token
from utils.datetime_utils import utc_now

_PROD_22 = re.compile(r"^[A-Za-z0-9_-]{22}$")
_PROD_PREFIXED = re.compile(r"^[A-Za-z]{2,4}[A-Za-z0-9_-]{18,20}$")

REQUIRED_SCOPES = ("ads_read",)
LONG_LIVED_DAYS = 7

PRODUCTION_TOKEN_STEPS = [
    "Apply for production developer token in Google Ads API Center",
    "Wait 24-48 hours for Google approval",
    "Replace test token with approved production token",
    "Test integration with real client data",
]


def analyze_developer_token(token: Optional[str]) -> Dict[str, Any]:
    """
    Google Ads developer tokens carry no explicit type, so this is a
    best guess from the token's shape.
    """
    out: Dict[str, Any] = {
        "token_type": "unknown",
        "is_test_token": False,
        "is_production_token": False,
        "confidence": "unknown",
        "indicators": [],
        "needs_production_token": False,
        "action_required": [],
    }
    if not token:
        out["token_type"] = "missing"
        out["indicators"].append("No developer token configured")
        return out

    if "test" in token or "TEST" in token:
        out["is_test_token"] = True
        out["confidence"] = "high"
        out["indicators"].append('Contains "test" in token string')

    if token.startswith("TEST_") or token.endswith("_TEST"):
        out["is_test_token"] = True
        out["confidence"] = "high"
        out["indicators"].append("Follows test token naming convention")

    if not out["is_test_token"]:
        if _PROD_22.match(token):
            out["is_production_token"] = True
            out["confidence"] = "medium"
            out["indicators"].append("Matches production token format (22 chars, alphanumeric)")
        if _PROD_PREFIXED.match(token):
            out["is_production_token"] = True
            out["confidence"] = "high"
            out["indicators"].append("Matches typical production token pattern")

    if out["is_test_token"]:
        out["token_type"] = "test"
        out["needs_production_token"] = True
        out["action_required"] = list(PRODUCTION_TOKEN_STEPS)
    elif out["is_production_token"]:
        out["token_type"] = "production"

    return out


def classify_meta_token(debug_data: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Summarise a /debug_token payload."""
    now = now or utc_now()
    expires_at = int(debug_data.get("expires_at") or 0)
    scopes = list(debug_data.get("scopes") or [])

    days_remaining: Optional[float] = None
    if expires_at:
        expires = datetime.fromtimestamp(expires_at, tz=timezone.utc)
        days_remaining = (expires - now).total_seconds() / 86400

    is_permanent = expires_at == 0
    return {
        "type": debug_data.get("type") or "UNKNOWN",
        "app_id": debug_data.get("app_id"),
        "is_valid": bool(debug_data.get("is_valid")),
        "expires_at": expires_at,
        "is_permanent": is_permanent,
        "is_long_lived": is_permanent or (days_remaining is not None and days_remaining > LONG_LIVED_DAYS),
        "days_remaining": round(days_remaining, 1) if days_remaining is not None else None,
        "scopes": scopes,
        "missing_scopes": [s for s in REQUIRED_SCOPES if s not in scopes],
    }


def _token_source(client: Dict[str, Any]) -> str:
    if client.get("system_user_token"):
        return "system_user"
    if client.get("meta_access_token"):
        return "client"
    return "env"


def audit_client_tokens(
    clients: List[Dict[str, Any]],
    client_factory: Callable[[str], MetaGraphClient] = MetaGraphClient,
) -> List[Dict[str, Any]]:
    results = []
    for client in clients:
        row: Dict[str, Any] = {
            "client_id": client.get("id"),
            "name": client.get("name"),
            "token_source": None,
            "token": None,
            "needs_attention": True,
            # api_status to write back; None leaves the stored value alone
            "status": None,
            "error": None,
        }
        try:
            token = resolve_meta_token(client)
            row["token_source"] = _token_source(client)
            info = classify_meta_token(client_factory(token).debug_token(token))
            row["token"] = info
            row["needs_attention"] = not info["is_valid"] or not info["is_long_lived"] or bool(info["missing_scopes"])
            row["status"] = "valid" if info["is_valid"] else "invalid"
        except MetaTokenError as e:
            row["error"] = str(e)
            row["status"] = "invalid"
        except (ValueError, MetaApiError, requests.exceptions.RequestException) as e:
            # token state unknown, status stays None
            row["error"] = str(e)

        if row["error"]:
            logger.error(f"❌ Token audit {row['name']}: {row['error']}")
        elif row["needs_attention"]:
            logger.warning(f"⚠️ Token audit {row['name']}: {row['token']}")
        else:
            logger.info(f"✅ Token audit {row['name']}: {row['token']['type']} permanent={row['token']['is_permanent']}")
        results.append(row)
    return results
