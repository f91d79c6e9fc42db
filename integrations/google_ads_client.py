# integrations/google_ads_client.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException

from logs.logger import logger
from config import config
from services.google_ads_conversions_parser import enhance_campaign

MICROS = 1_000_000

# system_settings keys used when the env var is not set
SETTINGS_KEYS = {
    "developer_token": "google_ads_developer_token",
    "client_id": "google_ads_client_id",
    "client_secret": "google_ads_client_secret",
    "refresh_token": "google_ads_manager_refresh_token",
    "login_customer_id": "google_ads_manager_customer_id",
}

CAMPAIGN_METRICS_QUERY = """
    SELECT
      campaign.id,
      campaign.name,
      campaign.status,
      metrics.cost_micros,
      metrics.impressions,
      metrics.clicks,
      metrics.ctr,
      metrics.average_cpc,
      metrics.conversions,
      metrics.conversions_value,
      metrics.all_conversions,
      metrics.all_conversions_value
    FROM campaign
    WHERE segments.date BETWEEN '{since}' AND '{until}'
"""

CONVERSION_ROWS_QUERY = """
    SELECT
      campaign.id,
      segments.conversion_action_name,
      metrics.conversions,
      metrics.conversions_value
    FROM campaign
    WHERE segments.date BETWEEN '{since}' AND '{until}'
      AND metrics.conversions > 0
"""


DAILY_CAMPAIGN_METRICS_QUERY = """
    SELECT
      segments.date,
      campaign.id,
      campaign.name,
      campaign.status,
      metrics.cost_micros,
      metrics.impressions,
      metrics.clicks,
      metrics.ctr,
      metrics.average_cpc,
      metrics.conversions,
      metrics.conversions_value,
      metrics.all_conversions,
      metrics.all_conversions_value
    FROM campaign
    WHERE segments.date BETWEEN '{since}' AND '{until}'
"""

DAILY_CONVERSION_ROWS_QUERY = """
    SELECT
      segments.date,
      campaign.id,
      segments.conversion_action_name,
      metrics.conversions,
      metrics.conversions_value
    FROM campaign
    WHERE segments.date BETWEEN '{since}' AND '{until}'
      AND metrics.conversions > 0
"""


class GoogleAdsApiError(Exception):
    pass


class GoogleAdsAuthError(GoogleAdsApiError):
    pass


class GoogleAdsRateLimitError(GoogleAdsApiError):
    pass


def clean_customer_id(customer_id: Any) -> str:
    """'123-456-7890' -> '1234567890'"""
    return str(customer_id or "").replace("-", "").strip()


@dataclass
class GoogleAdsCredentials:
    developer_token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None
    login_customer_id: Optional[str] = None

    @classmethod
    def from_env_or_settings(cls, settings: Optional[Dict[str, Any]] = None) -> "GoogleAdsCredentials":
        """
        Env vars win; anything missing is taken from the system_settings
        key/value dict.
        """
        settings = settings or {}
        env = {
            "developer_token": config.GOOGLE_ADS_DEVELOPER_TOKEN,
            "client_id": config.GOOGLE_ADS_CLIENT_ID,
            "client_secret": config.GOOGLE_ADS_CLIENT_SECRET,
            "refresh_token": config.GOOGLE_ADS_REFRESH_TOKEN,
            "login_customer_id": config.GOOGLE_ADS_LOGIN_CUSTOMER_ID,
        }
        values = {k: v or settings.get(SETTINGS_KEYS[k]) for k, v in env.items()}
        if values["login_customer_id"]:
            values["login_customer_id"] = clean_customer_id(values["login_customer_id"])
        return cls(**values)

    def missing(self) -> List[str]:
        required = ("developer_token", "client_id", "client_secret", "refresh_token")
        return [k for k in required if not getattr(self, k)]

    def to_config_dict(self) -> Dict[str, Any]:
        out = {
            "developer_token": self.developer_token,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": self.refresh_token,
            "use_proto_plus": True,
        }
        if self.login_customer_id:
            out["login_customer_id"] = self.login_customer_id
        return out


def _handle_google_ads_exception(ex: GoogleAdsException) -> None:
    messages = []
    errors = getattr(getattr(ex, "failure", None), "errors", None) or []
    for error in errors:
        # proto str() looks like "authentication_error: OAUTH_TOKEN_EXPIRED"
        code = str(error.error_code).strip().upper()
        messages.append(f"{code}: {error.message}")
        if "AUTHENTICATION" in code or "AUTHORIZATION" in code:
            raise GoogleAdsAuthError(f"Google Ads authentication failed: {error.message}") from ex
        if "QUOTA_ERROR" in code or "RATE_EXCEEDED" in code or "RESOURCE_EXHAUSTED" in code:
            raise GoogleAdsRateLimitError(f"Google Ads rate limit exceeded: {error.message}") from ex

    full = "; ".join(messages) or str(ex)
    logger.error(f"Google Ads API error request_id={getattr(ex, 'request_id', None)}: {full}")
    raise GoogleAdsApiError(f"Google Ads API error: {full}") from ex


def _conversion_entry(row: Any) -> Dict[str, Any]:
    return {
        "conversion_name": row.segments.conversion_action_name,
        "conversions": float(row.metrics.conversions or 0),
        "conversion_value": float(row.metrics.conversions_value or 0),
    }


def _campaign_row_to_dict(row: Any) -> Dict[str, Any]:
    c = row.campaign
    m = row.metrics
    spend = (m.cost_micros or 0) / MICROS
    return {
        "campaign_id": str(c.id),
        "campaign_name": c.name,
        "status": getattr(c.status, "name", str(c.status)),
        "spend": spend,
        "impressions": int(m.impressions or 0),
        "clicks": int(m.clicks or 0),
        # ctr comes back as a fraction
        "ctr": float(m.ctr or 0) * 100,
        "cpc": (m.average_cpc or 0) / MICROS,
        "conversions": float(m.conversions or 0),
        "conversion_value": float(m.conversions_value or 0),
        "all_conversions": float(m.all_conversions or 0),
        "total_conversion_value": float(m.all_conversions_value or 0),
    }


class GoogleAdsReportingClient:
    def __init__(self, credentials: GoogleAdsCredentials):
        self.credentials = credentials
        self._client: Optional[GoogleAdsClient] = None

    def _get_client(self) -> GoogleAdsClient:
        if self._client is None:
            missing = self.credentials.missing()
            if missing:
                raise GoogleAdsAuthError(f"Google Ads credentials incomplete, missing: {', '.join(missing)}")
            try:
                self._client = GoogleAdsClient.load_from_dict(self.credentials.to_config_dict())
            except ValueError as e:
                logger.error(f"Failed to initialize Google Ads client: {e}")
                raise GoogleAdsAuthError(f"Failed to initialize Google Ads client: {e}") from e
        return self._client

    def search(self, customer_id: Any, query: str) -> List[Any]:
        client = self._get_client()
        ga_service = client.get_service("GoogleAdsService")

        request = client.get_type("SearchGoogleAdsRequest")
        request.customer_id = clean_customer_id(customer_id)
        request.query = query

        try:
            return list(ga_service.search(request=request))
        except GoogleAdsException as ex:
            _handle_google_ads_exception(ex)
            raise

    def get_campaign_metrics(self, customer_id: Any, since: str, until: str) -> List[Dict[str, Any]]:
        """
        One row per campaign for the range. Rows sharing a campaign id are
        merged in case the API splits a campaign across rows.
        """
        rows = self.search(customer_id, CAMPAIGN_METRICS_QUERY.format(since=since, until=until))
        by_id: Dict[str, Dict[str, Any]] = {}
        for row in rows:
            r = _campaign_row_to_dict(row)
            cur = by_id.get(r["campaign_id"])
            if cur is None:
                by_id[r["campaign_id"]] = r
                continue
            for k in ("spend", "impressions", "clicks", "conversions", "conversion_value",
                      "all_conversions", "total_conversion_value"):
                cur[k] += r[k]

        out = list(by_id.values())
        for r in out:
            r["ctr"] = (r["clicks"] / r["impressions"] * 100) if r["impressions"] else 0.0
            r["cpc"] = (r["spend"] / r["clicks"]) if r["clicks"] else 0.0
        logger.info(f"Google Ads campaigns customer={clean_customer_id(customer_id)} {since}..{until} campaigns={len(out)}")
        return out

    def get_conversion_rows(self, customer_id: Any, since: str, until: str) -> Dict[str, List[Dict[str, Any]]]:
        """campaign_id -> [{conversion_name, conversions, conversion_value}]"""
        rows = self.search(customer_id, CONVERSION_ROWS_QUERY.format(since=since, until=until))
        out: Dict[str, List[Dict[str, Any]]] = {}
        for row in rows:
            out.setdefault(str(row.campaign.id), []).append(_conversion_entry(row))
        return out

    def get_campaign_data(self, customer_id: Any, since: str, until: str) -> List[Dict[str, Any]]:
        campaigns = self.get_campaign_metrics(customer_id, since, until)
        breakdown = self.get_conversion_rows(customer_id, since, until)
        out = []
        for c in campaigns:
            c["conversions_breakdown"] = breakdown.get(c["campaign_id"], [])
            out.append(enhance_campaign(c))
        return out

    def get_daily_campaign_data(self, customer_id: Any, since: str, until: str) -> Dict[str, List[Dict[str, Any]]]:
        """date -> enhanced campaigns for that day, conversions matched per day"""
        breakdown: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
        for row in self.search(customer_id, DAILY_CONVERSION_ROWS_QUERY.format(since=since, until=until)):
            breakdown.setdefault((row.segments.date, str(row.campaign.id)), []).append(_conversion_entry(row))

        out: Dict[str, List[Dict[str, Any]]] = {}
        for row in self.search(customer_id, DAILY_CAMPAIGN_METRICS_QUERY.format(since=since, until=until)):
            c = _campaign_row_to_dict(row)
            day = row.segments.date
            c["date"] = day
            c["conversions_breakdown"] = breakdown.get((day, c["campaign_id"]), [])
            out.setdefault(day, []).append(enhance_campaign(c))

        logger.info(f"Google Ads daily customer={clean_customer_id(customer_id)} {since}..{until} days={len(out)}")
        return out
