# integrations/meta_graph_client.py
import time
from typing import Any, Dict, Generator, List, Optional

import requests

from logs.logger import logger
from config.config import META_GRAPH_VERSION


class MetaApiError(Exception):
    """Any Graph API error that has no more specific class."""

    def __init__(self, message: str, code: Optional[int] = None, subcode: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.subcode = subcode


class MetaObjectAccessError(MetaApiError):
    """
    Raised when Meta API returns:
    code=100 & error_subcode=33
    (Object does not exist or no permission)
    """


class MetaPermissionError(MetaApiError):
    """Missing ads_read / ads_management permissions"""


class MetaRateLimitError(MetaApiError):
    """User request limit reached / throttling"""


class MetaTokenError(MetaApiError):
    """code=190: token invalid, expired or revoked. Retrying never helps."""


# errors that are final for this request
_NO_RETRY = (MetaObjectAccessError, MetaPermissionError, MetaTokenError)

INSIGHTS_FIELDS = ",".join([
    "campaign_id",
    "campaign_name",
    "spend",
    "impressions",
    "clicks",
    "ctr",
    "cpc",
    "cpm",
    "cpp",
    "reach",
    "frequency",
    "conversions",
    "actions",
    "action_values",
    "cost_per_action_type",
])

ACCOUNT_FIELDS = "id,name,account_status,currency,timezone_name,spend_cap"


def normalize_ad_account_id(ad_account_id: Any) -> str:
    """'act_123' / 123 / ' 123 ' -> '123'"""
    s = str(ad_account_id or "").strip()
    if s.startswith("act_"):
        s = s[4:]
    return s


class MetaGraphClient:
    BASE_URL = f"https://graph.facebook.com/{META_GRAPH_VERSION}"

    def __init__(
        self,
        access_token: str,
        timeout: int = 30,
        max_retries: int = 3,
        retry_delay: int = 5,
    ):
        self.access_token = access_token
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    # -------------------------
    # internal helpers
    # -------------------------
    def _safe_json(self, r: requests.Response, url: str) -> Dict[str, Any]:
        """
        Meta sometimes returns non-JSON (proxy/html) or empty body.
        """
        try:
            return r.json()
        except ValueError:
            txt = (r.text or "").strip()
            logger.error(f"Meta API non-JSON response status={r.status_code} url={url} body_snip={txt[:200]}")
            raise MetaApiError("Meta API returned non-JSON response")

    def _sleep_backoff(self, attempt: int, url: str) -> None:
        sleep_s = self.retry_delay * (attempt + 1)
        logger.warning(f"Rate limit / retry. sleeping={sleep_s}s url={url}")
        time.sleep(sleep_s)

    def _request(self, url: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        One logical GET with retries. Rate limits back off linearly,
        timeouts and transient errors wait retry_delay, final errors raise at once.
        """
        attempt = 0
        while True:
            try:
                r = requests.get(url, params=params, timeout=self.timeout)
                data = self._safe_json(r, url)
                if r.status_code != 200 or "error" in data:
                    self._handle_meta_error(data)
                return data

            except _NO_RETRY:
                raise

            except MetaRateLimitError:
                attempt += 1
                if attempt >= self.max_retries:
                    raise
                self._sleep_backoff(attempt - 1, url)

            except requests.exceptions.Timeout:
                attempt += 1
                logger.warning(f"Meta API timeout attempt={attempt} url={url}")
                if attempt >= self.max_retries:
                    raise
                time.sleep(self.retry_delay)

            except (requests.exceptions.RequestException, MetaApiError) as e:
                attempt += 1
                logger.error(f"Meta API error attempt={attempt} url={url}: {e}")
                if attempt >= self.max_retries:
                    raise
                time.sleep(self.retry_delay)

    # -------------------------
    # public methods
    # -------------------------
    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Simple GET to a single endpoint (returns dict).
        """
        url = f"{self.BASE_URL}/{endpoint.lstrip('/')}"
        params = dict(params or {})
        params.setdefault("access_token", self.access_token)
        return self._request(url, params)

    def get_paged(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Generator[Dict[str, Any], None, None]:
        """
        Generator that yields items from a paged endpoint.
        """
        next_url: Optional[str] = f"{self.BASE_URL}/{endpoint.lstrip('/')}"
        next_params: Optional[Dict[str, Any]] = dict(params or {})
        next_params["access_token"] = self.access_token

        while next_url:
            data = self._request(next_url, next_params)
            for item in data.get("data", []):
                yield item
            next_url = data.get("paging", {}).get("next")
            next_params = None  # next already contains params

    def get_campaign_insights(
        self,
        ad_account_id: Any,
        since: str,
        until: str,
        time_increment: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Campaign-level insights for [since, until].
        Without time_increment Meta returns one row per campaign for the whole range.
        """
        act = f"act_{normalize_ad_account_id(ad_account_id)}"
        params: Dict[str, Any] = {
            "level": "campaign",
            "fields": INSIGHTS_FIELDS,
            "time_range[since]": since,
            "time_range[until]": until,
            "limit": 500,
        }
        if time_increment:
            params["time_increment"] = time_increment

        rows = list(self.get_paged(f"{act}/insights", params=params))
        logger.info(f"Meta insights {act} {since}..{until} campaigns={len(rows)}")
        return rows

    def get_account_info(self, ad_account_id: Any) -> Dict[str, Any]:
        act = f"act_{normalize_ad_account_id(ad_account_id)}"
        return self.get(act, params={"fields": ACCOUNT_FIELDS})

    def debug_token(self, input_token: Optional[str] = None, app_token: Optional[str] = None) -> Dict[str, Any]:
        """
        /debug_token inspection. Without app_token the token inspects itself,
        which Meta allows for user and system-user tokens.
        """
        token = input_token or self.access_token
        data = self.get(
            "debug_token",
            params={"input_token": token, "access_token": app_token or self.access_token},
        )
        return data.get("data", {})

    # -------------------------
    # error handling
    # -------------------------
    def _handle_meta_error(self, err: dict) -> None:
        error = (err or {}).get("error", {})
        code = error.get("code")
        subcode = error.get("error_subcode")
        message = error.get("message", "Unknown Meta API error")

        # Object not accessible
        if code == 100 and subcode == 33:
            raise MetaObjectAccessError(message, code, subcode)

        if code == 190:
            raise MetaTokenError(message, code, subcode)

        # Missing permissions
        if code == 200:
            raise MetaPermissionError(message, code, subcode)

        # Rate limit / throttling: 4 app limit, 17 / 80004 user and ad-account limits
        if code in (17, 4, 80004):
            raise MetaRateLimitError(message, code, subcode)

        raise MetaApiError(message, code, subcode)
