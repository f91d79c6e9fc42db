# services/onboarding_service.py
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from db.repositories.clients_repo import client_exists_for_ad_account, insert_client
from integrations.meta_graph_client import MetaApiError, MetaGraphClient, normalize_ad_account_id
from logs.logger import logger
from services.token_audit_service import classify_meta_token


@dataclass
class ClientSeed:
    name: str
    ad_account_id: str
    meta_token: Optional[str] = None
    business_manager_id: Optional[str] = None
    email: Optional[str] = None
    api_id: Optional[str] = None
    google_ads_customer_id: Optional[str] = None
    reporting_frequency: str = "monthly"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ClientSeed":
        # accepts both snake_case and the spreadsheet export's camelCase
        return cls(
            name=d["name"],
            ad_account_id=normalize_ad_account_id(d.get("ad_account_id") or d.get("adAccountId")),
            meta_token=d.get("meta_token") or d.get("metaToken"),
            business_manager_id=d.get("business_manager_id") or d.get("businessManagerId"),
            email=d.get("email"),
            api_id=d.get("api_id") or d.get("apiId"),
            google_ads_customer_id=d.get("google_ads_customer_id") or d.get("googleAdsCustomerId"),
            reporting_frequency=d.get("reporting_frequency") or "monthly",
        )

    def notes(self) -> str:
        parts = ["Added from batch import."]
        if self.business_manager_id:
            parts.append(f"Business Manager ID: {self.business_manager_id}")
        if self.api_id:
            parts.append(f"API ID: {self.api_id}")
        return " ".join(parts)


def load_client_seeds(path: str) -> List[ClientSeed]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of clients")
    return [ClientSeed.from_dict(d) for d in data]


def onboard_client(
    seed: ClientSeed,
    client_factory: Callable[[str], MetaGraphClient] = MetaGraphClient,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {"name": seed.name, "ad_account_id": seed.ad_account_id, "status": None, "reason": None}

    if not seed.meta_token:
        out.update(status="skipped", reason="No Meta token provided")
        logger.info(f"⏭️ {seed.name}: no Meta token, skipping")
        return out

    if client_exists_for_ad_account(seed.ad_account_id):
        out.update(status="skipped", reason="Client with this ad account already exists")
        logger.info(f"⏭️ {seed.name}: act_{seed.ad_account_id} already onboarded")
        return out

    graph = client_factory(seed.meta_token)

    api_status = "valid"
    try:
        account = graph.get_account_info(seed.ad_account_id)
        logger.info(f"🔑 {seed.name}: access ok account={account.get('name')} currency={account.get('currency')}")
    except MetaApiError as e:
        api_status = "invalid"
        out["reason"] = f"Token validation failed: {e}"
        logger.warning(f"⚠️ {seed.name}: {out['reason']}")

    token_type = None
    try:
        token_type = classify_meta_token(graph.debug_token(seed.meta_token))["type"]
    except MetaApiError as e:
        logger.warning(f"⚠️ {seed.name}: debug_token failed: {e}")

    is_system_user = token_type == "SYSTEM_USER"
    client_id = str(uuid.uuid4())
    insert_client({
        "id": client_id,
        "name": seed.name,
        "email": seed.email,
        "company": seed.name,
        "ad_account_id": seed.ad_account_id,
        "meta_access_token": "" if is_system_user else seed.meta_token,
        "system_user_token": seed.meta_token if is_system_user else "",
        "google_ads_customer_id": seed.google_ads_customer_id,
        "google_ads_enabled": 1 if seed.google_ads_customer_id else 0,
        "reporting_frequency": seed.reporting_frequency,
        "api_status": api_status,
        "notes": seed.notes(),
    })

    out.update(status="added", client_id=client_id, api_status=api_status, token_type=token_type)
    logger.info(f"✅ {seed.name}: added id={client_id} api_status={api_status} token={token_type}")
    return out


def onboard_clients(
    seeds: List[ClientSeed],
    client_factory: Callable[[str], MetaGraphClient] = MetaGraphClient,
) -> Dict[str, Any]:
    results = []
    for seed in seeds:
        try:
            results.append(onboard_client(seed, client_factory=client_factory))
        except Exception as e:
            logger.error(f"❌ {seed.name}: {e}")
            results.append({"name": seed.name, "ad_account_id": seed.ad_account_id, "status": "failed", "reason": str(e)})

    return {
        "results": results,
        "added": sum(1 for r in results if r["status"] == "added"),
        "skipped": sum(1 for r in results if r["status"] == "skipped"),
        "failed": sum(1 for r in results if r["status"] == "failed"),
        "invalid_tokens": sum(1 for r in results if r.get("api_status") == "invalid"),
    }
