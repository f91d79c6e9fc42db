# scripts/audit_tokens.py

import json
import os

from logs.logger import logger
from db.repositories.clients_repo import list_clients, update_api_status
from db.repositories.system_settings_repo import get_settings
from integrations.google_ads_client import SETTINGS_KEYS, GoogleAdsCredentials
from services.token_audit_service import analyze_developer_token, audit_client_tokens
from utils.datetime_utils import utc_now


def main():
    output = os.getenv("AUDIT_OUTPUT")
    update_status = os.getenv("AUDIT_UPDATE_STATUS", "0") == "1"

    creds = GoogleAdsCredentials.from_env_or_settings(get_settings(SETTINGS_KEYS.values()))
    dev = analyze_developer_token(creds.developer_token)
    logger.info(f"🔑 Google Ads developer token: {dev['token_type']} confidence={dev['confidence']}")
    for i in dev["indicators"]:
        logger.info(f"   - {i}")
    for step in dev["action_required"]:
        logger.warning(f"   ➡️ {step}")

    clients = list_clients(platform="meta")
    meta = audit_client_tokens(clients)
    attention = [r for r in meta if r["needs_attention"]]

    if update_status:
        updated = [r for r in meta if r["status"]]
        for r in updated:
            update_api_status(r["client_id"], r["status"])
        logger.info(f"🏷️ api_status updated for {len(updated)}/{len(meta)} clients")

    logger.info(f"✅ audit_tokens finished. meta_clients={len(meta)} needs_attention={len(attention)}")

    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(
                {"timestamp": utc_now().isoformat(), "developer_token": dev, "meta_tokens": meta},
                f,
                indent=2,
                default=str,
            )
        logger.info(f"💾 Results written to {output}")


if __name__ == "__main__":
    main()
