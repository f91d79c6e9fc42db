# scripts/refresh_smart_cache_threaded.py

import os
from concurrent.futures import ThreadPoolExecutor, as_completed

from config.config import SYNC_WORKERS
from logs.logger import logger
from db.repositories.clients_repo import list_clients
from services.smart_cache_service import refresh_cache_for_client


def _job_for_client(client: dict, platform: str, periods: list) -> dict:
    logger.info(f"🧵 Cache thread start {client['name']} platform={platform}")
    out = {"client_id": client["id"], "platform": platform, "errors": []}
    for period in periods:
        r = refresh_cache_for_client(client["id"], platform=platform, period=period)
        if r.get("error"):
            out["errors"].append(f"{period}: {r['error']}")
    logger.info(f"🧵 Cache thread done {client['name']} platform={platform} errors={len(out['errors'])}")
    return out


def main():
    platforms = [p.strip() for p in os.getenv("CACHE_PLATFORMS", "meta,google").split(",") if p.strip()]
    periods = [p.strip() for p in os.getenv("CACHE_PERIODS", "month,week").split(",") if p.strip()]

    jobs = [(c, platform) for platform in platforms for c in list_clients(platform=platform)]
    if not jobs:
        logger.warning("No clients to refresh")
        return

    logger.info(f"🚀 refresh_smart_cache_threaded starting. workers={SYNC_WORKERS} jobs={len(jobs)} periods={periods}")

    ok = 0
    failed = 0

    with ThreadPoolExecutor(max_workers=SYNC_WORKERS) as ex:
        futures = [ex.submit(_job_for_client, c, platform, periods) for c, platform in jobs]
        for f in as_completed(futures):
            try:
                result = f.result()
                if result["errors"]:
                    failed += 1
                else:
                    ok += 1
            except Exception as e:
                failed += 1
                logger.error(f"❌ Cache thread crashed: {e}")

    logger.info(f"✅ refresh_smart_cache_threaded finished. ok_threads={ok} failed_threads={failed}")


if __name__ == "__main__":
    main()
