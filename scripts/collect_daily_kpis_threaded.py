# scripts/collect_daily_kpis_threaded.py

import os
from concurrent.futures import ThreadPoolExecutor, as_completed

from config.config import SYNC_WORKERS
from logs.logger import logger
from db.repositories.clients_repo import list_clients
from services.daily_kpi_service import collect_daily_kpis, collection_window


def main():
    platforms = [p.strip() for p in os.getenv("DAILY_PLATFORMS", "meta,google").split(",") if p.strip()]
    start = os.getenv("DAILY_START")
    end = os.getenv("DAILY_END")
    dry_run = os.getenv("DAILY_DRY_RUN", "0") != "0"
    name_like = os.getenv("DAILY_CLIENT")

    if bool(start) != bool(end):
        print("❌ Set both DAILY_START and DAILY_END (YYYY-MM-DD), or neither to use DAILY_DAYS.")
        return
    if not start:
        start, end = collection_window(int(os.getenv("DAILY_DAYS", "1")))

    jobs = [(c, platform) for platform in platforms for c in list_clients(platform=platform, name_like=name_like)]
    if not jobs:
        logger.warning("No clients to collect")
        return

    logger.info(
        f"🚀 collect_daily_kpis_threaded starting. workers={SYNC_WORKERS} jobs={len(jobs)} "
        f"range={start}..{end} dry_run={dry_run}"
    )

    ok = 0
    failed = 0
    days = 0

    with ThreadPoolExecutor(max_workers=SYNC_WORKERS) as ex:
        futures = [ex.submit(collect_daily_kpis, c, platform, start, end, dry_run) for c, platform in jobs]
        for f in as_completed(futures):
            try:
                result = f.result()
                if result["error"]:
                    failed += 1
                else:
                    ok += 1
                    days += result["days"]
            except Exception as e:
                failed += 1
                logger.error(f"❌ Daily KPI thread crashed: {e}")

    logger.info(f"✅ collect_daily_kpis_threaded finished. ok={ok} failed={failed} days={days} dry_run={dry_run}")


if __name__ == "__main__":
    main()
