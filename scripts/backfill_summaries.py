# scripts/backfill_summaries.py

import os
from concurrent.futures import ThreadPoolExecutor, as_completed

from config.config import SYNC_WORKERS
from logs.logger import logger
from db.repositories.clients_repo import list_clients
from services.backfill_service import backfill_client, periods_for


def main():
    platform = os.getenv("BACKFILL_PLATFORM", "meta")
    summary_type = os.getenv("BACKFILL_SUMMARY_TYPE", "monthly")
    start = os.getenv("BACKFILL_START")
    end = os.getenv("BACKFILL_END")
    dry_run = os.getenv("BACKFILL_DRY_RUN", "1") != "0"
    only_broken = os.getenv("BACKFILL_ONLY_BROKEN", "1") != "0"
    name_like = os.getenv("BACKFILL_CLIENT")

    if not start or not end:
        print("❌ BACKFILL_START and BACKFILL_END (YYYY-MM-DD) are required.")
        return

    clients = list_clients(platform=platform, name_like=name_like)
    if not clients:
        logger.warning(f"No {platform} clients found")
        return

    periods = periods_for(summary_type, start, end)
    logger.info(
        f"🚀 backfill_summaries starting. workers={SYNC_WORKERS} platform={platform} type={summary_type} "
        f"periods={len(periods)} clients={len(clients)} dry_run={dry_run} only_broken={only_broken}"
    )

    fixed = skipped = failed = 0

    with ThreadPoolExecutor(max_workers=SYNC_WORKERS) as ex:
        futures = [
            ex.submit(backfill_client, c, platform, periods, summary_type, dry_run, only_broken)
            for c in clients
        ]
        for f in as_completed(futures):
            try:
                result = f.result()
                fixed += result["fixed"]
                skipped += result["skipped"]
                failed += result["failed"]
                logger.info(
                    f"🧵 {result['client_name']}: fixed={result['fixed']} skipped={result['skipped']} failed={result['failed']}"
                )
            except Exception as e:
                failed += 1
                logger.error(f"❌ Backfill thread crashed: {e}")

    logger.info(f"✅ backfill_summaries finished. fixed={fixed} skipped={skipped} failed={failed} dry_run={dry_run}")


if __name__ == "__main__":
    main()
