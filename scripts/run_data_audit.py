# scripts/run_data_audit.py

import os
from concurrent.futures import ThreadPoolExecutor, as_completed

from config.config import SYNC_WORKERS
from logs.logger import logger
from db.repositories.clients_repo import list_clients
from services.backfill_service import periods_for
from services.reconciliation_service import audit_clients
from utils.datetime_utils import utc_now


def _job_for_client(client: dict, periods: list, platform: str, summary_type: str, include_live: bool) -> dict:
    logger.info(f"🧵 Audit thread start {client['name']} platform={platform} periods={len(periods)}")
    result = audit_clients([client], periods, platform=platform, summary_type=summary_type, include_live=include_live)
    logger.info(
        f"🧵 Audit thread done {client['name']} matched={result['matched']}/{result['checked']} "
        f"failures={len(result['failures'])}"
    )
    return result


def main():
    platform = os.getenv("AUDIT_PLATFORM", "meta")
    summary_type = os.getenv("AUDIT_SUMMARY_TYPE", "monthly")
    start = os.getenv("AUDIT_START") or f"{utc_now().year}-01-01"
    end = os.getenv("AUDIT_END") or utc_now().date().isoformat()
    include_live = os.getenv("AUDIT_INCLUDE_LIVE", "1") != "0"
    name_like = os.getenv("AUDIT_CLIENT")

    clients = list_clients(platform=platform, name_like=name_like)
    if not clients:
        logger.warning(f"No {platform} clients found")
        return

    periods = periods_for(summary_type, start, end)
    logger.info(
        f"🚀 run_data_audit starting. workers={SYNC_WORKERS} platform={platform} type={summary_type} "
        f"{start}..{end} clients={len(clients)} live={include_live}"
    )

    checked = matched = 0
    mismatched_reports = []
    crashed = 0

    with ThreadPoolExecutor(max_workers=SYNC_WORKERS) as ex:
        futures = [
            ex.submit(_job_for_client, c, periods, platform, summary_type, include_live)
            for c in clients
        ]
        for f in as_completed(futures):
            try:
                result = f.result()
                checked += result["checked"]
                matched += result["matched"]
                mismatched_reports.extend(r for r in result["reports"] if not r.all_match)
            except Exception as e:
                crashed += 1
                logger.error(f"❌ Audit thread crashed: {e}")

    for r in mismatched_reports:
        for tier, c in r.mismatches():
            logger.warning(
                f"   ❌ {r.client_name} {r.start_date} {tier}.{c.metric}: "
                f"{r.reference}={c.left:.2f} {tier}={c.right:.2f} ({c.percent_diff:.2f}%)"
            )
        for name, check in r.critical_checks.items():
            if not check["passed"]:
                logger.warning(f"   🚨 {r.client_name} {r.start_date} {name}: {check['message']}")

    logger.info(f"✅ run_data_audit finished. checked={checked} matched={matched} crashed_threads={crashed}")


if __name__ == "__main__":
    main()
