# scripts/check_weekly_duplicates.py

import os

from logs.logger import logger
from db.repositories.clients_repo import list_clients
from services.data_quality_service import check_weekly_summaries


def main():
    name_like = os.getenv("CHECK_CLIENT")
    clients = list_clients(name_like=name_like)
    if not clients:
        logger.warning(f"No clients found (filter={name_like})")
        return

    dirty = 0
    for c in clients:
        report = check_weekly_summaries(c["id"])
        if report["ok"]:
            continue
        dirty += 1
        for d in report["duplicates"][:10]:
            logger.warning(f"   📅 {c['name']} {d['summary_date']} ({d['platform']}): {d['count']} records")
        for r in report["non_monday"][:10]:
            logger.warning(f"   📅 {c['name']} {r['summary_date']} ({r.get('platform')}) does not start on Monday")
        for r in report["empty"][:10]:
            logger.warning(f"   📦 {c['name']} {r['summary_date']} ({r.get('platform')}) has no data")

    logger.info(f"✅ check_weekly_duplicates finished. clients={len(clients)} with_issues={dirty}")


if __name__ == "__main__":
    main()
