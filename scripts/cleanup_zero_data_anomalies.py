# scripts/cleanup_zero_data_anomalies.py

import os

from logs.logger import logger
from services.data_quality_service import CLEANUP_MODES, cleanup_zero_data, find_zero_data_records


def main():
    mode = os.getenv("CLEANUP_MODE", "analyze")
    if mode not in CLEANUP_MODES:
        print(f"❌ CLEANUP_MODE must be one of {', '.join(CLEANUP_MODES)}")
        return

    records = find_zero_data_records()
    logger.info(f"🚀 cleanup_zero_data_anomalies mode={mode} records={len(records)}")

    result = cleanup_zero_data(records, mode=mode)
    summary = result["summary"]

    for row in summary["by_client"]:
        logger.info(
            f"   {row['name']:<35} total={row['total']} meta={row.get('meta', 0)} google={row.get('google', 0)} "
            f"monthly={row.get('monthly', 0)} weekly={row.get('weekly', 0)}"
        )
    for month, count in summary["by_month"].items():
        logger.info(f"   {month}: {count}")

    logger.info(
        f"✅ cleanup_zero_data_anomalies finished. total={summary['total']} "
        f"deleted={result['deleted']} marked={result['marked']}"
    )


if __name__ == "__main__":
    main()
