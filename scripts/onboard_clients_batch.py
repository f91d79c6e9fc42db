# scripts/onboard_clients_batch.py

import os

from logs.logger import logger
from services.onboarding_service import load_client_seeds, onboard_clients


def main():
    path = os.getenv("CLIENTS_FILE")
    if not path:
        print("❌ CLIENTS_FILE is missing. Point it at a JSON list of clients.")
        return

    seeds = load_client_seeds(path)
    logger.info(f"🚀 onboard_clients_batch starting. clients={len(seeds)} file={path}")

    result = onboard_clients(seeds)

    for r in result["results"]:
        if r["status"] != "added":
            logger.info(f"   {r['status']:<8} {r['name']}: {r.get('reason')}")

    logger.info(
        f"✅ onboard_clients_batch finished. added={result['added']} skipped={result['skipped']} "
        f"failed={result['failed']} invalid_tokens={result['invalid_tokens']}"
    )


if __name__ == "__main__":
    main()
