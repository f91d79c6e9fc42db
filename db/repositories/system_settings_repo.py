# db/repositories/system_settings_repo.py
from __future__ import annotations

from typing import Dict, Iterable

from db.db import query_dict


def get_settings(keys: Iterable[str]) -> Dict[str, str]:
    keys = list(keys)
    if not keys:
        return {}
    params = {f"k{n}": k for n, k in enumerate(keys)}
    placeholders = ", ".join(f"%({k})s" for k in params)
    rows = query_dict(
        f"SELECT `key`, `value` FROM system_settings WHERE `key` IN ({placeholders})",
        params,
    )
    return {r["key"]: r["value"] for r in rows}
