#!/usr/bin/env python3
"""
Evict expired sticker-set archives from the cache and list what remains.

Usage:
  .venv/bin/python scripts/sweep_cache.py [--cache-dir data/cache] [--max-age-days 7] [--dry-run]

Notes:
- Uses the same index and locking as the API, so it is safe to run while the
  server is up.
- --dry-run only prints the entries that would be evicted.
"""
from __future__ import annotations

import argparse
import time
from datetime import datetime

from app.core.config import settings
from app.infrastructure.adapters.cache_store_json import JsonCacheStore


def main() -> int:
    parser = argparse.ArgumentParser(description="Sweep expired sticker-set archives")
    parser.add_argument("--cache-dir", type=str, default=settings.cache_dir)
    parser.add_argument(
        "--max-age-days", type=float, default=float(settings.cache_max_age_days)
    )
    parser.add_argument("--dry-run", action="store_true", help="Only list expired entries")
    args = parser.parse_args()

    store = JsonCacheStore(args.cache_dir)
    max_age = args.max_age_days * 86400
    now = time.time()

    if args.dry_run:
        expired = [e for e in store.entries() if now - e.timestamp > max_age]
        for entry in expired:
            print(f"expired,{entry.name},{datetime.fromtimestamp(entry.timestamp).isoformat()}")
        print(f"{len(expired)} of {len(store.entries())} entries would be evicted")
        return 0

    evicted = store.sweep(max_age, now=now)
    print(f"Evicted {evicted} entries; {len(store.entries())} remain")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
