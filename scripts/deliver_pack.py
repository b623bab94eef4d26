#!/usr/bin/env python3
"""
Deliver one sticker set to a chat from the command line, bypassing the API.

Usage:
  .venv/bin/python scripts/deliver_pack.py <sticker_set_name> <chat_id> [--caption TEXT]

Requires BOT_TOKEN (env or .env). Prints the delivery result as JSON and exits
non-zero when the pack was neither sent nor linked.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging

from app.core.config import settings
from app.application.use_cases.pack_deliver import DeliverStickerPackUseCase
from app.infrastructure.adapters import JsonCacheStore, JsonUsageRecorder
from app.infrastructure.adapters.bundles.pack import get_pack_adapter_bundle


async def run(name: str, chat_id: str, caption: str | None) -> int:
    use_case = DeliverStickerPackUseCase(
        cache=JsonCacheStore(),
        usage=JsonUsageRecorder(),
        adapters_factory=get_pack_adapter_bundle,
    )
    result = await use_case.execute(name, chat_id, caption=caption)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0 if result.ok else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Deliver a sticker set as a zip archive")
    parser.add_argument("name", type=str, help="Sticker set name")
    parser.add_argument("chat_id", type=str, help="Destination chat id")
    parser.add_argument("--caption", type=str, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level.upper(), format=settings.log_format)
    return asyncio.run(run(args.name, args.chat_id, args.caption))


if __name__ == "__main__":
    raise SystemExit(main())
