"""Small script to see which provider the fallback chain selects.

Usage (from repo root):
  set -o allexport; source .env; set +o allexport
  PYTHONPATH=. .venv/bin/python scripts/probe_providers.py [query]

This script will NOT print your API key. It initializes the manager, prints
the outcome of every provider attempt, writes and reads back a probe file,
and optionally runs a search.
"""
from __future__ import annotations

import asyncio
import sys
from datetime import datetime

from hybridfs.config import settings
from hybridfs.file_access.manager import create_manager
from hybridfs.search.aggregator import SearchAggregator


async def main(query: str | None) -> None:
    print("Provider probe starting...")
    print(f"Remote API key configured: {bool(settings.WORKSPACE_API_KEY)}")
    print(f"Runtime root: {settings.RUNTIME_ROOT or '(none)'}")

    async with create_manager(settings) as manager:
        for attempt in manager.status.attempts:
            suffix = f" ({attempt.error})" if attempt.error else ""
            print(f"  {attempt.provider.value}: {attempt.outcome}{suffix}")
        print(f"Active provider: {manager.provider.value}")

        ts = datetime.utcnow().strftime("%Y%m%dT%H%M%SZ")
        path = f"/hybridfs_probe_{ts}.txt"
        content = f"hybridfs probe {ts}\n"
        try:
            await manager.write_file(path, content)
            read = await manager.read_file(path)
            print("Round-trip content verified - OK" if read == content else "Content mismatch")
        except Exception as e:
            print("Round-trip failed:", str(e))
        finally:
            if await manager.exists(path):
                await manager.delete_file(path)

        print(f"Health check: {'healthy' if await manager.health_check() else 'unhealthy'}")

        if query:
            def on_batch(file_path, matches):
                for m in matches:
                    print(f"  {file_path}:{m.line_number}: {m.preview_text.strip()}")

            total = await SearchAggregator(manager).search(query, on_batch=on_batch)
            print(f"{total} matches for '{query}'")


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
