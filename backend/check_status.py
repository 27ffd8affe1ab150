"""
Runs one full scan of the Blocks program and prints what it found.
"""

import asyncio

from batch_fetcher import BatchAccountFetcher, FetchProgress
from classifier import classify_accounts
from config import settings
from ledger_client import LedgerClient


async def _scan() -> int:
    async with LedgerClient(settings.rpc_url, timeout=settings.rpc_timeout_sec) as ledger:
        fetcher = BatchAccountFetcher(
            ledger,
            batch_size=settings.fetch_batch_size,
            base_delay=settings.fetch_base_delay_sec,
            max_delay=settings.fetch_max_delay_sec,
            max_retries=settings.fetch_max_retries,
        )
        progress = FetchProgress()
        pairs = [pair async for pair in fetcher.fetch_all(settings.program_id, progress)]

    result = classify_accounts(pairs)
    print(f"Network: {settings.network} ({settings.rpc_url})")
    print(f"Program: {settings.program_id}")
    print(f"Listed: {progress.listed} | fetched: {progress.fetched} | missing: {progress.missing}")
    for kind, count in result.counts().items():
        print(f"  {kind}: {count}")
    if progress.partial:
        print(f"Scan incomplete: {progress.error}")
        return 1
    return 0


def main() -> int:
    return asyncio.run(_scan())


if __name__ == "__main__":
    raise SystemExit(main())
