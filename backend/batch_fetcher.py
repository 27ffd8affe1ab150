"""
Batched scan of every account owned by the Blocks program.

The scan lists addresses first (no data), then pulls data in bounded
``getMultipleAccounts`` batches. Rate-limit responses double the pacing delay
up to a ceiling and the call is retried; a success drops the delay back to the
base. Partial results always win over no results: a batch that cannot be
fetched ends or skips that part of the scan instead of failing it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Hashable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from classifier import ScanResult, classify
from errors import LedgerError, RateLimited
from ledger_client import LedgerClient
from telemetry import append_ledger_telemetry

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class Backoff:
    """Pacing delay that doubles per rate-limit hit and resets on success."""

    def __init__(self, base: float, ceiling: float):
        self.base = max(0.0, base)
        self.ceiling = max(self.base, ceiling)
        self.current = self.base

    def escalate(self, hint: Optional[float] = None) -> float:
        doubled = self.current * 2 if self.current > 0 else self.ceiling
        self.current = min(self.ceiling, max(doubled, hint or 0.0))
        return self.current

    def reset(self) -> None:
        self.current = self.base


@dataclass
class FetchProgress:
    listed: int = 0
    fetched: int = 0
    missing: int = 0
    batches: int = 0
    rate_limited: int = 0
    partial: bool = False
    error: Optional[str] = None


class BatchAccountFetcher:
    def __init__(
        self,
        ledger: LedgerClient,
        batch_size: int = 100,
        base_delay: float = 0.2,
        max_delay: float = 2.0,
        max_retries: int = 4,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.ledger = ledger
        self.batch_size = max(1, min(100, batch_size))
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_retries = max(0, max_retries)
        self._sleep = sleep

    def new_backoff(self) -> Backoff:
        return Backoff(self.base_delay, self.max_delay)

    async def call_with_backoff(
        self,
        backoff: Backoff,
        label: str,
        fn: Callable[..., Awaitable[R]],
        *args: Any,
        progress: Optional[FetchProgress] = None,
    ) -> R:
        """Await ``fn(*args)``, retrying on RateLimited up to ``max_retries``."""
        attempt = 0
        while True:
            try:
                result = await fn(*args)
            except RateLimited as exc:
                if progress is not None:
                    progress.rate_limited += 1
                if attempt >= self.max_retries:
                    append_ledger_telemetry("rate_limit_exhausted", {"call": label, "attempts": attempt + 1})
                    raise
                wait = backoff.escalate(exc.retry_after)
                attempt += 1
                logger.info("%s rate limited, retry %d in %.2fs", label, attempt, wait)
                append_ledger_telemetry("rate_limited", {"call": label, "attempt": attempt, "wait_sec": wait})
                await self._sleep(wait)
                continue
            backoff.reset()
            return result

    async def fetch_all(
        self,
        program_id: str,
        progress: Optional[FetchProgress] = None,
    ) -> AsyncIterator[Tuple[str, bytes]]:
        """Yield (address, data) for every program account, in ledger order.

        Each call starts a fresh listing. Raises LedgerError only if the
        listing itself fails; later failures mark ``progress.partial``.
        """
        progress = progress if progress is not None else FetchProgress()
        backoff = self.new_backoff()
        addresses = await self.call_with_backoff(
            backoff,
            "getProgramAccounts",
            self.ledger.get_program_account_addresses,
            program_id,
            progress=progress,
        )
        progress.listed = len(addresses)

        for start in range(0, len(addresses), self.batch_size):
            chunk = addresses[start:start + self.batch_size]
            if start:
                await self._sleep(backoff.current)
            try:
                infos = await self.call_with_backoff(
                    backoff,
                    "getMultipleAccounts",
                    self.ledger.get_multiple_accounts,
                    chunk,
                    progress=progress,
                )
            except RateLimited as exc:
                progress.partial = True
                progress.error = str(exc)
                logger.warning("scan stopped at %d/%d accounts: %s", start, len(addresses), exc)
                append_ledger_telemetry(
                    "scan_degraded",
                    {"reason": "rate_limited", "fetched": progress.fetched, "listed": progress.listed},
                )
                return
            except LedgerError as exc:
                progress.partial = True
                progress.error = str(exc)
                logger.warning("skipping batch at %d: %s", start, exc)
                append_ledger_telemetry("scan_degraded", {"reason": "batch_failed", "offset": start})
                continue

            progress.batches += 1
            for address, info in zip(chunk, infos):
                if info is None or info.owner != program_id:
                    progress.missing += 1
                    continue
                progress.fetched += 1
                yield address, info.data

    async def scan(self, program_id: str) -> ScanResult:
        """Fetch and classify every program account."""
        progress = FetchProgress()
        result = ScanResult()
        async for address, data in self.fetch_all(program_id, progress):
            item = classify(data, address)
            if item is None:
                result.unrecognized.append(address)
            else:
                result.classified.append(item)
        result.partial = progress.partial
        counts = result.counts()
        logger.info("scan of %s: %s partial=%s", program_id, counts, result.partial)
        append_ledger_telemetry(
            "scan_complete",
            {**counts, "listed": progress.listed, "missing": progress.missing, "partial": result.partial},
        )
        return result

    async def resolve_each(
        self,
        items: Sequence[T],
        resolver: Callable[[T], Awaitable[Optional[R]]],
        key: Callable[[T], Hashable] = lambda item: item,
    ) -> List[Optional[R]]:
        """Resolve a secondary association per item, pacing the calls.

        Items sharing a key are resolved once. A lookup that still fails after
        its retries becomes None instead of aborting the batch.
        """
        backoff = self.new_backoff()
        resolved: Dict[Hashable, Optional[R]] = {}
        first = True
        for item in items:
            k = key(item)
            if k in resolved:
                continue
            if not first:
                await self._sleep(backoff.current)
            first = False
            try:
                resolved[k] = await self.call_with_backoff(backoff, "resolve", resolver, item)
            except LedgerError as exc:
                logger.info("association for %r unavailable: %s", k, exc)
                resolved[k] = None
        return [resolved[key(item)] for item in items]
