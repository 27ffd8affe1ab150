"""
Read-through cache of decoded ledger entities, keyed by account address.

Built once at startup and handed to every reader. Concurrent requests for the
same address (or concurrent full scans) share one in-flight task. Writers call
``invalidate`` after a confirmed write; the next read reloads that address.
"""

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional

from batch_fetcher import BatchAccountFetcher
from classifier import Classified, ScanResult, classify
from errors import LedgerError
from ledger_client import LedgerClient
from pubkeys import short_key
from schemas import Comment, Community, EntityKind, LedgerRecord, Post, Profile

logger = logging.getLogger(__name__)


class DomainCache:
    def __init__(
        self,
        ledger: LedgerClient,
        fetcher: BatchAccountFetcher,
        program_id: str,
        max_age: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ledger = ledger
        self.fetcher = fetcher
        self.program_id = program_id
        self.max_age = max_age
        self._clock = clock

        self._entries: Dict[str, Classified] = {}
        # Addresses stay known after invalidation so lists can reload them.
        self._kinds: Dict[str, EntityKind] = {}
        self._profile_by_owner: Dict[str, str] = {}
        self._post_by_id: Dict[int, str] = {}
        self._community_by_id: Dict[int, str] = {}

        self._inflight: Dict[str, asyncio.Future] = {}
        self._scan_task: Optional[asyncio.Future] = None
        self._scanned_at: Optional[float] = None
        self.last_scan: Optional[ScanResult] = None

    # --------------- population ---------------

    def _store(self, item: Classified) -> None:
        address = item.entity.address
        self._entries[address] = item
        self._kinds[address] = item.kind
        entity = item.entity
        if item.kind == EntityKind.PROFILE:
            previous = self._profile_by_owner.get(entity.owner)
            if previous and previous != address:
                logger.warning(
                    "owner %s has profiles at %s and %s; keeping the latter",
                    short_key(entity.owner), short_key(previous), short_key(address),
                )
            self._profile_by_owner[entity.owner] = address
        elif item.kind == EntityKind.POST:
            self._post_by_id[entity.id] = address
        elif item.kind == EntityKind.COMMUNITY:
            self._community_by_id[entity.id] = address

    async def _load(self, address: str) -> Optional[Classified]:
        try:
            info = await self.fetcher.call_with_backoff(
                self.fetcher.new_backoff(), "getAccountInfo", self.ledger.get_account_info, address
            )
        except LedgerError as exc:
            # Address stays indexed; the next read tries again.
            logger.info("lookup of %s unavailable: %s", short_key(address), exc)
            return None
        if info is None or info.owner != self.program_id:
            return None
        item = classify(info.data, address)
        if item is not None:
            self._store(item)
        return item

    async def get(self, address: str) -> Optional[Classified]:
        """Cached entity at ``address``, loading it once if needed.

        None means no initialized, recognizable account lives there.
        """
        cached = self._entries.get(address)
        if cached is not None:
            return cached
        task = self._inflight.get(address)
        if task is None:
            task = asyncio.ensure_future(self._load(address))
            self._inflight[address] = task

            def _forget(done: asyncio.Future, key: str = address) -> None:
                if self._inflight.get(key) is done:
                    del self._inflight[key]

            task.add_done_callback(_forget)
        return await asyncio.shield(task)

    def _is_fresh(self) -> bool:
        if self._scanned_at is None:
            return False
        return (self._clock() - self._scanned_at) < self.max_age

    async def _run_scan(self) -> ScanResult:
        result = await self.fetcher.scan(self.program_id)
        for item in result.classified:
            self._store(item)
        self.last_scan = result
        if not result.partial:
            self._scanned_at = self._clock()
        return result

    async def refresh(self, force: bool = False) -> Optional[ScanResult]:
        """Run a full scan unless a fresh one exists; joins a scan in flight."""
        if not force and self._is_fresh():
            return self.last_scan
        if self._scan_task is None or self._scan_task.done():
            self._scan_task = asyncio.ensure_future(self._run_scan())
        return await asyncio.shield(self._scan_task)

    # --------------- invalidation ---------------

    def invalidate(self, address: Optional[str]) -> None:
        if address:
            self._entries.pop(address, None)

    # --------------- queries ---------------

    async def entities(self, kind: EntityKind) -> List[LedgerRecord]:
        await self.refresh()
        stale = [a for a, k in self._kinds.items() if k == kind and a not in self._entries]
        if stale:
            await asyncio.gather(*(self.get(a) for a in stale))
        return [item.entity for item in self._entries.values() if item.kind == kind]

    async def profiles(self) -> List[Profile]:
        return await self.entities(EntityKind.PROFILE)

    async def posts(self, author: Optional[str] = None) -> List[Post]:
        posts = await self.entities(EntityKind.POST)
        if author is not None:
            posts = [p for p in posts if p.author == author]
        return sorted(posts, key=lambda p: p.timestamp, reverse=True)

    async def comments_for(self, post_id: int) -> List[Comment]:
        comments = await self.entities(EntityKind.COMMENT)
        return sorted(
            (c for c in comments if c.parent_post_id == post_id),
            key=lambda c: c.timestamp,
        )

    async def communities(self) -> List[Community]:
        communities = await self.entities(EntityKind.COMMUNITY)
        return sorted(communities, key=lambda c: c.id)

    async def _by_index(self, index: Dict, key) -> Optional[LedgerRecord]:
        address = index.get(key)
        if address is None:
            await self.refresh()
            address = index.get(key)
        if address is None:
            return None
        item = await self.get(address)
        return item.entity if item is not None else None

    def cached_profile(self, owner: str) -> Optional[Profile]:
        """Profile already held for ``owner``; never touches the ledger."""
        item = self._entries.get(self._profile_by_owner.get(owner, ""))
        return item.entity if item is not None else None

    async def profile_for_owner(self, owner: str) -> Optional[Profile]:
        return await self._by_index(self._profile_by_owner, owner)

    async def post_by_id(self, post_id: int) -> Optional[Post]:
        return await self._by_index(self._post_by_id, post_id)

    async def community_by_id(self, community_id: int) -> Optional[Community]:
        return await self._by_index(self._community_by_id, community_id)

    async def communities_created_by(self, creator: str) -> int:
        return sum(1 for c in await self.communities() if c.creator == creator)
